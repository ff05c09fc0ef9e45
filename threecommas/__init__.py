"""
3Commas Client Library

Signed REST calls and self-healing deal / smart-trade streams for the
3Commas trading platform.
"""

from .client import ThreeCommasClient
from .config import ThreeCommasSettings, get_settings
from .auth.signer import sign
from .api.streaming import Channel, ConnectionState
from .models import (
    HttpMethod,
    ApiVersion,
    Credentials,
    TransferParams,
    TransferHistoryParams,
    ExchangeAccountParams,
    MarketPairsParams,
    CurrencyParams,
    MarketCurrencyParams,
    BalanceChartParams,
    SmartTradeHistoryParams,
    SmartTradeParams,
    UpdateSmartTradeParams,
    FundParams,
    BotsParams,
    BotsStatsParams,
    DealsParams,
    UpdateDealParams,
    SmartTradeOrder,
)
from .exceptions import (
    ThreeCommasError,
    APIError,
    AuthenticationError,
    RateLimitError,
    TransportError,
    TimeoutError,
    ValidationError,
)
from .logging_config import setup_logging

__version__ = "1.0.0"

__all__ = [
    # Main client
    "ThreeCommasClient",
    "ThreeCommasSettings",
    "get_settings",
    "sign",
    "setup_logging",

    # Types
    "Channel",
    "ConnectionState",
    "HttpMethod",
    "ApiVersion",
    "Credentials",
    "TransferParams",
    "TransferHistoryParams",
    "ExchangeAccountParams",
    "MarketPairsParams",
    "CurrencyParams",
    "MarketCurrencyParams",
    "BalanceChartParams",
    "SmartTradeHistoryParams",
    "SmartTradeParams",
    "UpdateSmartTradeParams",
    "FundParams",
    "BotsParams",
    "BotsStatsParams",
    "DealsParams",
    "UpdateDealParams",
    "SmartTradeOrder",

    # Exceptions
    "ThreeCommasError",
    "APIError",
    "AuthenticationError",
    "RateLimitError",
    "TransportError",
    "TimeoutError",
    "ValidationError",
]
