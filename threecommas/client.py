"""
Main 3Commas client.

Thin endpoint methods over the signed transport, plus deal and smart-trade
streaming over one shared socket.
"""

from typing import Any, Literal, Mapping, Optional, Union
import logging

from pydantic import ValidationError as PydanticValidationError

from .config import get_settings, ThreeCommasSettings
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
    DEFAULT_BOTS_PARAMS,
    DEFAULT_DEALS_PARAMS,
    to_payload,
)
from .api.transport import Transport, ErrorHandler
from .api.streaming import StreamingChannelManager, Channel, MessageCallback
from .exceptions import ValidationError
from .metrics import get_metrics

logger = logging.getLogger(__name__)

AccountId = Union[int, str]
Params = Optional[Mapping[str, Any]]


class ThreeCommasClient:
    """
    Client for the 3Commas REST and streaming APIs.

    Every call returns the platform's response body unchanged, or raises
    APIError carrying the platform's error body.

    Usage:
        client = ThreeCommasClient(key="...", secrets="...")
        deals = client.get_deals({"scope": "active"})
        client.subscribe_deal(print)
    """

    def __init__(
        self,
        key: Optional[str] = None,
        secrets: Optional[str] = None,
        timeout: Optional[float] = None,
        forced_mode: Optional[Literal["paper", "real"]] = None,
        error_handler: Optional[ErrorHandler] = None,
        settings: Optional[ThreeCommasSettings] = None
    ):
        """
        Initialize 3Commas client.

        Args:
            key: API key (falls back to THREECOMMAS_API_KEY)
            secrets: API secret (falls back to THREECOMMAS_API_SECRET)
            timeout: Request timeout in seconds (default 30)
            forced_mode: "paper" or "real" for every request
            error_handler: Called as handler(error_body, reject) before a
                remote error is raised
            settings: Optional settings (loads from env if not provided)
        """
        self.settings = settings or get_settings()

        if key is None:
            key = self.settings.api_key or ""
        if secrets is None:
            secrets = (
                self.settings.api_secret.get_secret_value()
                if self.settings.api_secret else ""
            )
        self.credentials = Credentials(key=key, secret=secrets)

        self.metrics = get_metrics(
            enabled=self.settings.enable_metrics,
            port=self.settings.metrics_port
        )

        self.transport = Transport(
            credentials=self.credentials,
            settings=self.settings,
            timeout=timeout,
            forced_mode=forced_mode,
            error_handler=error_handler,
            metrics=self.metrics
        )

        self.stream = StreamingChannelManager(
            credentials=self.credentials,
            ws_url=self.settings.ws_url,
            reconnect_delay=self.settings.ws_reconnect_delay,
            metrics=self.metrics
        )

        logger.info("3Commas client initialized")

    def _request(
        self,
        method: HttpMethod,
        version: ApiVersion,
        path: str,
        payload: Optional[dict[str, Any]] = None
    ) -> Any:
        return self.transport.execute(method, version, path, payload)

    # ========== General ==========

    def ping(self) -> Any:
        """Test connectivity to the REST API."""
        return self._request(HttpMethod.GET, ApiVersion.V1, "/ping")

    def time(self) -> Any:
        """Get server time."""
        return self._request(HttpMethod.GET, ApiVersion.V1, "/time")

    def custom_request(
        self,
        method: Union[HttpMethod, str],
        version: Union[ApiVersion, int],
        path: str,
        payload: Params = None
    ) -> Any:
        """
        Call any endpoint, including ones without a dedicated method.

        Args:
            method: GET, POST, PUT, DELETE or PATCH
            version: 1 or 2
            path: Path below the version prefix, e.g. "/bots/123/enable"
            payload: Query params (GET) or body fields
        """
        return self.transport.execute(
            method, version, path, dict(payload) if payload is not None else None
        )

    # ========== Accounts ==========

    def transfer(self, params: Union[TransferParams, Params]) -> Any:
        """Transfer coins between exchange accounts."""
        return self._request(
            HttpMethod.POST, ApiVersion.V1, "/accounts/transfer",
            to_payload(TransferParams, params)
        )

    def get_transfer_history(self, params: Union[TransferHistoryParams, Params]) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/accounts/transfer_history",
            to_payload(TransferHistoryParams, params)
        )

    def get_transfer_data(self) -> Any:
        return self._request(HttpMethod.GET, ApiVersion.V1, "/accounts/transfer_data")

    def add_exchange_account(self, params: Union[ExchangeAccountParams, Params]) -> Any:
        """Connect a new exchange account."""
        return self._request(
            HttpMethod.POST, ApiVersion.V1, "/accounts/new",
            to_payload(ExchangeAccountParams, params)
        )

    def edit_exchange_account(self, params: Union[ExchangeAccountParams, Params]) -> Any:
        """Edit an exchange account; params must carry account_id."""
        return self._request(
            HttpMethod.POST, ApiVersion.V1, "/accounts/update",
            to_payload(ExchangeAccountParams, params)
        )

    def get_exchange(self) -> Any:
        """List connected exchange accounts."""
        return self._request(HttpMethod.GET, ApiVersion.V1, "/accounts")

    def get_market_list(self) -> Any:
        """Supported markets."""
        return self._request(HttpMethod.GET, ApiVersion.V1, "/accounts/market_list")

    def get_market_pairs(self, params: Union[MarketPairsParams, Params] = None) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/accounts/market_pairs",
            to_payload(MarketPairsParams, params)
        )

    def get_currency_rate(self, params: Union[CurrencyParams, Params]) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/accounts/currency_rates",
            to_payload(CurrencyParams, params)
        )

    def get_currency_rate_with_leverage_data(
        self,
        params: Union[MarketCurrencyParams, Params]
    ) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/accounts/currency_rates_with_leverage_data",
            to_payload(MarketCurrencyParams, params)
        )

    def get_active_trade_entities(self, account_id: AccountId) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, f"/accounts/{account_id}/active_trading_entities"
        )

    def sell_all_to_usd(self, account_id: AccountId) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/sell_all_to_usd")

    def sell_all_to_btc(self, account_id: AccountId) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/sell_all_to_btc")

    def get_balance_chart_data(
        self,
        account_id: AccountId,
        params: Union[BalanceChartParams, Params]
    ) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, f"/accounts/{account_id}/balance_chart_data",
            to_payload(BalanceChartParams, params)
        )

    def load_balances(self, account_id: AccountId) -> Any:
        """Ask the platform to refresh balances from the exchange."""
        return self._request(HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/load_balances")

    def rename_exchange_account(self, account_id: AccountId, name: str) -> Any:
        return self._request(
            HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/rename", {"name": name}
        )

    def remove_exchange_account(self, account_id: AccountId) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/remove")

    def get_pie_chart_data(self, account_id: AccountId) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/pie_chart_data")

    def get_account_table_data(self, account_id: AccountId) -> Any:
        return self._request(
            HttpMethod.POST, ApiVersion.V1, f"/accounts/{account_id}/account_table_data"
        )

    def get_account_info(self, account_id: Optional[AccountId] = None) -> Any:
        """Single account, or the summary of all accounts when no id is given."""
        target = account_id if account_id is not None else "summary"
        return self._request(HttpMethod.GET, ApiVersion.V1, f"/accounts/{target}")

    def get_leverage_data(self, account_id: AccountId, pair: str) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, f"/accounts/{account_id}/leverage_data", {"pair": pair}
        )

    # ========== Users ==========

    def change_user_mode(self, mode: Literal["paper", "real"]) -> Any:
        """
        Switch the account between paper and real trading.

        Raises:
            ValidationError: If mode is not "paper" or "real"
        """
        if mode not in ("paper", "real"):
            raise ValidationError(f"Invalid mode: {mode!r}", {"mode": mode})
        return self._request(HttpMethod.POST, ApiVersion.V1, "/users/change_mode", {"mode": mode})

    # ========== Smart trades (v2) ==========

    def get_smart_trade_history(
        self,
        params: Union[SmartTradeHistoryParams, Params] = None
    ) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V2, "/smart_trades",
            to_payload(SmartTradeHistoryParams, params)
        )

    def smart_trade(self, params: Union[SmartTradeParams, Params]) -> Any:
        """Create a smart trade."""
        return self._request(
            HttpMethod.POST, ApiVersion.V2, "/smart_trades",
            to_payload(SmartTradeParams, params)
        )

    def get_smart_trade(self, id: int) -> Any:
        return self._request(HttpMethod.GET, ApiVersion.V2, f"/smart_trades/{id}")

    def cancel_smart_trade(self, id: int) -> Any:
        return self._request(HttpMethod.DELETE, ApiVersion.V2, f"/smart_trades/{id}")

    def update_smart_trade(self, id: int, params: Union[UpdateSmartTradeParams, Params]) -> Any:
        return self._request(
            HttpMethod.PATCH, ApiVersion.V2, f"/smart_trades/{id}",
            to_payload(UpdateSmartTradeParams, params)
        )

    def average_smart_trade(self, id: int, params: Union[FundParams, Params]) -> Any:
        """Add funds to a smart trade."""
        return self._request(
            HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/add_funds",
            to_payload(FundParams, params)
        )

    def reduce_fund(self, id: int, params: Union[FundParams, Params]) -> Any:
        return self._request(
            HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/reduce_funds",
            to_payload(FundParams, params)
        )

    def close_smart_trade(self, id: int) -> Any:
        """Close a smart trade at market price."""
        return self._request(HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/close_by_market")

    def force_start_smart_trade(self, id: int) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/force_start")

    def force_process_smart_trade(self, id: int) -> Any:
        return self._request(HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/force_process")

    def set_note_smart_trade(self, id: int, note: str) -> Any:
        return self._request(
            HttpMethod.POST, ApiVersion.V2, f"/smart_trades/{id}/set_note", {"note": note}
        )

    def get_sub_trade(self, id: int) -> Any:
        """
        Get the sub trades of a smart trade, including entry and take profit orders.

        Args:
            id: Smart trade id
        """
        return self._request(HttpMethod.GET, ApiVersion.V2, f"/smart_trades/{id}/trades")

    def close_sub_trade(self, smart_trade_id: int, sub_trade_id: int) -> Any:
        return self._request(
            HttpMethod.POST, ApiVersion.V2,
            f"/smart_trades/{smart_trade_id}/trades/{sub_trade_id}/close_by_market"
        )

    def cancel_sub_trade(self, smart_trade_id: int, sub_trade_id: int) -> Any:
        return self._request(
            HttpMethod.DELETE, ApiVersion.V2,
            f"/smart_trades/{smart_trade_id}/trades/{sub_trade_id}"
        )

    # ========== Bots ==========

    def get_bots(self, params: Union[BotsParams, Params] = DEFAULT_BOTS_PARAMS) -> Any:
        """List bots (50 newest first by default)."""
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/bots", to_payload(BotsParams, params)
        )

    def get_bots_stats(self, params: Union[BotsStatsParams, Params] = None) -> Any:
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/bots/stats", to_payload(BotsStatsParams, params)
        )

    def get_bot(self, id: int) -> Any:
        return self._request(HttpMethod.GET, ApiVersion.V1, f"/bots/{id}/show")

    # ========== Deals ==========

    def get_deals(self, params: Union[DealsParams, Params] = DEFAULT_DEALS_PARAMS) -> Any:
        """List deals (50 newest first by default)."""
        return self._request(
            HttpMethod.GET, ApiVersion.V1, "/deals", to_payload(DealsParams, params)
        )

    def get_deal(self, id: int) -> Any:
        return self._request(HttpMethod.GET, ApiVersion.V1, f"/deals/{id}/show")

    def get_deal_safety_orders(self, id: int) -> Any:
        return self._request(HttpMethod.GET, ApiVersion.V1, f"/deals/{id}/market_orders")

    def update_deal(self, params: Union[UpdateDealParams, Params]) -> Any:
        """Update a deal; ``id`` selects the deal and is not sent in the body."""
        payload = to_payload(UpdateDealParams, params)
        if payload is None:
            raise ValidationError("update_deal requires params with an id")
        deal_id = payload.pop("id")
        return self._request(
            HttpMethod.PATCH, ApiVersion.V1, f"/deals/{deal_id}/update_deal", payload
        )

    # ========== Streaming ==========

    def subscribe_smart_trade(self, callback: Optional[MessageCallback] = None) -> None:
        """
        Stream smart trade updates.

        Args:
            callback: Receives each raw message (str or bytes)
        """
        self.stream.subscribe(Channel.SMART_TRADES, "/smart_trades", callback)

    def subscribe_deal(self, callback: Optional[MessageCallback] = None) -> None:
        """
        Stream deal updates.

        Args:
            callback: Receives each raw message (str or bytes)
        """
        self.stream.subscribe(Channel.DEALS, "/deals", callback)

    def unsubscribe(self) -> None:
        """
        Close the streaming socket.

        3Commas does not support unsubscribing a single channel, so every
        subscription on this client ends.
        """
        self.stream.unsubscribe()

    # ========== Helpers ==========

    def validate_order_type(self, order: Any) -> SmartTradeOrder:
        """
        Check a smart trade response against the expected schema.

        Raises:
            ValidationError: If the payload does not match
        """
        try:
            return SmartTradeOrder.model_validate(order)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Unexpected smart trade shape: {e.error_count()} error(s)",
                {"errors": e.errors(include_url=False)}
            ) from e

    def close(self) -> None:
        """Close the stream and the HTTP session."""
        self.stream.unsubscribe()
        self.transport.close()
        logger.info("3Commas client closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
