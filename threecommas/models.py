"""
Type definitions for 3Commas client.

Request descriptors are plain frozen dataclasses; endpoint parameters and the
smart-trade response schema use Pydantic for runtime validation.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Mapping, Optional, Type, TypeVar, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


class HttpMethod(str, Enum):
    """HTTP verbs accepted by the platform."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class ApiVersion(IntEnum):
    """REST API version."""
    V1 = 1
    V2 = 2


@dataclass(frozen=True)
class Credentials:
    """API key pair. The secret only ever leaves the process inside a signature."""
    key: str = ""
    secret: str = field(default="", repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.secret)


@dataclass(frozen=True)
class RequestDescriptor:
    """What the caller asked for, before signing."""
    method: HttpMethod
    api_version: ApiVersion
    path: str
    payload: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class SignedEnvelope:
    """
    A request ready for dispatch.

    ``serialized_payload`` is the query string for GET and the JSON body
    otherwise; it is exactly what was signed and exactly what is sent.
    """
    descriptor: RequestDescriptor
    relative_url: str
    serialized_payload: str
    signature: str = field(repr=False)

    @property
    def has_body(self) -> bool:
        return self.descriptor.method is not HttpMethod.GET

    @property
    def body(self) -> Optional[str]:
        return self.serialized_payload if self.has_body else None

    @property
    def query(self) -> str:
        return "" if self.has_body else self.serialized_payload


# ========== Endpoint parameters ==========

def as_decimal(value: Any) -> Decimal:
    """Numeric view of a number-like parameter, for range checks only."""
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _check_number(value: Any) -> Any:
    as_decimal(value)
    return value


# JSON numbers stay numbers and numeric strings stay strings on the wire
Number = Annotated[Union[StrictInt, StrictFloat, Decimal, str], AfterValidator(_check_number)]


class ParamsModel(BaseModel):
    """
    Base for endpoint parameter structures.

    Unknown fields are passed through untouched so newly added platform
    parameters keep working. Only fields the caller set are sent; defaults
    never reach the wire.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, use_enum_values=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True, by_alias=True)


P = TypeVar("P", bound=ParamsModel)


def to_payload(
    model_cls: Type[P],
    params: Union[P, Mapping[str, Any], None]
) -> Optional[dict[str, Any]]:
    """
    Validate params against ``model_cls`` and dump them for the wire.

    Args:
        model_cls: Parameter model for the endpoint
        params: Model instance, plain mapping, or None

    Returns:
        JSON-ready dict, or None when no params were given

    Raises:
        ValidationError: If params do not match the model
    """
    if params is None:
        return None
    if isinstance(params, model_cls):
        return params.to_payload()
    try:
        return model_cls.model_validate(params).to_payload()
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {e.error_count()} error(s)",
            {"errors": e.errors(include_url=False)}
        ) from e


class TransferParams(ParamsModel):
    """POST /accounts/transfer"""
    currency: str
    amount: Number
    from_account_id: int
    to_account_id: int

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Any) -> Any:
        if as_decimal(v) <= 0:
            raise ValueError("amount must be greater than 0")
        return v


class TransferHistoryParams(ParamsModel):
    """GET /accounts/transfer_history"""
    account_id: int
    currency: str
    page: Optional[int] = Field(None, ge=1)
    per_page: Optional[int] = Field(None, ge=1)


class ExchangeAccountParams(ParamsModel):
    """POST /accounts/new and /accounts/update"""
    type: Optional[str] = Field(None, description="Exchange code, e.g. binance")
    name: Optional[str] = None
    api_key: Optional[str] = None
    secret: Optional[str] = None
    passphrase: Optional[str] = None
    address: Optional[str] = None
    customer_id: Optional[str] = None
    account_id: Optional[int] = Field(None, description="Required when editing")


class MarketPairsParams(ParamsModel):
    """GET /accounts/market_pairs"""
    market_code: Optional[str] = None


class CurrencyParams(ParamsModel):
    """GET /accounts/currency_rates"""
    market_code: str
    pair: str


class MarketCurrencyParams(CurrencyParams):
    """GET /accounts/currency_rates_with_leverage_data"""
    pass


class BalanceChartParams(ParamsModel):
    """GET /accounts/{id}/balance_chart_data"""
    date_from: str
    date_to: Optional[str] = None


# Smart trade building blocks (v2)

class Units(ParamsModel):
    value: Number


class PriceValue(ParamsModel):
    value: Number
    type: Optional[Literal["bid", "ask", "last"]] = None


class Trailing(ParamsModel):
    enabled: bool = False
    percent: Optional[Number] = None


class Conditional(ParamsModel):
    price: PriceValue
    order_type: Optional[Literal["market", "limit"]] = None
    trailing: Optional[Trailing] = None


class Leverage(ParamsModel):
    enabled: bool = False
    type: Optional[Literal["custom", "cross", "isolated"]] = None
    value: Optional[Number] = None


class Position(ParamsModel):
    type: Literal["buy", "sell"]
    units: Units
    order_type: Literal["market", "limit", "conditional"] = "market"
    price: Optional[PriceValue] = None
    conditional: Optional[Conditional] = None


class TakeProfitStep(ParamsModel):
    order_type: Literal["market", "limit"] = "limit"
    price: PriceValue
    volume: Number

    @field_validator("volume")
    @classmethod
    def volume_in_range(cls, v: Any) -> Any:
        if not 0 < as_decimal(v) <= 100:
            raise ValueError("volume must be in (0, 100]")
        return v


class TakeProfit(ParamsModel):
    enabled: bool = False
    steps: list[TakeProfitStep] = Field(default_factory=list)
    trailing: Optional[Trailing] = None


class Timeout(ParamsModel):
    enabled: bool = False
    value: Optional[int] = None


class StopLoss(ParamsModel):
    enabled: bool = False
    order_type: Optional[Literal["market", "limit"]] = None
    price: Optional[PriceValue] = None
    conditional: Optional[Conditional] = None
    timeout: Optional[Timeout] = None
    breakeven: Optional[bool] = None


class SmartTradeParams(ParamsModel):
    """POST /smart_trades (v2)"""
    account_id: int
    pair: str
    position: Position
    instant: Optional[bool] = None
    skip_enter_step: Optional[bool] = None
    leverage: Optional[Leverage] = None
    take_profit: Optional[TakeProfit] = None
    stop_loss: Optional[StopLoss] = None
    note: Optional[str] = None


class UpdateSmartTradeParams(ParamsModel):
    """PATCH /smart_trades/{id} (v2)"""
    position: Optional[dict[str, Any]] = None
    take_profit: Optional[TakeProfit] = None
    stop_loss: Optional[StopLoss] = None
    note: Optional[str] = None


class FundParams(ParamsModel):
    """POST /smart_trades/{id}/add_funds and /reduce_funds (v2)"""
    order_type: Literal["market", "limit"] = "market"
    units: Units
    price: Optional[PriceValue] = None


class SmartTradeHistoryParams(ParamsModel):
    """GET /smart_trades (v2)"""
    account_id: Optional[int] = None
    pair: Optional[str] = None
    type: Optional[Literal["simple_buy", "simple_sell", "smart_sell", "smart_trade", "smart_cover"]] = None
    status: Optional[Literal["all", "active", "finished", "successfully_finished", "cancelled", "failed"]] = None
    order_by: Optional[Literal["created_at", "updated_at", "closed_at", "status"]] = None
    order_direction: Optional[Literal["asc", "desc"]] = None
    page: Optional[int] = Field(None, ge=1)
    per_page: Optional[int] = Field(None, ge=1, le=100)


class BotsParams(ParamsModel):
    """GET /bots"""
    limit: Optional[int] = Field(None, ge=1, le=100)
    offset: Optional[int] = Field(None, ge=0)
    from_: Optional[str] = Field(None, alias="from")
    account_id: Optional[int] = None
    scope: Optional[Literal["enabled", "disabled"]] = None
    strategy: Optional[Literal["long", "short"]] = None
    sort_by: Optional[Literal["profit", "created_at", "updated_at"]] = None
    sort_direction: Optional[Literal["asc", "desc"]] = None
    quote: Optional[str] = None


class BotsStatsParams(ParamsModel):
    """GET /bots/stats"""
    account_id: Optional[int] = None
    bot_id: Optional[int] = None


class DealsParams(ParamsModel):
    """GET /deals"""
    limit: Optional[int] = Field(None, ge=1, le=1000)
    offset: Optional[int] = Field(None, ge=0)
    from_: Optional[str] = Field(None, alias="from")
    account_id: Optional[int] = None
    bot_id: Optional[int] = None
    scope: Optional[Literal["active", "finished", "completed", "cancelled", "failed"]] = None
    order: Optional[Literal["created_at", "updated_at", "closed_at", "profit", "profit_percentage"]] = None
    order_direction: Optional[Literal["asc", "desc"]] = None
    base: Optional[str] = None
    quote: Optional[str] = None


class UpdateDealParams(ParamsModel):
    """PATCH /deals/{id}/update_deal; ``id`` goes in the path, not the body."""
    id: int
    take_profit: Optional[Number] = None
    profit_currency: Optional[Literal["quote_currency", "base_currency"]] = None
    take_profit_type: Optional[Literal["base", "total"]] = None
    trailing_enabled: Optional[bool] = None
    trailing_deviation: Optional[Number] = None
    stop_loss_percentage: Optional[Number] = None
    max_safety_orders: Optional[int] = None
    active_safety_orders_count: Optional[int] = None
    stop_loss_timeout_enabled: Optional[bool] = None
    stop_loss_timeout_in_seconds: Optional[int] = None
    tsl_enabled: Optional[bool] = None
    stop_loss_type: Optional[Literal["stop_loss", "stop_loss_and_disable_bot"]] = None
    close_timeout: Optional[int] = None


DEFAULT_BOTS_PARAMS = BotsParams(limit=50, sort_by="created_at", sort_direction="desc")
DEFAULT_DEALS_PARAMS = DealsParams(limit=50, order="created_at", order_direction="desc")


# ========== Responses ==========

class SmartTradeStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    title: Optional[str] = None


class SmartTradeAccount(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    type: Optional[str] = None
    name: Optional[str] = None
    market: Optional[str] = None


class SmartTradeOrder(BaseModel):
    """Smart trade as returned by the v2 API."""
    model_config = ConfigDict(extra="allow")

    id: int
    version: Optional[int] = None
    account: SmartTradeAccount
    pair: str
    instant: Optional[bool] = None
    status: SmartTradeStatus
    leverage: Optional[dict[str, Any]] = None
    position: dict[str, Any]
    take_profit: Optional[dict[str, Any]] = None
    stop_loss: Optional[dict[str, Any]] = None
    note: Optional[str] = None
    skip_enter_step: Optional[bool] = None
    data: Optional[dict[str, Any]] = None
    profit: Optional[dict[str, Any]] = None
    margin: Optional[dict[str, Any]] = None
    is_position_not_filled: Optional[bool] = None
