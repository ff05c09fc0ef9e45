"""
Signed HTTP transport for the 3Commas REST API.

Every REST call goes through Transport.execute(): resolve the versioned URL,
serialize the payload, sign it, dispatch, and unwrap the response. No
retries happen here; callers that want them plug in an error handler.
"""

import time
import logging
from decimal import Decimal
from typing import Any, Callable, NoReturn, Optional, Union

import orjson
import requests
from requests.adapters import HTTPAdapter

from ..auth.signer import sign
from ..config import ThreeCommasSettings
from ..exceptions import (
    APIError,
    AuthenticationError,
    RateLimitError,
    TimeoutError,
    TransportError,
    ValidationError,
)
from ..metrics import Metrics, get_metrics
from ..models import (
    ApiVersion,
    Credentials,
    HttpMethod,
    RequestDescriptor,
    SignedEnvelope,
)
from ..utils.query import stringify

logger = logging.getLogger(__name__)

Reject = Callable[..., NoReturn]
ErrorHandler = Callable[[Any, Reject], Any]


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def serialize_body(data: dict) -> str:
    """Compact JSON, key order preserved (matches JSON.stringify)."""
    return orjson.dumps(data, default=_json_default).decode("utf-8")


class Transport:
    """
    Authenticated gateway to the REST API.

    Thread-safe: requests share a pooled session and read-only credentials.
    """

    def __init__(
        self,
        credentials: Credentials,
        settings: ThreeCommasSettings,
        timeout: Optional[float] = None,
        forced_mode: Optional[str] = None,
        error_handler: Optional[ErrorHandler] = None,
        metrics: Optional[Metrics] = None
    ):
        """
        Initialize transport.

        Args:
            credentials: API key pair
            settings: Client settings
            timeout: Request timeout in seconds (defaults to settings)
            forced_mode: "paper" or "real"; sent as Forced-Mode on every request
            error_handler: Called as handler(error_body, reject) on remote errors
            metrics: Metrics collector (defaults to the settings-driven one)
        """
        self.credentials = credentials
        self.settings = settings
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.error_handler = error_handler
        self.metrics = metrics or get_metrics(
            enabled=settings.enable_metrics,
            port=settings.metrics_port
        )

        self.session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=settings.pool_connections,
            pool_maxsize=settings.pool_maxsize,
            max_retries=0
        )
        self.session.mount('https://', adapter)
        self.session.mount('http://', adapter)

        self.session.headers.update({
            "Accept": "application/json",
            "APIKEY": credentials.key,
        })
        forced_mode = forced_mode or settings.forced_mode
        if forced_mode:
            self.session.headers["Forced-Mode"] = forced_mode

    # ========== Envelope ==========

    def version_prefix(self, api_version: ApiVersion) -> str:
        if api_version is ApiVersion.V1:
            return self.settings.v1_prefix
        return self.settings.v2_prefix

    def relative_url(self, api_version: ApiVersion, path: str) -> str:
        """Relative URL used both for routing and as the signed path."""
        return f"{self.version_prefix(api_version)}{path}"

    def sign_request(self, descriptor: RequestDescriptor) -> SignedEnvelope:
        """
        Serialize and sign a request.

        GET payloads become the query string; every other method sends a JSON
        body with the credentials merged in after the caller's fields.

        Args:
            descriptor: Request to sign

        Returns:
            Envelope whose serialized payload is exactly what was signed
        """
        relative_url = self.relative_url(descriptor.api_version, descriptor.path)

        if descriptor.method is HttpMethod.GET:
            serialized = stringify(descriptor.payload)
        else:
            data = dict(descriptor.payload or {})
            data["api_key"] = self.credentials.key
            if self.settings.send_secret_in_body:
                data["secret"] = self.credentials.secret
            serialized = serialize_body(data)

        return SignedEnvelope(
            descriptor=descriptor,
            relative_url=relative_url,
            serialized_payload=serialized,
            signature=sign(self.credentials.secret, relative_url, serialized),
        )

    # ========== Dispatch ==========

    def execute(
        self,
        method: Union[HttpMethod, str],
        api_version: Union[ApiVersion, int],
        path: str,
        payload: Optional[dict[str, Any]] = None
    ) -> Any:
        """
        Sign and send a request.

        Args:
            method: GET, POST, PUT, DELETE or PATCH
            api_version: 1 or 2
            path: Path below the version prefix, starting with "/"
            payload: Query params (GET) or body fields (others)

        Returns:
            Deserialized response body, unmodified

        Raises:
            ValidationError: On a malformed method, version or path
            APIError: Remote rejected the request (body on .response)
            TransportError: No response received
        """
        try:
            descriptor = RequestDescriptor(
                method=HttpMethod(method.upper() if isinstance(method, str) else method),
                api_version=ApiVersion(api_version),
                path=path,
                payload=payload,
            )
        except ValueError as e:
            raise ValidationError(f"Invalid request: {e}") from e

        if not path.startswith("/"):
            raise ValidationError(f"Path must start with '/': {path!r}")

        return self.dispatch(self.sign_request(descriptor))

    def dispatch(self, envelope: SignedEnvelope) -> Any:
        """Send a signed envelope and unwrap the result."""
        method = envelope.descriptor.method.value
        version = int(envelope.descriptor.api_version)

        url = f"{self.settings.api_url}{envelope.relative_url}"
        if envelope.query:
            url = f"{url}?{envelope.query}"

        headers = {"Signature": envelope.signature}
        data = None
        if envelope.has_body:
            headers["Content-Type"] = "application/json"
            data = envelope.body.encode("utf-8")

        if self.settings.log_requests:
            logger.debug(f"{method} {url}")

        start = time.monotonic()
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            self.metrics.track_api_request(method, version, "timeout")
            logger.error(f"Request timeout: {method} {envelope.relative_url}")
            raise TimeoutError(f"Request timeout: {method} {envelope.relative_url}", cause=e) from e
        except requests.exceptions.RequestException as e:
            self.metrics.track_api_request(method, version, "transport_error")
            logger.error(f"Connection error: {method} {envelope.relative_url}: {type(e).__name__}")
            raise TransportError(f"Connection error: {method} {envelope.relative_url}", cause=e) from e
        finally:
            self.metrics.track_api_latency(method, version, time.monotonic() - start)

        self.metrics.track_api_request(method, version, str(response.status_code))

        if response.ok:
            return self._decode(response)

        self._reject(envelope, response)

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        """JSON body, raw text if not JSON, None if empty."""
        if not response.content:
            return None
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError:
            return response.text

    def _reject(self, envelope: SignedEnvelope, response: requests.Response) -> NoReturn:
        """
        Raise for a non-2xx response.

        The error handler, if any, sees the body first and may raise through
        ``reject`` (or on its own) before the default error is raised.
        """
        status = response.status_code
        error_body = self._decode(response)
        message = f"{envelope.descriptor.method.value} {envelope.relative_url} failed with {status}"
        if error_body is not None:
            message += f": {str(error_body)[:200]}"

        logger.warning(message)

        retry_after = response.headers.get("Retry-After")

        def reject(reason: Any = None) -> NoReturn:
            if isinstance(reason, BaseException):
                raise reason
            raise self._build_error(
                message, status, error_body if reason is None else reason, retry_after
            )

        if error_body is not None and self.error_handler:
            self.error_handler(error_body, reject)

        raise self._build_error(message, status, error_body, retry_after)

    @staticmethod
    def _build_error(
        message: str,
        status: int,
        body: Any,
        retry_after: Optional[str] = None
    ) -> APIError:
        if status in (401, 403):
            return AuthenticationError(message, status_code=status, response=body)
        if status == 429:
            try:
                seconds = float(retry_after) if retry_after else None
            except ValueError:
                seconds = None
            return RateLimitError(message, status_code=status, response=body, retry_after=seconds)
        return APIError(message, status_code=status, response=body)

    def close(self) -> None:
        """Close session and release pooled connections."""
        self.session.close()
        logger.info("API transport session closed")
