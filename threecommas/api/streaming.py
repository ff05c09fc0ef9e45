"""
Streaming channel manager for 3Commas WebSocket updates.

One socket per client; every channel subscription shares it. The platform
cannot unsubscribe a single channel, so unsubscribe() closes the socket.
"""

import json
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union
import logging

import websocket

from ..auth.signer import sign
from ..metrics import Metrics, get_metrics
from ..models import Credentials

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE = 1006

MessageCallback = Callable[[Union[str, bytes]], None]


class Channel(str, Enum):
    """Streaming channels."""
    SMART_TRADES = "SmartTradesChannel"
    DEALS = "DealsChannel"


class ConnectionState(str, Enum):
    """Socket lifecycle."""
    UNCONNECTED = "UNCONNECTED"
    CONNECTING = "CONNECTING"
    SUBSCRIBED = "SUBSCRIBED"
    CLOSED_ABNORMAL = "CLOSED_ABNORMAL"
    CLOSED_NORMAL = "CLOSED_NORMAL"


@dataclass(frozen=True)
class ChannelSubscription:
    """A channel registered on the shared socket."""
    channel: Channel
    url_path: str
    payload: str
    callback: Optional[MessageCallback] = None


def build_identifier(credentials: Credentials, channel: Channel, url_path: str) -> str:
    """Signed channel identifier, itself a JSON string."""
    identifier = {
        "channel": channel.value,
        "users": [
            {
                "api_key": credentials.key,
                "signature": sign(credentials.secret, url_path),
            }
        ],
    }
    return json.dumps(identifier, separators=(",", ":"))


def build_subscribe_payload(credentials: Credentials, channel: Channel, url_path: str) -> str:
    """Subscribe command frame for ``channel``."""
    return json.dumps(
        {
            "identifier": build_identifier(credentials, channel, url_path),
            "command": "subscribe",
        },
        separators=(",", ":")
    )


class StreamingChannelManager:
    """
    Owns the client's streaming socket.

    Provides:
    - Lazy connect on first subscribe, one socket for all channels
    - Handshake resend on every (re)open
    - Immediate reconnect after an abnormal closure, no retry limit
    - Raw message delivery (str for text frames, bytes for binary frames)
    """

    def __init__(
        self,
        credentials: Credentials,
        ws_url: str = "wss://ws.3commas.io/websocket",
        reconnect_delay: float = 0.0,
        metrics: Optional[Metrics] = None
    ):
        """
        Initialize channel manager.

        Args:
            credentials: API key pair used to sign channel identifiers
            ws_url: WebSocket URL
            reconnect_delay: Pause before reopening after an abnormal closure
            metrics: Metrics collector
        """
        self.credentials = credentials
        self.ws_url = ws_url
        self.reconnect_delay = reconnect_delay
        self.metrics = metrics or get_metrics()

        self._app: Optional[websocket.WebSocketApp] = None
        self._thread: Optional[threading.Thread] = None
        self._state = ConnectionState.UNCONNECTED
        self._subscriptions: List[ChannelSubscription] = []
        self._lock = threading.RLock()
        self._generation = 0

        self._connections_opened = 0
        self._reconnect_count = 0
        self._messages_received = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def subscriptions(self) -> List[ChannelSubscription]:
        with self._lock:
            return list(self._subscriptions)

    def subscribe(
        self,
        channel: Channel,
        url_path: str,
        callback: Optional[MessageCallback] = None
    ) -> ChannelSubscription:
        """
        Subscribe to a channel.

        Opens the socket if there is none; otherwise the handshake goes over
        the existing socket (or waits for it to open).

        Args:
            channel: Channel to subscribe to
            url_path: Canonical path signed for the channel
            callback: Receives every inbound message

        Returns:
            The recorded subscription
        """
        subscription = ChannelSubscription(
            channel=channel,
            url_path=url_path,
            payload=build_subscribe_payload(self.credentials, channel, url_path),
            callback=callback,
        )

        with self._lock:
            self._subscriptions.append(subscription)

            if self._state is ConnectionState.SUBSCRIBED and self._app:
                self._send(self._app, subscription.payload)
            elif self._state in (ConnectionState.UNCONNECTED, ConnectionState.CLOSED_NORMAL):
                self._start()

        logger.info(f"Subscribed to {channel.value}")
        return subscription

    def unsubscribe(self) -> None:
        """Close the socket, dropping every subscription. No reconnect follows."""
        with self._lock:
            if self._state in (ConnectionState.UNCONNECTED, ConnectionState.CLOSED_NORMAL):
                return

            self._state = ConnectionState.CLOSED_NORMAL
            self._subscriptions.clear()
            app = self._app
            self._app = None

        if app:
            try:
                app.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

        logger.info("Unsubscribed from all channels")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the socket thread to finish."""
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def stats(self) -> dict:
        """Connection statistics for monitoring."""
        with self._lock:
            return {
                "state": self._state.value,
                "subscriptions": [s.channel.value for s in self._subscriptions],
                "connections_opened": self._connections_opened,
                "reconnects": self._reconnect_count,
                "messages_received": self._messages_received,
            }

    # ========== Connection loop ==========

    def _start(self) -> None:
        """Start the socket thread. Caller holds the lock."""
        self._state = ConnectionState.CONNECTING
        self._generation += 1
        self._thread = threading.Thread(
            target=self._run,
            args=(self._generation,),
            name="threecommas-ws",
            daemon=True
        )
        self._thread.start()

    def _run(self, generation: int) -> None:
        """
        Socket loop: one iteration per connection, repeats on abnormal closure.

        A loop whose generation is stale (unsubscribe, then a fresh subscribe)
        exits without touching the newer connection's state.
        """
        while True:
            app = websocket.WebSocketApp(
                self.ws_url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close
            )
            with self._lock:
                if generation != self._generation or self._state is not ConnectionState.CONNECTING:
                    break
                self._app = app
                self._connections_opened += 1

            logger.info(f"Connecting to {self.ws_url}")
            app.run_forever()

            with self._lock:
                if generation != self._generation or self._app is not app:
                    break

                if self._state is not ConnectionState.CLOSED_ABNORMAL:
                    if self._state is not ConnectionState.CLOSED_NORMAL:
                        # run_forever returned without reporting a close
                        self._state = ConnectionState.CLOSED_NORMAL
                        self._subscriptions.clear()
                    self._app = None
                    break

                self._state = ConnectionState.CONNECTING
                self._reconnect_count += 1
                reconnects = self._reconnect_count

            self.metrics.track_reconnect()
            logger.warning(f"Reconnecting WebSocket (reconnect #{reconnects})")
            if self.reconnect_delay:
                time.sleep(self.reconnect_delay)

        logger.info("WebSocket loop stopped")

    def _send(self, ws: websocket.WebSocketApp, payload: str) -> None:
        try:
            ws.send(payload)
        except websocket.WebSocketException as e:
            # the pending close will reopen and resend every handshake
            logger.warning(f"Failed to send subscribe: {e}")

    # ========== Socket callbacks ==========

    def _on_open(self, ws: websocket.WebSocketApp) -> None:
        with self._lock:
            if ws is not self._app:
                return
            for subscription in self._subscriptions:
                self._send(ws, subscription.payload)
            self._state = ConnectionState.SUBSCRIBED
            count = len(self._subscriptions)

        logger.info(f"WebSocket connected, sent {count} subscription(s)")

    def _on_message(self, ws: websocket.WebSocketApp, message: Union[str, bytes]) -> None:
        with self._lock:
            if ws is not self._app:
                return
            self._messages_received += 1
            callbacks = []
            for subscription in self._subscriptions:
                if subscription.callback and subscription.callback not in callbacks:
                    callbacks.append(subscription.callback)

        self.metrics.track_message()

        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                logger.error(f"Message callback error: {e}", exc_info=True)

    def _on_error(self, ws: websocket.WebSocketApp, error: Exception) -> None:
        logger.error(f"WebSocket error: {error}")

    def _on_close(
        self,
        ws: websocket.WebSocketApp,
        close_status_code: Optional[int],
        close_msg: Optional[str]
    ) -> None:
        with self._lock:
            if ws is not self._app:
                logger.info("WebSocket closed by client")
                return

            # websocket-client reports a dropped socket without any status code
            if close_status_code in (ABNORMAL_CLOSURE, None):
                self._state = ConnectionState.CLOSED_ABNORMAL
            else:
                self._state = ConnectionState.CLOSED_NORMAL
                self._subscriptions.clear()

        logger.warning(f"WebSocket closed: {close_status_code} - {close_msg}")
