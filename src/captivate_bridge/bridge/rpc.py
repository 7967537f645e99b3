"""RPC bridge to Captivate's automation scheduler.

Owns the WebSocket transport, the QWebChannel session on top of it, the
connection state machine and the reconnection watchdog. Once the channel
is initialised every scheduler method is wrapped into an awaitable so the
rest of the package can ``await bridge.call(...)``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import websockets

from captivate_bridge import CLIENT_ID, CLIENT_VERSION
from captivate_bridge.bridge.adapters import wrap_members
from captivate_bridge.config.models import BridgeSettings, ConnectionConfig
from captivate_bridge.host import InstanceStatus
from captivate_bridge.logging_utils import maybe_enable_debug_logger
from captivate_bridge.protocol.qwebchannel import QSignal, QWebChannel
from captivate_bridge.protocol.replies import MalformedReplyError, parse_json_object

logger = logging.getLogger(__name__)

_BRIDGE_DEBUG = maybe_enable_debug_logger(logger, "CAPTIVATE_BRIDGE_RPC_DEBUG")

SCHEDULER_OBJECT = "scheduler"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class NotConnectedError(RuntimeError):
    """Raised when a remote call is issued before the channel is up."""


class UnknownMethodError(AttributeError):
    """Raised when Captivate does not expose the requested method."""


class HandshakeError(RuntimeError):
    """Raised when ``notifyClientConnected`` fails or returns garbage."""


StatusCallback = Callable[[InstanceStatus, Optional[str]], None]
ReadyCallback = Callable[["RpcBridge"], Optional[Awaitable[None]]]
Connector = Callable[[str], Awaitable[Any]]


class RpcBridge:
    """Connection to one Captivate instance."""

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        *,
        settings: BridgeSettings | None = None,
        on_status: Optional[StatusCallback] = None,
        on_ready: Optional[ReadyCallback] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self._config = config or ConnectionConfig()
        self._settings = settings or BridgeSettings()
        self.on_status = on_status
        self.on_ready = on_ready
        self._connector: Connector = connector or websockets.connect
        self._state = ConnectionState.DISCONNECTED
        self._websocket: Any = None
        self._outbox: asyncio.Queue[str] | None = None
        self._channel: QWebChannel | None = None
        self._methods: Dict[str, Any] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._sender_task: asyncio.Task[None] | None = None
        self._handshake_task: asyncio.Task[None] | None = None
        self._watchdog: asyncio.Task[None] | None = None
        self._suppress_watchdog = False
        self._stopped = False
        self.host_info: Dict[str, Any] | None = None

    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def watchdog_armed(self) -> bool:
        return self._watchdog is not None

    @property
    def methods(self) -> Mapping[str, Any]:
        if self._methods is None:
            raise NotConnectedError("Captivate channel is not initialised")
        return self._methods

    def configure(self, config: ConnectionConfig) -> None:
        self._config = config

    # ------------------------------------------------------------------
    async def call(self, method: str, *args: Any) -> Any:
        """Invoke a scheduler method and await its completion callback."""

        methods = self._methods
        if methods is None:
            raise NotConnectedError(f"cannot call {method}: not connected to Captivate")
        func = methods.get(method)
        if func is None or isinstance(func, QSignal) or not callable(func):
            raise UnknownMethodError(f"Captivate does not expose method {method!r}")
        if _BRIDGE_DEBUG:
            logger.debug("call %s%r", method, args)
        return await func(*args)

    def signal(self, name: str) -> QSignal:
        member = self.methods.get(name)
        if not isinstance(member, QSignal):
            raise UnknownMethodError(f"Captivate does not expose signal {name!r}")
        return member

    # ------------------------------------------------------------------
    def connect(self) -> bool:
        """Start a connection attempt; returns False when none was made."""

        url = self._config.server_url()
        if self._config.needs_new_config:
            logger.debug("connection needs new configuration")
        if url is None:
            logger.debug("no Captivate address configured; not connecting")
            return False
        if self._state is not ConnectionState.DISCONNECTED:
            logger.debug("connect ignored while %s", self._state.value)
            return False
        self._stopped = False
        self._state = ConnectionState.CONNECTING
        self._report(InstanceStatus.CONNECTING)
        logger.debug("connecting to %s", url)
        self._run_task = asyncio.get_running_loop().create_task(self._run(url))
        return True

    async def disconnect(self) -> None:
        """Close the current transport without arming the watchdog."""

        self._suppress_watchdog = True
        try:
            ws = self._websocket
            if ws is not None:
                with suppress(Exception):
                    await ws.close()
            task = self._run_task
            if task is not None and not task.done():
                if ws is None:
                    task.cancel()
                with suppress(asyncio.CancelledError, Exception):
                    await task
        finally:
            self._suppress_watchdog = False

    async def close(self) -> None:
        """Shut the bridge down for good."""

        self._stopped = True
        self._disarm_watchdog()
        await self.disconnect()
        handshake = self._handshake_task
        if handshake is not None and not handshake.done():
            handshake.cancel()
            with suppress(asyncio.CancelledError, Exception):
                await handshake

    # ------------------------------------------------------------------
    async def _run(self, url: str) -> None:
        try:
            ws = await self._connector(url)
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise
        except Exception as exc:
            self._handle_error(exc)
            self._handle_close()
            return

        self._handle_open(ws)
        try:
            async for message in ws:
                channel = self._channel
                if channel is None:
                    continue
                try:
                    channel.handle_message(message)
                except Exception:
                    logger.debug("QWebChannel message dispatch failed", exc_info=True)
        except websockets.exceptions.ConnectionClosedOK as exc:
            logger.debug("Captivate transport closed: %s", exc)
        except websockets.exceptions.ConnectionClosedError as exc:
            self._handle_error(exc)
        except Exception as exc:
            self._handle_error(exc)
        finally:
            self._handle_close()

    def _handle_open(self, ws: Any) -> None:
        logger.info("A connection to Captivate has been established")
        self._disarm_watchdog()
        self._websocket = ws
        self._outbox = asyncio.Queue()
        self._sender_task = asyncio.get_running_loop().create_task(self._sender(ws, self._outbox))
        self._channel = QWebChannel(self._enqueue_text, self._on_channel_ready)

    def _handle_error(self, exc: BaseException) -> None:
        msg = str(exc) or exc.__class__.__name__
        logger.warning("Captivate connection error %s", msg)
        self._report(InstanceStatus.BAD_CONFIG, msg)
        self._config = self._config.cleared()

    def _handle_close(self) -> None:
        was_open = self._websocket is not None
        self._state = ConnectionState.DISCONNECTED
        self._websocket = None
        self._channel = None
        self._methods = None
        self._outbox = None
        sender = self._sender_task
        self._sender_task = None
        if sender is not None:
            sender.cancel()
        if was_open:
            logger.warning("Captivate connection closed")
        self._report(InstanceStatus.DISCONNECTED, "Disconnected")
        if not self._stopped and not self._suppress_watchdog:
            self._arm_watchdog()

    # ------------------------------------------------------------------
    def _on_channel_ready(self, channel: QWebChannel) -> None:
        scheduler = channel.objects.get(SCHEDULER_OBJECT)
        if scheduler is None:
            logger.warning("Captivate channel does not publish a %r object", SCHEDULER_OBJECT)
            return
        self._methods = dict(wrap_members(scheduler.members()))
        self._handshake_task = asyncio.get_running_loop().create_task(self._complete_handshake())

    async def _complete_handshake(self) -> None:
        try:
            reply = await asyncio.wait_for(
                self.call("notifyClientConnected", CLIENT_ID, CLIENT_VERSION, {}),
                timeout=self._settings.handshake_timeout_s,
            )
            try:
                self.host_info = parse_json_object(reply, what="host info")
            except MalformedReplyError as exc:
                raise HandshakeError(str(exc)) from exc
        except (asyncio.TimeoutError, HandshakeError, NotConnectedError, UnknownMethodError) as exc:
            logger.warning("Captivate handshake failed: %s", exc)
            ws = self._websocket
            if ws is not None:
                with suppress(Exception):
                    await ws.close()
            return

        logger.info(
            "Captivate host %s %s (%s)",
            self.host_info.get("host", "unknown"),
            self.host_info.get("version", "?"),
            self.host_info.get("platform", "?"),
        )
        self._state = ConnectionState.CONNECTED
        self._report(InstanceStatus.OK)
        if self.on_ready is not None:
            try:
                result = self.on_ready(self)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("on_ready hook failed")

    # ------------------------------------------------------------------
    def _arm_watchdog(self) -> None:
        if self._watchdog is not None:
            return
        self._watchdog = asyncio.get_running_loop().create_task(self._watchdog_loop())

    def _disarm_watchdog(self) -> None:
        watchdog = self._watchdog
        self._watchdog = None
        if watchdog is not None and watchdog is not asyncio.current_task():
            watchdog.cancel()

    async def _watchdog_loop(self) -> None:
        interval = self._settings.reconnect_interval_s
        while True:
            await asyncio.sleep(interval)
            logger.debug("watchdog: retrying Captivate connection")
            self.connect()

    async def _sender(self, ws: Any, outbox: "asyncio.Queue[str]") -> None:
        while True:
            text = await outbox.get()
            try:
                await ws.send(text)
            except Exception:
                logger.debug("Captivate sender failed; stopping", exc_info=True)
                break

    def _enqueue_text(self, text: str) -> None:
        outbox = self._outbox
        if outbox is None:
            logger.debug("dropping outbound message; transport is closed")
            return
        outbox.put_nowait(text)

    def _report(self, status: InstanceStatus, message: Optional[str] = None) -> None:
        if self.on_status is None:
            return
        try:
            self.on_status(status, message)
        except Exception:
            logger.debug("status callback failed", exc_info=True)
