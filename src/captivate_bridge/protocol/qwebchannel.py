"""Callback-style QWebChannel client.

Captivate publishes its automation ``scheduler`` object over Qt's
QWebChannel protocol (the 5.9 dialect). Every remote method takes a
trailing completion callback, signals are connected with
``object.signal.connect(callback)`` and property values are mirrored
locally. The channel does not own a socket: it is handed a ``send``
function for outbound text and fed inbound text via :meth:`handle_message`.
"""

from __future__ import annotations

import json
import logging
from enum import IntEnum
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from captivate_bridge.logging_utils import maybe_enable_debug_logger

logger = logging.getLogger(__name__)

_CHANNEL_DEBUG = maybe_enable_debug_logger(logger, "CAPTIVATE_BRIDGE_CHANNEL_DEBUG")

_QOBJECT_MARKER = "__QObject*__"


class QWebChannelMessageType(IntEnum):
    SIGNAL = 1
    PROPERTY_UPDATE = 2
    INIT = 3
    IDLE = 4
    DEBUG = 5
    INVOKE_METHOD = 6
    CONNECT_TO_SIGNAL = 7
    DISCONNECT_FROM_SIGNAL = 8
    SET_PROPERTY = 9
    RESPONSE = 10


class QSignal:
    """Remote signal proxy; listeners receive the signal arguments positionally."""

    def __init__(self, owner: "QObjectProxy", name: str, index: int, *, is_property_notify: bool = False) -> None:
        self.owner = owner
        self.name = name
        self.index = int(index)
        self.is_property_notify = is_property_notify
        self._listeners: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        if not callable(callback):
            raise TypeError(f"Bad callback given to connect to signal {self.name}")
        self._listeners.append(callback)
        if self.name != "destroyed" and not self.is_property_notify and len(self._listeners) == 1:
            self.owner.channel.exec(
                {
                    "type": QWebChannelMessageType.CONNECT_TO_SIGNAL,
                    "object": self.owner.object_id,
                    "signal": self.index,
                }
            )

    def disconnect(self, callback: Callable[..., Any]) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            logger.debug("disconnect: callback was not connected to %s", self.name)
            return
        if self.name != "destroyed" and not self.is_property_notify and not self._listeners:
            self.owner.channel.exec(
                {
                    "type": QWebChannelMessageType.DISCONNECT_FROM_SIGNAL,
                    "object": self.owner.object_id,
                    "signal": self.index,
                }
            )

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, args: List[Any]) -> None:
        for callback in list(self._listeners):
            try:
                callback(*args)
            except Exception:
                logger.debug("signal %s listener failed", self.name, exc_info=True)


class QObjectProxy:
    """Local stand-in for one object published on the channel."""

    def __init__(self, object_id: str, data: Mapping[str, Any], channel: "QWebChannel") -> None:
        self.object_id = object_id
        self.channel = channel
        self._methods: Dict[str, Callable[..., None]] = {}
        self._signals: Dict[str, QSignal] = {}
        self._signals_by_index: Dict[int, QSignal] = {}
        self._property_names: Dict[int, str] = {}
        self._property_values: Dict[int, Any] = {}
        self._enums: Dict[str, Any] = dict(data.get("enums") or {})
        channel.objects[object_id] = self

        for entry in data.get("methods") or []:
            name, index = entry[0], int(entry[1])
            self._methods[str(name)] = self._make_method(str(name), index)

        for entry in data.get("properties") or []:
            self._add_property(entry)

        for entry in data.get("signals") or []:
            self._add_signal(entry, is_property_notify=False)

    # ------------------------------------------------------------------
    def _make_method(self, name: str, index: int) -> Callable[..., None]:
        def invoke(*args: Any) -> None:
            call_args = list(args)
            callback: Optional[Callable[[Any], None]] = None
            if call_args and callable(call_args[-1]):
                callback = call_args.pop()

            def _on_response(response: Any) -> None:
                if callback is not None:
                    callback(self.channel.unwrap_qobject(response))

            self.channel.exec(
                {
                    "type": QWebChannelMessageType.INVOKE_METHOD,
                    "method": index,
                    "args": call_args,
                    "object": self.object_id,
                },
                _on_response,
            )

        invoke.__name__ = name
        return invoke

    def _add_signal(self, entry: List[Any], *, is_property_notify: bool, property_name: str | None = None) -> None:
        raw_name, index = entry[0], int(entry[1])
        # Qt sends 1 as the name when the notify signal is ``<property>Changed``.
        if raw_name == 1 and property_name is not None:
            name = f"{property_name}Changed"
        else:
            name = str(raw_name)
        signal = QSignal(self, name, index, is_property_notify=is_property_notify)
        self._signals[name] = signal
        self._signals_by_index[index] = signal

    def _add_property(self, entry: List[Any]) -> None:
        index, name, notify, value = int(entry[0]), str(entry[1]), entry[2], entry[3]
        self._property_names[index] = name
        self._property_values[index] = self.channel.unwrap_qobject(value)
        if notify and notify[0]:
            self._add_signal(list(notify), is_property_notify=True, property_name=name)

    # ------------------------------------------------------------------
    def property_update(self, signals: Mapping[str, Any], properties: Mapping[str, Any]) -> None:
        for raw_index, value in (properties or {}).items():
            self._property_values[int(raw_index)] = self.channel.unwrap_qobject(value)
        for raw_index, args in (signals or {}).items():
            self.signal_emitted(int(raw_index), args)

    def signal_emitted(self, index: int, args: Any) -> None:
        signal = self._signals_by_index.get(int(index))
        if signal is None:
            logger.debug("%s: signal index %s is unknown", self.object_id, index)
            return
        if not isinstance(args, list):
            args = [] if args is None else [args]
        signal.emit([self.channel.unwrap_qobject(arg) for arg in args])

    def set_property(self, name: str, value: Any) -> None:
        for index, prop_name in self._property_names.items():
            if prop_name == name:
                self._property_values[index] = value
                self.channel.exec(
                    {
                        "type": QWebChannelMessageType.SET_PROPERTY,
                        "property": index,
                        "value": value,
                        "object": self.object_id,
                    }
                )
                return
        raise AttributeError(f"{self.object_id} has no property {name!r}")

    def members(self) -> Iterator[Tuple[str, Any]]:
        """Yield ``(name, member)`` for every method, signal and property."""

        yield from self._methods.items()
        yield from self._signals.items()
        for index, name in self._property_names.items():
            yield name, self._property_values.get(index)
        yield from self._enums.items()

    def __getattr__(self, name: str) -> Any:
        # Captivate method names start with an underscore, so only the
        # instance dict is consulted here; it is empty while __init__ runs.
        state = self.__dict__
        if "_methods" not in state:
            raise AttributeError(name)
        if name in state["_methods"]:
            return state["_methods"][name]
        if name in state["_signals"]:
            return state["_signals"][name]
        for index, prop_name in state["_property_names"].items():
            if prop_name == name:
                return state["_property_values"].get(index)
        if name in state["_enums"]:
            return state["_enums"][name]
        raise AttributeError(f"{state.get('object_id')} has no member {name!r}")


class QWebChannel:
    """Client side of a QWebChannel session."""

    def __init__(
        self,
        send: Callable[[str], None],
        init_callback: Optional[Callable[["QWebChannel"], None]] = None,
    ) -> None:
        self._send = send
        self._init_callback = init_callback
        self._exec_id = 0
        self._exec_callbacks: Dict[int, Callable[[Any], None]] = {}
        self.objects: Dict[str, QObjectProxy] = {}
        self.initialized = False
        self.exec({"type": QWebChannelMessageType.INIT}, self._on_init)

    @property
    def pending_responses(self) -> int:
        return len(self._exec_callbacks)

    def exec(self, data: Dict[str, Any], callback: Optional[Callable[[Any], None]] = None) -> None:
        if callback is not None:
            data = dict(data)
            data["id"] = self._exec_id
            self._exec_callbacks[self._exec_id] = callback
            self._exec_id += 1
        text = json.dumps(data, separators=(",", ":"))
        if _CHANNEL_DEBUG:
            logger.debug("QWebChannel -> %s", text)
        self._send(text)

    def handle_message(self, raw: str | bytes) -> None:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        if not isinstance(data, Mapping):
            logger.debug("QWebChannel: ignoring non-object message %r", raw)
            return
        try:
            msg_type = QWebChannelMessageType(int(data.get("type")))
        except (TypeError, ValueError):
            logger.debug("QWebChannel: invalid message type in %r", raw)
            return

        if msg_type == QWebChannelMessageType.SIGNAL:
            self._handle_signal(data)
        elif msg_type == QWebChannelMessageType.RESPONSE:
            self._handle_response(data)
        elif msg_type == QWebChannelMessageType.PROPERTY_UPDATE:
            self._handle_property_update(data)
        else:
            logger.debug("QWebChannel: unhandled message type %s", msg_type.name)

    def unwrap_qobject(self, response: Any) -> Any:
        if isinstance(response, list):
            return [self.unwrap_qobject(item) for item in response]
        if not isinstance(response, Mapping) or not response.get(_QOBJECT_MARKER):
            return response
        object_id = str(response.get("id"))
        existing = self.objects.get(object_id)
        if existing is not None:
            return existing
        data = response.get("data")
        if not isinstance(data, Mapping):
            logger.debug("QWebChannel: cannot unwrap unknown QObject %s", object_id)
            return None
        return QObjectProxy(object_id, data, self)

    # ------------------------------------------------------------------
    def _on_init(self, data: Any) -> None:
        if isinstance(data, Mapping):
            for object_id, object_data in data.items():
                QObjectProxy(str(object_id), object_data, self)
        self.initialized = True
        if self._init_callback is not None:
            self._init_callback(self)
        self.exec({"type": QWebChannelMessageType.IDLE})

    def _handle_signal(self, data: Mapping[str, Any]) -> None:
        obj = self.objects.get(str(data.get("object")))
        if obj is None:
            logger.debug("QWebChannel: signal for unknown object %s", data.get("object"))
            return
        obj.signal_emitted(int(data.get("signal", -1)), data.get("args") or [])

    def _handle_response(self, data: Mapping[str, Any]) -> None:
        if "id" not in data:
            logger.debug("QWebChannel: response without id %r", data)
            return
        callback = self._exec_callbacks.pop(int(data["id"]), None)
        if callback is None:
            logger.debug("QWebChannel: no callback registered for response %s", data["id"])
            return
        callback(data.get("data"))

    def _handle_property_update(self, data: Mapping[str, Any]) -> None:
        for item in data.get("data") or []:
            obj = self.objects.get(str(item.get("object")))
            if obj is None:
                logger.debug("QWebChannel: property update for unknown object %s", item.get("object"))
                continue
            obj.property_update(item.get("signals") or {}, item.get("properties") or {})
        self.exec({"type": QWebChannelMessageType.IDLE})
