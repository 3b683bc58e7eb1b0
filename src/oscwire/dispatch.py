"""Route decoded OSC messages to handlers registered by address pattern."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .errors import OscError
from .osc import (
    DEFAULT_OPTIONS,
    OscBundle,
    OscMessage,
    Options,
    decode_packet,
    format_datagram,
)
from .pattern import CompiledPattern, compile_pattern
from .primitives import BytesLike
from .timetag import Timetag

logger = logging.getLogger(__name__)

Handler = Callable[[OscMessage, Timetag], Any]


class Dispatcher:
    """Delivers incoming packets to handlers whose pattern matches the address.

    Handlers are called as ``handler(message, timetag)``, where ``timetag``
    is that of the innermost enclosing bundle (``Timetag.IMMEDIATELY`` for a
    bare message). Execution is immediate: scheduling by timetag is left to
    the handler::

        dispatcher = Dispatcher()
        dispatcher.on("/mixer/*/gain", set_gain)
        dispatcher.dispatch_datagram(data)
    """

    def __init__(self, options: Options | None = None) -> None:
        self._options = options or DEFAULT_OPTIONS
        self._routes: dict[str, tuple[CompiledPattern, list[Handler]]] = {}
        self._default: Handler | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<Dispatcher ({len(self._routes)} patterns)>"

    # -- Registration ----------------------------------------------------------

    def on(self, pattern: str, handler: Handler) -> CompiledPattern:
        """Register ``handler`` for addresses matching ``pattern``.

        Raises ``PatternError`` if the pattern is invalid.
        """
        compiled = compile_pattern(pattern)
        with self._lock:
            _, handlers = self._routes.setdefault(pattern, (compiled, []))
            handlers.append(handler)
        return compiled

    def off(self, pattern: str, handler: Handler) -> None:
        """Remove a previously registered handler."""
        with self._lock:
            route = self._routes.get(pattern)
            if route is None:
                return
            handlers = route[1]
            try:
                handlers.remove(handler)
            except ValueError:
                pass
            if not handlers:
                self._routes.pop(pattern, None)

    def set_default(self, handler: Handler | None) -> None:
        """Handler for messages no pattern matches (``None`` to clear)."""
        with self._lock:
            self._default = handler

    def handlers_for(self, address: str) -> list[Handler]:
        with self._lock:
            routes = list(self._routes.values())
            default = self._default
        result: list[Handler] = []
        for compiled, handlers in routes:
            if compiled.match(address):
                result.extend(handlers)
        if not result and default is not None:
            result.append(default)
        return result

    # -- Delivery --------------------------------------------------------------

    def dispatch(
        self,
        packet: OscMessage | OscBundle,
        timetag: Timetag = Timetag.IMMEDIATELY,
    ) -> int:
        """Deliver a decoded packet. Returns the number of handler calls made."""
        if isinstance(packet, OscBundle):
            return sum(
                self.dispatch(message, tag) for message, tag in packet.messages()
            )
        handlers = self.handlers_for(packet.address)
        if not handlers:
            logger.debug("No handler for %s", packet.address)
        for handler in handlers:
            try:
                handler(packet, timetag)
            except Exception:
                logger.exception("Handler error for %s", packet.address)
        return len(handlers)

    def dispatch_datagram(self, data: BytesLike) -> int:
        """Decode and deliver a datagram; malformed datagrams are dropped."""
        try:
            packet = decode_packet(data, self._options)
        except OscError as exc:
            logger.warning(
                "Dropping malformed datagram (%d bytes): %s", len(data), exc
            )
            logger.debug("Malformed datagram:\n%s", format_datagram(data))
            return 0
        return self.dispatch(packet)
