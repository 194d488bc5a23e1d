"""Directive Dispatcher: the only path from the g-code senders to the CNCjs session"""
import logging
from typing import Optional

LOG = logging.getLogger("cncpad.dispatcher")


class DirectiveDispatcher:
    """Forwards directives to a connector, fire-and-forget and in call order.

    When the connector has no open serial port (or runs simulated) the
    directive is logged instead and dropped; nothing is queued for later.
    """

    def __init__(self, connector, port: str):
        self._connector = connector
        self._port = port

    def send_directive(self, kind: str, directive: str, data: Optional[str] = None):
        if self._connector.serial_connected:
            args = (self._port, directive) if data is None else (self._port, directive, data)
            LOG.debug("%s %s", kind, " ".join(str(a) for a in args[1:]))
            try:
                self._connector.emit(kind, *args)
            except Exception:
                LOG.exception("failed to send %s %s %s", kind, directive, data)
            return

        if kind == "command":
            if directive == "gcode":
                LOG.info("Gcode %s", data)
            else:
                LOG.info("Command %s", directive)
        else:
            LOG.warning("Unknown command %s: %s, %s", kind, directive, data)

    def subscribe(self, message: str, callback):
        """Receive inbound `message` traffic (e.g. 'serialport:read') from the connector."""
        self._connector.subscribe_message(message, callback)
