"""CNCjs session: socket.io connection, access token and serial port ownership

The socket is opened only while at least one game controller is attached, so
unplugging and replugging the pad also restarts a stuck connection. Inbound
socket messages are posted onto the `EventLoop`; subscribers never run on the
socket.io thread.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone

import jwt
import socketio

from core.config import parse_lifetime, read_cncrc_secret
from gcode.dialects import cncjs_controller_type

LOG = logging.getLogger("cncpad.connector")

OPEN_RETRY_INTERVAL = 2.0  # seconds between serial port open requests
CONNECT_RETRY_INTERVAL = 2.0
AWAITING = "Waiting for a game controller to be connected."

# traffic that is only interesting when debugging
TRACED_MESSAGES = ("serialport:read", "serialport:write", "controller:settings",
                   "controller:state", "workflow:state")


def generate_access_token(payload: dict, secret: str, lifetime) -> str:
    claims = dict(payload)
    claims["exp"] = datetime.now(timezone.utc) + parse_lifetime(lifetime)
    token = jwt.encode(claims, secret, algorithm="HS256")
    # PyJWT < 2 returns bytes
    return token.decode("ascii") if isinstance(token, bytes) else token


class _BaseConnector:
    def __init__(self, options, loop):
        self.options = options
        self.loop = loop
        self.serial_connected = False
        self._subs = defaultdict(list)

    def attach_to(self, normalizer):
        """Follow controller attach/remove events to open and close the session."""
        self._normalizer = normalizer
        if not normalizer.is_connected():
            LOG.info(AWAITING)
        normalizer.on("attach", self._on_attach)
        normalizer.on("remove", self._on_remove)

    def _on_attach(self, device_id, snapshot=None):
        num_devices = self._normalizer.num_devices()
        if num_devices == 1:
            self.connect_server()

    def _on_remove(self, device_id):
        if self._normalizer.num_devices() < 1:
            self.disconnect_server()
            LOG.info(AWAITING)

    def subscribe_message(self, message, callback):
        self._subs[message].append(callback)
        LOG.debug("Ready to listen for message '%s' from the socket.", message)

    def _deliver(self, message, *args):
        for cb in list(self._subs.get(message, [])):
            cb(*args)

    def connect_server(self):
        raise NotImplementedError

    def disconnect_server(self):
        raise NotImplementedError

    def emit(self, event, *args):
        raise NotImplementedError


class SimulatedConnector(_BaseConnector):
    """Never opens a socket; the dispatcher logs every directive instead."""

    def connect_server(self):
        LOG.info("Sending open request for %s at baud rate %s", self.options.port, self.options.baudrate)
        LOG.info("Connection to %s successful.", self.options.port)

    def disconnect_server(self):
        LOG.info("Connection closed to %s.", self.options.port)

    def emit(self, event, *args):
        LOG.info("simulated emit %s %s", event, args)


class CncjsConnector(_BaseConnector):
    def __init__(self, options, loop, client=None):
        super().__init__(options, loop)
        # raises ConfigError for an unknown dialect
        self.controller_type = cncjs_controller_type(options.controller_type)
        self._sio = client or socketio.Client(reconnection=True)
        self._stop = threading.Event()
        self._t = None
        self._open_timer = None
        self._registered = set()
        self._handlers = {
            "connect": self._on_connect,
            "connect_error": self._on_error,
            "disconnect": self._on_close,
            "serialport:open": self._on_serial_open,
            "serialport:close": self._on_serial_close,
            "serialport:error": self._on_serial_error,
        }
        for message in self._handlers:
            self._relay(message)
        for message in TRACED_MESSAGES:
            self._relay(message)

    @property
    def server(self):
        return f"ws://{self.options.socket_address}:{self.options.socket_port}"

    def _relay(self, message):
        if message in self._registered:
            return
        self._registered.add(message)

        def relay(*args):
            self.loop.post(self._dispatch, message, *args)

        self._sio.on(message, relay)

    def _dispatch(self, message, *args):
        handler = self._handlers.get(message)
        if handler is not None:
            handler(*args)
        if message in TRACED_MESSAGES:
            LOG.debug("%s %s", message, args)
        self._deliver(message, *args)

    def subscribe_message(self, message, callback):
        self._relay(message)
        super().subscribe_message(message, callback)

    def _token(self):
        # re-read on every connect; CNCjs may have been restarted with a new secret
        secret = self.options.secret or read_cncrc_secret()
        return generate_access_token({"id": "", "name": "cncjs-pendant"}, secret,
                                     self.options.access_token_lifetime)

    def connect_server(self):
        if self._t and self._t.is_alive():
            return
        token = self._token()
        self._stop.clear()
        self._t = threading.Thread(target=self._connect_loop, args=(token,), name="CncjsConnector", daemon=True)
        self._t.start()

    def _connect_loop(self, token):
        url = f"http://{self.options.socket_address}:{self.options.socket_port}?token={token}"
        while not self._stop.is_set() and not self._sio.connected:
            LOG.info("Attempting connect to %s", self.server)
            try:
                self._sio.connect(url)
                return
            except socketio.exceptions.ConnectionError as e:
                LOG.warning("unable to connect to %s: %s", self.server, e)
                self._stop.wait(CONNECT_RETRY_INTERVAL)

    def disconnect_server(self):
        self._stop.set()
        self._cancel_open()
        self.serial_connected = False
        if self._sio.connected:
            self._sio.disconnect()

    def emit(self, event, *args):
        self._sio.emit(event, args)

    # session events, run on the loop thread
    def _on_connect(self):
        LOG.info("Connected to %s", self.server)
        self.open_serial()

    def _on_error(self, *args):
        LOG.error("Error message received from cncjs: %s", args)

    def _on_close(self, *args):
        self.serial_connected = False
        self._cancel_open()
        LOG.info("CNCjs closed connection to %s.", self.server)

    def _on_serial_open(self, *args):
        self._cancel_open()
        self.serial_connected = True
        LOG.info("Connection to %s successful.", self.options.port)

    def _on_serial_close(self, *args):
        self.serial_connected = False
        LOG.info("Connection closed to %s.", self.options.port)
        self.open_serial()

    def _on_serial_error(self, *args):
        self.serial_connected = False
        LOG.error("Error opening serial port %s", self.options.port)
        self.open_serial()

    def _cancel_open(self):
        if self._open_timer is not None:
            self._open_timer.cancel()
            self._open_timer = None

    def open_serial(self):
        """Ask CNCjs to open the port, repeating until it reports serialport:open.

        An 'open' emit is only a request and the server never says it is ready
        for one, so keep asking.
        """
        self._cancel_open()
        if self.serial_connected or not self._sio.connected:
            return
        LOG.info("Sending open request for %s at baud rate %s", self.options.port, self.options.baudrate)
        self._sio.emit("open", (self.options.port, {
            "baudrate": int(self.options.baudrate),
            "controllerType": self.controller_type,
        }))
        self._open_timer = self.loop.call_later(OPEN_RETRY_INTERVAL, self.open_serial)
