import logging
from unittest.mock import MagicMock

from transport.dispatcher import DirectiveDispatcher


def test_forwards_when_serial_port_is_open():
    connector = MagicMock(serial_connected=True)
    d = DirectiveDispatcher(connector, "/dev/ttyUSB0")
    d.send_directive("command", "gcode", "G90")
    d.send_directive("command", "unlock")
    assert [c.args for c in connector.emit.call_args_list] == [
        ("command", "/dev/ttyUSB0", "gcode", "G90"),
        ("command", "/dev/ttyUSB0", "unlock"),
    ]


def test_logs_and_drops_when_not_connected(caplog):
    caplog.set_level(logging.INFO)
    connector = MagicMock(serial_connected=False)
    d = DirectiveDispatcher(connector, "/dev/ttyUSB0")
    d.send_directive("command", "gcode", "G28")
    d.send_directive("command", "feedhold")
    d.send_directive("write", "?")
    connector.emit.assert_not_called()
    assert "Gcode G28" in caplog.text
    assert "Command feedhold" in caplog.text
    assert "Unknown command write" in caplog.text


def test_emit_failure_is_logged(caplog):
    connector = MagicMock(serial_connected=True)
    connector.emit.side_effect = RuntimeError("socket gone")
    DirectiveDispatcher(connector, "COM3").send_directive("command", "gcode", "G0 X1")
    assert "failed to send" in caplog.text


def test_subscribe_delegates_to_connector():
    connector = MagicMock()
    cb = MagicMock()
    d = DirectiveDispatcher(connector, "COM3")
    d.subscribe("serialport:read", cb)
    connector.subscribe_message.assert_called_once_with("serialport:read", cb)
