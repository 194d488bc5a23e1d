from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

pygame = pytest.importorskip("pygame")

from core.state import DeviceRemoved, InputKind, RawInputEvent  # noqa: E402
from devices.gamepad import GamepadReader  # noqa: E402


def reader_with_pad(instance_id=3, num_axes=6):
    reader = GamepadReader()
    reader._joysticks[instance_id] = MagicMock(**{"get_numaxes.return_value": num_axes})
    return reader


def test_buttons_and_axes():
    r = reader_with_pad()
    down = SimpleNamespace(type=pygame.JOYBUTTONDOWN, instance_id=3, button=2)
    up = SimpleNamespace(type=pygame.JOYBUTTONUP, instance_id=3, button=2)
    axis = SimpleNamespace(type=pygame.JOYAXISMOTION, instance_id=3, axis=1, value=-0.25)
    assert r.translate(down) == [RawInputEvent(3, 2, InputKind.BUTTON, 1)]
    assert r.translate(up) == [RawInputEvent(3, 2, InputKind.BUTTON, 0)]
    assert r.translate(axis) == [RawInputEvent(3, 1, InputKind.AXIS, -0.25)]


def test_hat_becomes_two_axes_after_the_sticks():
    r = reader_with_pad()
    hat = SimpleNamespace(type=pygame.JOYHATMOTION, instance_id=3, hat=0, value=(1, 1))
    # pygame reports up as +1; the mapping tables expect up as -1
    assert r.translate(hat) == [RawInputEvent(3, 6, InputKind.AXIS, 1.0),
                                RawInputEvent(3, 7, InputKind.AXIS, -1.0)]
    hat.value = (1, 0)
    assert r.translate(hat) == [RawInputEvent(3, 7, InputKind.AXIS, 0.0)]


def test_removal_is_reported_once():
    r = reader_with_pad()
    seen = []
    r.subscribe(seen.append)
    removed = SimpleNamespace(type=pygame.JOYDEVICEREMOVED, instance_id=3)
    assert r.translate(removed) == []
    assert r.translate(removed) == []
    assert seen == [DeviceRemoved(3)]
