"""Game controller reader using pygame.joystick

Watches for controllers being plugged and unplugged and emits `core.state`
device events to subscribers:
  DeviceAttached(device_id, description)
  DeviceRemoved(device_id)
  RawInputEvent(device_id, index, kind, value)

Hats are flattened into axes placed after the stick axes: hat n becomes axis
`num_axes + 2n` (x) and `num_axes + 2n + 1` (y, up = -1).
"""
import logging
import os
import threading
import time

from core.reader import DeviceReader
from core.state import DeviceAttached, DeviceRemoved, InputKind, RawInputEvent

try:
    import pygame
except Exception:
    pygame = None

LOG = logging.getLogger("cncpad.gamepad")

POLL_HZ = 60.0


class GamepadReader(DeviceReader):
    def __init__(self, poll_hz: float = POLL_HZ):
        super().__init__()
        self._poll_hz = poll_hz
        self._t = None
        self._stop = threading.Event()
        self._joysticks = {}  # instance id -> pygame Joystick
        self._hats = {}       # (instance id, hat) -> (x, y)

    def start(self):
        if pygame is None:
            LOG.warning("pygame not available; GamepadReader disabled")
            return
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name="GamepadReader", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        if self._t:
            self._t.join(timeout=1.0)

    def _init_pygame(self):
        # keep receiving joystick events without a focused window
        os.environ.setdefault("SDL_JOYSTICK_ALLOW_BACKGROUND_EVENTS", "1")
        pygame.init()
        pygame.joystick.init()
        LOG.info("Waiting for a game controller to be connected.")

    def _attach(self, device_index):
        js = pygame.joystick.Joystick(device_index)
        js.init()
        instance_id = js.get_instance_id()
        self._joysticks[instance_id] = js
        name = js.get_name() or ""
        LOG.info(f"Found joystick: {name} (instance {instance_id}, axes={js.get_numaxes()}, "
                 f"buttons={js.get_numbuttons()}, hats={js.get_numhats()})")
        self._emit(DeviceAttached(instance_id, name))

    def _detach(self, instance_id):
        if self._joysticks.pop(instance_id, None) is None:
            return
        for key in [k for k in self._hats if k[0] == instance_id]:
            del self._hats[key]
        self._emit(DeviceRemoved(instance_id))

    def _hat_events(self, instance_id, hat, value):
        js = self._joysticks.get(instance_id)
        if js is None:
            return []
        base = js.get_numaxes() + 2 * hat
        old_x, old_y = self._hats.get((instance_id, hat), (0, 0))
        x, y = value
        self._hats[(instance_id, hat)] = (x, y)
        events = []
        if x != old_x:
            events.append(RawInputEvent(instance_id, base, InputKind.AXIS, float(x)))
        if y != old_y:
            events.append(RawInputEvent(instance_id, base + 1, InputKind.AXIS, float(-y)))
        return events

    def translate(self, ev):
        """Turn one pygame event into zero or more device events (attach/remove handled here)."""
        if ev.type == pygame.JOYDEVICEADDED:
            self._attach(ev.device_index)
            return []
        if ev.type == pygame.JOYDEVICEREMOVED:
            self._detach(ev.instance_id)
            return []
        if ev.type == pygame.JOYAXISMOTION:
            return [RawInputEvent(ev.instance_id, ev.axis, InputKind.AXIS, float(ev.value))]
        if ev.type == pygame.JOYBUTTONDOWN:
            return [RawInputEvent(ev.instance_id, ev.button, InputKind.BUTTON, 1)]
        if ev.type == pygame.JOYBUTTONUP:
            return [RawInputEvent(ev.instance_id, ev.button, InputKind.BUTTON, 0)]
        if ev.type == pygame.JOYHATMOTION:
            return self._hat_events(ev.instance_id, ev.hat, ev.value)
        return []

    def _loop(self):
        self._init_pygame()
        period = 1.0 / self._poll_hz
        while not self._stop.is_set():
            try:
                for ev in pygame.event.get():
                    for raw in self.translate(ev):
                        self._emit(raw)
            except Exception:
                LOG.exception("error reading game controllers; rescanning")
                for instance_id in list(self._joysticks):
                    self._detach(instance_id)
                time.sleep(1.0)
                # re-initialising replays JOYDEVICEADDED for pads still present
                pygame.joystick.quit()
                pygame.joystick.init()
                continue
            self._stop.wait(period)
        pygame.joystick.quit()
