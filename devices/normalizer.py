"""Input Normalizer: raw device events -> symbolic events with a full controller snapshot

Subscribers register for one of `EVENTS`:
  attach(device_id, snapshot)       remove(device_id)
  move(name, value, snapshot)       press(name, snapshot)
  release(name, snapshot)           use(name, snapshot)

`use` follows every move/press/release and is the only event the translation
engine needs.
"""
import logging
from collections import defaultdict
from typing import Dict, Optional

from core.state import (ControllerSnapshot, DeviceAttached, DeviceRemoved, InputKind,
                        LogicalInputEvent, RawInputEvent)
from devices.mappings import build_mapping_table, select_mapping

LOG = logging.getLogger("cncpad.normalizer")

EVENTS = ("attach", "remove", "move", "press", "release", "use")


class _DeviceRecord:
    def __init__(self, device_id, description, model, mapping):
        self.device_id = device_id
        self.description = description
        self.model = model
        self.mapping = mapping
        self.axes: Dict[int, float] = {}
        self.buttons: Dict[int, int] = {}

    def name_for(self, kind: InputKind, index: int) -> Optional[str]:
        section = "buttons" if kind is InputKind.BUTTON else "axes"
        return self.mapping.get(section, {}).get(index)

    def snapshot(self) -> ControllerSnapshot:
        axis_states = {}
        for idx, val in self.axes.items():
            axis_states[self.name_for(InputKind.AXIS, idx) or str(idx)] = val
        button_states = {}
        for idx, val in self.buttons.items():
            button_states[self.name_for(InputKind.BUTTON, idx) or str(idx)] = val
        return ControllerSnapshot(self.device_id, self.description, axis_states, button_states)


class InputNormalizer:
    def __init__(self, extra_mappings: Optional[dict] = None):
        self._table = build_mapping_table(extra_mappings)
        self._devices: Dict[int, _DeviceRecord] = {}
        self._subs = defaultdict(list)

    def on(self, event_name: str, handler):
        if event_name not in EVENTS:
            LOG.error("unknown normalizer event %s", event_name)
            return
        self._subs[event_name].append(handler)
        # late attach subscribers still learn about pads that are already present
        if event_name == "attach":
            for record in list(self._devices.values()):
                handler(record.device_id, record.snapshot())

    def off(self, event_name: str, handler):
        if handler in self._subs.get(event_name, []):
            self._subs[event_name].remove(handler)

    def _emit(self, event_name, *args):
        for handler in list(self._subs.get(event_name, [])):
            try:
                handler(*args)
            except Exception:
                LOG.exception("%s handler failed", event_name)

    def num_devices(self) -> int:
        return len(self._devices)

    def is_connected(self) -> bool:
        return bool(self._devices)

    @property
    def primary_device_id(self) -> Optional[int]:
        # dicts keep insertion order, so the first key is the earliest attached pad
        return next(iter(self._devices), None)

    def snapshot(self, device_id) -> Optional[ControllerSnapshot]:
        record = self._devices.get(device_id)
        return record.snapshot() if record else None

    def feed(self, event):
        """Dispatch any device event produced by a reader."""
        if isinstance(event, DeviceAttached):
            self.attach(event.device_id, event.description)
        elif isinstance(event, DeviceRemoved):
            self.remove(event.device_id)
        elif isinstance(event, RawInputEvent):
            self.handle(event)
        else:
            LOG.warning("ignoring unknown device event %r", event)

    def attach(self, device_id, description: str):
        model, mapping = select_mapping(description, self._table)
        record = _DeviceRecord(device_id, description, model, mapping)
        self._devices[device_id] = record
        LOG.info("attach %s (id %s) using %s mapping", description, device_id, model)
        if len(self._devices) > 1:
            LOG.warning("There are %d game controllers attached. Operate with caution!", len(self._devices))
        self._emit("attach", device_id, record.snapshot())

    def remove(self, device_id):
        if self._devices.pop(device_id, None) is None:
            LOG.debug("remove for unknown device %s", device_id)
            return
        LOG.info("remove id %s", device_id)
        self._emit("remove", device_id)

    def handle(self, raw: RawInputEvent) -> Optional[LogicalInputEvent]:
        record = self._devices.get(raw.device_id)
        if record is None:
            LOG.debug("event from unattached device %s ignored: %s", raw.device_id, raw)
            return None

        if raw.kind is InputKind.BUTTON:
            record.buttons[raw.index] = 1 if raw.value else 0
        else:
            record.axes[raw.index] = float(raw.value)

        name = record.name_for(raw.kind, raw.index)
        LOG.debug("%s %d=%s on %s -> %s", raw.kind.value, raw.index, raw.value, raw.device_id, name)
        if name is None:
            LOG.debug("unmapped %s %d on %s (%s)", raw.kind.value, raw.index, record.description, record.model)
            return None

        snapshot = record.snapshot()
        event = LogicalInputEvent(name, raw.kind, raw.value)
        if raw.kind is InputKind.AXIS:
            self._emit("move", name, raw.value, snapshot)
        elif raw.value:
            self._emit("press", name, snapshot)
        else:
            self._emit("release", name, snapshot)
        self._emit("use", name, snapshot)
        return event
