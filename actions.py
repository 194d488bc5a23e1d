"""Input Translation Engine: controller events -> jog motion and CNC operations

Every `use` event is judged against the whole controller snapshot, never the
single input in isolation, because modifier combinations must be read
together. The engine keeps only the stick latches between events; the jog
vector is recomputed from scratch each time and a heartbeat timer replays it
to the g-code sender once per jog interval while it is non-zero.
"""
import inspect
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.config import ConfigError, JogSettings
from core.modifiers import Condition, ModifierState
from core.state import ControllerSnapshot, JogVector

LOG = logging.getLogger("cncpad.actions")

HAT_X = "AXIS_HAT_X"
HAT_Y = "AXIS_HAT_Y"
HATS = (HAT_X, HAT_Y)

LEFT_STICK_TOGGLE = "KEYCODE_BUTTON_THUMBL"
RIGHT_STICK_TOGGLE = "KEYCODE_BUTTON_THUMBR"
LEFT_STICK_AXES = ("AXIS_X", "AXIS_Y")
RIGHT_STICK_AXES = ("AXIS_RZ", "AXIS_Z")


@dataclass(frozen=True)
class ActionEntry:
    action: Optional[str]  # None disables the (trigger, condition) pair
    params: Tuple = ()


def _builtin(table):
    return {(trigger, cond): ActionEntry(action) for (trigger, cond), action in table.items()}


U, S, XY = Condition.UNMODIFIED, Condition.SHIFT_KEY_ONLY, Condition.DEADMAN_XY_ONLY

BUILTIN_ACTIONS: Dict[Tuple[str, Condition], ActionEntry] = _builtin({
    # D-pad while shifted: zero the work coordinates, or probe
    ("AXIS_HAT_X-", S): "record_gantry_zero_wcs_x",
    ("AXIS_HAT_X+", S): "record_gantry_zero_wcs_y",
    ("AXIS_HAT_Y-", S): "record_gantry_zero_wcs_z",
    ("AXIS_HAT_Y+", S): "perform_probing",
    ("KEYCODE_BACK", S): "controller_reset",
    ("KEYCODE_BACK", U): "controller_unlock",
    ("KEYCODE_BUTTON_START", S): "controller_cyclestart",
    ("KEYCODE_BUTTON_START", U): "controller_feedhold",
    ("KEYCODE_BUTTON_START", XY): "perform_homing",
    ("KEYCODE_BUTTON_A", S): "record_gantry_return",
    ("KEYCODE_BUTTON_Y", S): "record_gantry_home",
    ("KEYCODE_BUTTON_A", XY): "move_gantry_return",
    ("KEYCODE_BUTTON_B", XY): "move_gantry_probe_pos",
    ("KEYCODE_BUTTON_X", XY): "move_gantry_wcs_home",
    ("KEYCODE_BUTTON_Y", XY): "move_gantry_home",
    ("KEYCODE_BUTTON_A", U): "controller_start",
    ("KEYCODE_BUTTON_B", U): "controller_stop",
    ("KEYCODE_BUTTON_X", U): "controller_resume",
    ("KEYCODE_BUTTON_Y", U): "controller_pause",
})


def parse_actions_map(raw) -> Dict[Tuple[str, Condition], ActionEntry]:
    """Validate an `actions_map` option: {trigger: {condition: name | {action, params}}}."""
    result = {}
    if not raw:
        return result
    if not isinstance(raw, dict):
        raise ConfigError("actions_map must be a mapping of trigger -> condition -> action")
    for trigger, conditions in raw.items():
        if not isinstance(conditions, dict):
            raise ConfigError(f"actions_map[{trigger}] must be a mapping of condition -> action")
        for cond_name, entry in conditions.items():
            try:
                cond = Condition(cond_name)
            except ValueError:
                raise ConfigError(f"actions_map[{trigger}]: unknown condition {cond_name!r}; "
                                  f"use one of {', '.join(c.value for c in Condition)}")
            if entry is None or isinstance(entry, str):
                result[(str(trigger), cond)] = ActionEntry(entry or None)
            elif isinstance(entry, dict) and "action" in entry:
                params = entry.get("params") or ()
                if not isinstance(params, (list, tuple)):
                    params = (params,)
                result[(str(trigger), cond)] = ActionEntry(entry["action"] or None, tuple(params))
            else:
                raise ConfigError(f"actions_map[{trigger}][{cond_name}]: expected an action name "
                                  f"or {{action: name, params: [...]}}")
    return result


def trigger_for(name: str, snapshot: ControllerSnapshot) -> Optional[str]:
    """Name of the discrete trigger this event represents, or None.

    Buttons trigger on press only; D-pad axes trigger on reaching full
    deflection as 'AXIS_HAT_X-' / 'AXIS_HAT_X+' and so on.
    """
    if name in HATS:
        value = snapshot.axis(name)
        if value == -1:
            return name + "-"
        if value == 1:
            return name + "+"
        return None
    if snapshot.button(name):
        return name
    return None


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


class Actions:
    def __init__(self, gcode_sender, loop, jog: Optional[JogSettings] = None, actions_map=None):
        self.gcode_sender = gcode_sender
        self.loop = loop
        self.jog = jog or JogSettings()
        self.actions_map = parse_actions_map(actions_map)

        self.controller_state: Optional[ControllerSnapshot] = None
        self.axis_instructions = JogVector()
        self.thumb_left_active = False
        self.thumb_right_active = False
        self.active_device = None
        self._jog_timer = None

    def subscribe(self, normalizer):
        normalizer.on("attach", self.on_attach)
        normalizer.on("remove", self.on_remove)
        normalizer.on("use", self.on_use)

    def start(self):
        """Start the jog heartbeat. It reschedules itself for the life of the process."""
        self._jog_timer = self.loop.call_later(self.jog.interval_ms / 1000.0, self.jog_heartbeat)

    # device lifecycle
    def on_attach(self, device_id, snapshot=None):
        if self.active_device is None:
            self.active_device = device_id
            LOG.info("controlling with controller id %s", device_id)
        else:
            LOG.debug("controller %s attached; still controlling with %s", device_id, self.active_device)

    def on_remove(self, device_id):
        if device_id != self.active_device:
            return
        LOG.info("active controller %s removed; stopping all jogging", device_id)
        self.active_device = None
        self.controller_state = None
        self.axis_instructions = JogVector()
        self.thumb_left_active = False
        self.thumb_right_active = False

    # the reducer
    def on_use(self, name: str, state: ControllerSnapshot):
        if self.active_device is not None and state.device_id != self.active_device:
            LOG.debug("ignoring %s from inactive controller %s", name, state.device_id)
            return

        mods = ModifierState.from_snapshot(state)
        active = mods.active_conditions()
        if len(active) > 1:
            LOG.error("conflicting modifier conditions %s; ignoring %s", active, name)
            return
        condition = active[0] if active else None

        jog = self.jog
        hat_x = state.axis(HAT_X)
        hat_y = state.axis(HAT_Y)

        # speeds are chosen now even if no motion results from this event
        jog_velocity = jog.per_interval(jog.xy_velocity_low if mods.deadman_slow else jog.xy_velocity_med)
        creep_dist = jog.xy_creep_low if mods.deadman_slow else jog.xy_creep_med
        # fine Z on the horizontal D-pad, coarse Z on the vertical one
        jog_velocity_z = jog.per_interval(jog.z_velocity_low if hat_x else jog.z_velocity_med)
        creep_dist_z = jog.z_creep_low if hat_x else jog.z_creep_med

        self._toggle_latches(name, state)
        if (mods.deadman_xy or mods.deadman_z) and name in HATS:
            # the D-pad is about to move the machine; never jog from two sources
            self._set_latches(False, False)

        ai = JogVector()

        if condition is Condition.DEADMAN_XY_ONLY:
            # X: D-pad first, then left stick, then right stick; last write wins
            if hat_x:
                ai.dx = _sign(hat_x) * jog_velocity
            if hat_x and name == HAT_X:
                self._creep(creep_dist * _sign(hat_x), 0.0, 0.0)
            stick = self._stick_value(state, LEFT_STICK_AXES[0], RIGHT_STICK_AXES[0])
            if stick is not None:
                ai.dx = stick * jog_velocity

            # Y: the pads report "up" as negative
            if hat_y:
                ai.dy = -(_sign(hat_y) * jog_velocity)
            if hat_y and name == HAT_Y:
                self._creep(0.0, creep_dist * -_sign(hat_y), 0.0)
            stick = self._stick_value(state, LEFT_STICK_AXES[1], RIGHT_STICK_AXES[1])
            if stick is not None:
                ai.dy = -(stick * jog_velocity)

        elif condition is Condition.DEADMAN_Z_ONLY:
            # both D-pad axes drive Z; the horizontal one wins a tie
            if hat_x:
                ai.dz = _sign(hat_x) * jog_velocity_z
                if name == HAT_X:
                    self._creep(0.0, 0.0, creep_dist_z * _sign(hat_x))
            elif hat_y:
                ai.dz = -(_sign(hat_y) * jog_velocity_z)
                if name == HAT_Y:
                    self._creep(0.0, 0.0, creep_dist_z * -_sign(hat_y))

        # picked up by the heartbeat
        self.controller_state = state
        self.axis_instructions = ai

        if condition is not None:
            trigger = trigger_for(name, state)
            if trigger is not None:
                self.perform_task(trigger, condition)

    def _toggle_latches(self, name, state):
        # the name check makes this fire on the button's own press event only,
        # not whenever another input moves while it happens to be held
        if name == RIGHT_STICK_TOGGLE and state.button(RIGHT_STICK_TOGGLE):
            self._set_latches(False, not self.thumb_right_active)
        if name == LEFT_STICK_TOGGLE and state.button(LEFT_STICK_TOGGLE):
            self._set_latches(not self.thumb_left_active, False)

    def _set_latches(self, left, right):
        if (left, right) == (self.thumb_left_active, self.thumb_right_active):
            return
        self.thumb_left_active = left
        self.thumb_right_active = right
        LOG.debug("Left Thumb Enabled:%s, Right Thumb Enabled:%s", left, right)

    def _stick_value(self, state, left_axis, right_axis) -> Optional[float]:
        """Deflection of the enabled stick(s) beyond the dead range, or None."""
        dead = self.jog.dead_range
        total = None
        if self.thumb_left_active and abs(state.axis(left_axis)) > dead:
            total = state.axis(left_axis)
        if self.thumb_right_active and abs(state.axis(right_axis)) > dead:
            total = (total or 0.0) + state.axis(right_axis)
        return total

    def perform_task(self, trigger: str, condition: Condition) -> bool:
        """Run the operation bound to (trigger, condition); the configured map wins over the built-ins."""
        key = (trigger, condition)
        entry = self.actions_map.get(key)
        if entry is None:
            entry = BUILTIN_ACTIONS.get(key)
        if entry is None or entry.action is None:
            return False

        method = None
        if entry.action in self.gcode_sender.operations:
            method = getattr(self.gcode_sender, entry.action, None)
        if method is None:
            LOG.warning("unknown action %r for %s (%s); ignored", entry.action, trigger, condition.value)
            return False

        LOG.debug("%s (%s) -> %s%s", trigger, condition.value, entry.action, entry.params or "")
        try:
            inspect.signature(method).bind(*entry.params)
        except TypeError as e:
            LOG.warning("action %r rejected parameters %r: %s", entry.action, entry.params, e)
            return False
        method(*entry.params)
        return True

    # motion
    def _creep(self, x, y, z):
        """One small move on the initial D-pad edge, then a pause before continuous jogging."""
        if self._jog_timer is not None:
            self._jog_timer.cancel()
        self.jog_gantry(x, y, z)
        self._jog_timer = self.loop.call_later(self.jog.creep_interval_ms / 1000.0, self.jog_heartbeat)

    def jog_heartbeat(self):
        self._jog_timer = self.loop.call_later(self.jog.interval_ms / 1000.0, self.jog_heartbeat)

        state = self.controller_state
        ai = self.axis_instructions
        LOG.debug("heartbeat %s", ai)
        if state is None or state.is_empty():
            return
        if ai.is_zero():
            return
        self.jog_gantry(ai.dx, ai.dy, ai.dz)

    def jog_gantry(self, x, y, z):
        """Move by (x, y, z) mm at the feed that covers it in exactly one jog interval."""
        dist = JogVector(x, y, z).distance()
        speed = dist * 60000.0 / self.jog.interval_ms
        self.gcode_sender.move_gantry_jog_to_xyz(x, y, z, speed)
        LOG.debug("jog_gantry: x=%s, y=%s, z=%s; distance=%s at %s mm/min", x, y, z, dist, speed)
