"""Modifier (deadman/shift) predicates derived from a controller snapshot"""
import enum
from dataclasses import dataclass
from typing import Optional

from core.state import ControllerSnapshot

# L1 alone is the slow deadman; R1 or a trigger is the fast one, so L1+R1 selects Z
DEADMAN_SLOW_BUTTONS = ("KEYCODE_BUTTON_L1",)
DEADMAN_FAST_BUTTONS = ("KEYCODE_BUTTON_R1", "KEYCODE_BUTTON_LTRIGGER", "KEYCODE_BUTTON_RTRIGGER")
DEADMAN_FAST_AXES = ("AXIS_LTRIGGER", "AXIS_RTRIGGER")
SHIFT_BUTTON = "KEYCODE_HOME"


class Condition(enum.Enum):
    UNMODIFIED = "unmodified"
    SHIFT_KEY_ONLY = "shift_key_only"
    DEADMAN_XY_ONLY = "deadman_xy_only"
    DEADMAN_Z_ONLY = "deadman_z_only"


@dataclass(frozen=True)
class ModifierState:
    deadman_slow: bool
    deadman_fast: bool
    shift_key: bool

    @classmethod
    def from_snapshot(cls, snapshot: ControllerSnapshot) -> "ModifierState":
        slow = any(snapshot.button(b) for b in DEADMAN_SLOW_BUTTONS)
        # triggers report as a button on some pads and as a full-travel axis on others
        fast = (any(snapshot.button(b) for b in DEADMAN_FAST_BUTTONS)
                or any(snapshot.axis(a) == 1 for a in DEADMAN_FAST_AXES))
        return cls(deadman_slow=slow, deadman_fast=fast, shift_key=snapshot.button(SHIFT_BUTTON))

    @property
    def deadman_z(self) -> bool:
        return self.deadman_slow and self.deadman_fast

    @property
    def deadman_xy(self) -> bool:
        return (self.deadman_slow or self.deadman_fast) and not self.deadman_z

    @property
    def unmodified(self) -> bool:
        return not self.deadman_slow and not self.deadman_fast and not self.shift_key

    @property
    def shift_key_only(self) -> bool:
        return self.shift_key and not self.deadman_slow and not self.deadman_fast

    @property
    def deadman_xy_only(self) -> bool:
        return self.deadman_xy and not self.shift_key

    @property
    def deadman_z_only(self) -> bool:
        return self.deadman_z and not self.shift_key

    def active_conditions(self):
        flags = {
            Condition.UNMODIFIED: self.unmodified,
            Condition.SHIFT_KEY_ONLY: self.shift_key_only,
            Condition.DEADMAN_XY_ONLY: self.deadman_xy_only,
            Condition.DEADMAN_Z_ONLY: self.deadman_z_only,
        }
        return [c for c, on in flags.items() if on]

    @property
    def condition(self) -> Optional[Condition]:
        """The single composite condition in force, or None (shift held with a deadman)."""
        active = self.active_conditions()
        if len(active) != 1:
            return None
        return active[0]
