"""State models and lightweight DTOs"""
import enum
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class InputKind(enum.Enum):
    BUTTON = "button"
    AXIS = "axis"


@dataclass(frozen=True)
class RawInputEvent:
    device_id: int
    index: int
    kind: InputKind
    value: float  # buttons 0/1, axes -1..1


@dataclass(frozen=True)
class DeviceAttached:
    device_id: int
    description: str


@dataclass(frozen=True)
class DeviceRemoved:
    device_id: int


@dataclass(frozen=True)
class LogicalInputEvent:
    name: str  # e.g. 'KEYCODE_BUTTON_L1', 'AXIS_HAT_X'
    kind: InputKind
    value: float


@dataclass(frozen=True)
class ControllerSnapshot:
    """Total state of one controller at the moment an event was produced."""

    device_id: int
    description: str = ""
    axis_states: Mapping[str, float] = field(default_factory=dict)
    button_states: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        # freeze the mappings so a snapshot can be shared by reference
        object.__setattr__(self, "axis_states", MappingProxyType(dict(self.axis_states)))
        object.__setattr__(self, "button_states", MappingProxyType(dict(self.button_states)))

    def axis(self, name: str) -> float:
        return float(self.axis_states.get(name, 0.0) or 0.0)

    def button(self, name: str) -> bool:
        return bool(self.button_states.get(name, 0))

    def is_empty(self) -> bool:
        return not self.axis_states and not self.button_states


@dataclass
class JogVector:
    dx: float = 0.0  # mm per jog interval
    dy: float = 0.0
    dz: float = 0.0

    def is_zero(self) -> bool:
        return self.dx == 0 and self.dy == 0 and self.dz == 0

    def distance(self) -> float:
        return math.sqrt(self.dx * self.dx + self.dy * self.dy + self.dz * self.dz)
