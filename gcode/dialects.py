"""Registry of controller dialects, selected once at startup by name"""
import logging

from core.config import ConfigError
from gcode.grbl import GcodeGrbl
from gcode.marlin import GcodeMarlin
from gcode.sender import GcodeSender
from gcode.shapeoko import GcodeShapeoko

LOG = logging.getLogger("cncpad.gcode")

DIALECTS = {
    "grbl": GcodeGrbl,
    "marlin": GcodeMarlin,
    "shapeoko": GcodeShapeoko,
}


def register_dialect(name: str, sender_cls):
    if not (isinstance(sender_cls, type) and issubclass(sender_cls, GcodeSender)):
        raise TypeError(f"{sender_cls!r} is not a GcodeSender subclass")
    DIALECTS[name.lower()] = sender_cls


def dialect_class(controller_type: str):
    sender_cls = DIALECTS.get(str(controller_type).lower())
    if sender_cls is None:
        raise ConfigError(f"Controller type {controller_type} unknown; unable to continue "
                          f"(known: {', '.join(sorted(DIALECTS))})")
    return sender_cls


def cncjs_controller_type(controller_type: str) -> str:
    """CNCjs controller name for a dialect, e.g. shapeoko -> Grbl."""
    return dialect_class(controller_type).controller_type


def new_gcode_sender(controller_type: str, dispatcher, z_probe_thickness: float = 20.0) -> GcodeSender:
    sender_cls = dialect_class(controller_type)
    LOG.debug("using %s g-code dialect", sender_cls.name)
    return sender_cls(dispatcher, z_probe_thickness)
