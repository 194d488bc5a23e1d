"""Device Mapping Table: raw button/axis indices -> symbolic names, per controller model.

Controllers are recognised by the description string their driver reports.
A PS5 DualSense reports "Wireless Controller", which also serves as the
generic fallback for unknown pads. Hats are exposed by the reader as a pair of
axes following the stick axes, so `AXIS_HAT_X`/`AXIS_HAT_Y` appear as axes.
"""
import difflib
import logging
from typing import Dict, Optional

LOG = logging.getLogger("cncpad.mappings")

DEFAULT_MAPPING = "Wireless Controller"

CONTROLLER_MAPPINGS: Dict[str, Dict[str, Dict[int, str]]] = {
    # Logitech F710 in X (XInput) mode; should match an Xbox pad as well
    "Logitech Gamepad F710": {
        "buttons": {
            0: "KEYCODE_BUTTON_A",
            1: "KEYCODE_BUTTON_B",
            2: "KEYCODE_BUTTON_X",
            3: "KEYCODE_BUTTON_Y",
            4: "KEYCODE_BUTTON_L1",
            5: "KEYCODE_BUTTON_R1",
            6: "KEYCODE_BACK",
            7: "KEYCODE_BUTTON_START",
            8: "KEYCODE_HOME",
            9: "KEYCODE_BUTTON_THUMBL",
            10: "KEYCODE_BUTTON_THUMBR",
        },
        "axes": {
            0: "AXIS_X",
            1: "AXIS_Y",
            2: "AXIS_LTRIGGER",
            3: "AXIS_RZ",
            4: "AXIS_Z",
            5: "AXIS_RTRIGGER",
            6: "AXIS_HAT_X",
            7: "AXIS_HAT_Y",
        },
    },
    # Logitech F710 in D (DirectInput) mode; some buttons stay silent here
    "Logitech Logitech Cordless RumblePad 2": {
        "buttons": {
            0: "KEYCODE_BUTTON_X",
            1: "KEYCODE_BUTTON_A",
            2: "KEYCODE_BUTTON_B",
            3: "KEYCODE_BUTTON_Y",
            4: "KEYCODE_BUTTON_L1",
            5: "KEYCODE_BUTTON_R1",
            6: "KEYCODE_BUTTON_LTRIGGER",
            7: "KEYCODE_BUTTON_RTRIGGER",
            8: "KEYCODE_BACK",
            9: "KEYCODE_BUTTON_START",
            10: "KEYCODE_BUTTON_THUMBL",
            11: "KEYCODE_BUTTON_THUMBR",
        },
        "axes": {
            0: "AXIS_X",
            1: "AXIS_Y",
            2: "AXIS_RZ",
            3: "AXIS_Z",
            4: "AXIS_HAT_X",
            5: "AXIS_HAT_Y",
        },
    },
    # SteelSeries Nimbus (Apple model); no D-pad, few buttons
    "Nimbus": {
        "buttons": {
            0: "KEYCODE_BUTTON_A",
            1: "KEYCODE_BUTTON_B",
            2: "KEYCODE_BUTTON_X",
            3: "KEYCODE_BUTTON_Y",
            4: "KEYCODE_BUTTON_L1",
            5: "KEYCODE_BUTTON_R1",
            6: "KEYCODE_BUTTON_LTRIGGER",
            7: "KEYCODE_BUTTON_RTRIGGER",
        },
        "axes": {
            0: "AXIS_Y",
            1: "AXIS_X",
            2: "AXIS_Z",
            3: "AXIS_RZ",
        },
    },
    "Xbox Wireless Controller": {
        "buttons": {
            0: "KEYCODE_BUTTON_A",
            1: "KEYCODE_BUTTON_B",
            3: "KEYCODE_BUTTON_X",
            4: "KEYCODE_BUTTON_Y",
            6: "KEYCODE_BUTTON_L1",
            7: "KEYCODE_BUTTON_R1",
            11: "KEYCODE_BUTTON_START",
            13: "KEYCODE_BUTTON_THUMBL",
            14: "KEYCODE_BUTTON_THUMBR",
        },
        "axes": {
            0: "AXIS_X",
            1: "AXIS_Y",
            2: "AXIS_RZ",
            3: "AXIS_Z",
            4: "AXIS_RTRIGGER",
            5: "AXIS_LTRIGGER",
            6: "AXIS_HAT_X",
            7: "AXIS_HAT_Y",
        },
    },
    # PS5 DualSense, and the generic fallback. LT/RT report both a button
    # and an axis; either one works as the fast deadman.
    "Wireless Controller": {
        "buttons": {
            0: "KEYCODE_BUTTON_X",
            1: "KEYCODE_BUTTON_A",
            2: "KEYCODE_BUTTON_B",
            3: "KEYCODE_BUTTON_Y",
            4: "KEYCODE_BUTTON_L1",
            5: "KEYCODE_BUTTON_R1",
            6: "KEYCODE_BUTTON_LTRIGGER",
            7: "KEYCODE_BUTTON_RTRIGGER",
            8: "KEYCODE_BACK",
            9: "KEYCODE_BUTTON_START",
            10: "KEYCODE_BUTTON_THUMBL",
            11: "KEYCODE_BUTTON_THUMBR",
            12: "KEYCODE_HOME",
            13: "KEYCODE_BUTTON_TOUCHPAD",
        },
        "axes": {
            0: "AXIS_Y",
            1: "AXIS_X",
            2: "AXIS_Z",
            3: "AXIS_LTRIGGER",
            4: "AXIS_RTRIGGER",
            5: "AXIS_RZ",
            6: "AXIS_HAT_X",
            7: "AXIS_HAT_Y",
        },
    },
}


def _coerce(entry: dict) -> Dict[str, Dict[int, str]]:
    # YAML keys may arrive as strings ('0': AXIS_X)
    return {
        section: {int(k): str(v) for k, v in (entry.get(section) or {}).items()}
        for section in ("buttons", "axes")
    }


def build_mapping_table(extra: Optional[dict] = None) -> Dict[str, Dict[str, Dict[int, str]]]:
    """Return the built-in table with user-supplied controller entries merged over it."""
    table = {name: _coerce(entry) for name, entry in CONTROLLER_MAPPINGS.items()}
    for name, entry in (extra or {}).items():
        table[str(name)] = _coerce(entry or {})
    return table


def select_mapping(description: str, table=None):
    """Pick the mapping for a device description.

    Tries an exact match, then a case-insensitive substring match in either
    direction, then the closest name; falls back to the generic mapping.
    Returns (model_name, mapping).
    """
    table = CONTROLLER_MAPPINGS if table is None else table
    description = description or ""
    if description in table:
        return description, table[description]

    lowered = description.lower()
    if lowered:
        hits = [name for name in table if name.lower() in lowered or lowered in name.lower()]
        if hits:
            # the most specific (longest) model name wins
            name = max(hits, key=len)
            LOG.debug("mapping %r matched by substring to %r", description, name)
            return name, table[name]
        close = difflib.get_close_matches(description, list(table), n=1, cutoff=0.6)
        if close:
            LOG.debug("mapping %r matched approximately to %r", description, close[0])
            return close[0], table[close[0]]

    LOG.info("no mapping for controller %r; using generic %r mapping", description, DEFAULT_MAPPING)
    return DEFAULT_MAPPING, table[DEFAULT_MAPPING]
