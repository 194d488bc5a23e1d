"""Shapeoko dialect: grbl jogging plus capture of grbl probe reports

Grbl prints `[PRB:x,y,z:flag]` after every G38.x probe cycle. This dialect
listens to the serial traffic relayed by CNCjs, remembers the last
successful probe and can travel back to it for the next Z probe.
"""
import logging
import re

from gcode.grbl import GcodeGrbl
from gcode.sender import ZSAFEPOS

LOG = logging.getLogger("cncpad.gcode")

PRB_REPORT = re.compile(r"^\[PRB:([^:\]]*):(\d)\]$")
_NUMBER = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)$")


class ProbeRecord:
    """Last successful probe position. Starts empty; never partially overwritten."""

    def __init__(self):
        self.x = 0.0
        self.y = 0.0
        self.z = 0.0
        self.success = False

    @staticmethod
    def is_probe_report(line: str) -> bool:
        return line.strip().startswith("[PRB:")

    def update_from_line(self, line: str) -> bool:
        """Record the probe position from a grbl report; returns True when it was recorded."""
        line = line.strip()
        match = PRB_REPORT.match(line)
        values = match.group(1).split(",") if match else []
        if not match or len(values) < 3 or not all(_NUMBER.match(v.strip()) for v in values):
            LOG.error("The string %s is NOT a correct probe record.", line)
            return False
        if match.group(2) != "1":
            LOG.warning("probe failed (%s); keeping the previous probe position", line)
            return False
        self.x, self.y, self.z = (float(v) for v in values[:3])
        self.success = True
        LOG.info("probe recorded at X%s Y%s Z%s", self.x, self.y, self.z)
        return True


class GcodeShapeoko(GcodeGrbl):
    name = "shapeoko"

    def __init__(self, dispatcher, z_probe_thickness: float = 20.0):
        super().__init__(dispatcher, z_probe_thickness)
        self.probe_record = ProbeRecord()
        dispatcher.subscribe("serialport:read", self.on_serial_read)

    def on_serial_read(self, data):
        if not isinstance(data, str) or not ProbeRecord.is_probe_report(data):
            return
        if self.probe_record.update_from_line(data):
            # the contact point is the top of the plate; the stock is one plate thickness lower
            dz = self.probe_record.z - self.z_probe_thickness
            self.gcode(
                "G91",
                f"G10 L2 P1 Z{dz:g}",
                "G0 Z3",
                "G90",
            )

    def move_gantry_probe_pos(self):
        """Return to the XY of the last successful probe, at a safe Z."""
        if not self.probe_record.success:
            LOG.warning("no probe position recorded yet; not moving")
            return
        self.gcode(
            f"G53 G0 G90 Z{ZSAFEPOS}",
            f"G54 G0 G90 X{self.probe_record.x:g} Y{self.probe_record.y:g}",
        )
