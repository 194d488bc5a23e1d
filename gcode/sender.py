"""Command Abstraction Layer: logical CNC operations -> CNCjs directives

`GcodeSender` is the default implementation. Controller dialects subclass it
and override only the operations whose firmware vocabulary differs.
"""
import logging

LOG = logging.getLogger("cncpad.gcode")

ZSAFEPOS = -5.0  # machine Z coordinate deemed safe for travel
ZSAFEV = 500     # feed to reach ZSAFEPOS, mm/min

# operations that an action map may name
OPERATIONS = frozenset({
    "controller_cyclestart", "controller_feedhold", "controller_pause", "controller_reset",
    "controller_resume", "controller_start", "controller_stop", "controller_unlock",
    "coolant_flood_on", "coolant_mist_on", "coolant_off",
    "spindle_on", "spindle_off",
    "move_gantry_home", "move_gantry_return", "move_gantry_jog_to_xyz", "move_gantry_relative",
    "move_gantry_wcs_home", "move_gantry_probe_pos", "move_z_safe",
    "record_gantry_return", "record_gantry_wcs_home", "record_gantry_probe_pos", "record_gantry_home",
    "record_gantry_zero_wcs_x", "record_gantry_zero_wcs_y", "record_gantry_zero_wcs_z",
    "perform_probing", "perform_homing",
})


def fmt(value: float) -> str:
    return f"{value:.4f}"


class GcodeSender:
    name = "default"
    controller_type = "Grbl"  # controller name CNCjs opens the serial port with
    operations = OPERATIONS

    def __init__(self, dispatcher, z_probe_thickness: float = 20.0):
        self.dispatcher = dispatcher
        self.z_probe_thickness = float(z_probe_thickness)

    def send_message(self, kind, directive, data=None):
        self.dispatcher.send_directive(kind, directive, data)

    def gcode(self, *lines):
        for line in lines:
            self.send_message("command", "gcode", line)

    # controller lifecycle
    def controller_cyclestart(self):
        self.send_message("command", "cyclestart")

    def controller_feedhold(self):
        self.send_message("command", "feedhold")

    def controller_pause(self):
        self.send_message("command", "pause")

    def controller_reset(self):
        self.send_message("command", "reset")

    def controller_resume(self):
        self.send_message("command", "resume")

    def controller_start(self):
        self.send_message("command", "start")

    def controller_stop(self):
        self.send_message("command", "stop")

    def controller_unlock(self):
        self.send_message("command", "unlock")

    # coolant
    def coolant_flood_on(self):
        self.gcode("M8")

    def coolant_mist_on(self):
        self.gcode("M7")

    def coolant_off(self):
        self.gcode("M9")

    # spindle
    def spindle_on(self, speed=12000):
        self.gcode(f"M3 S{speed}")

    def spindle_off(self):
        self.gcode("M5")

    # gantry motion
    def move_z_safe(self):
        self.gcode(f"G0 G53 Z{ZSAFEPOS} F{ZSAFEV}")

    def move_gantry_home(self):
        """Go to the G30 position, reaching a safe Z before moving XY."""
        self.move_z_safe()
        self.gcode("G30")

    def move_gantry_return(self):
        """Go to the G28 return position, reaching a safe Z before moving XY."""
        self.move_z_safe()
        self.gcode("G28")

    def move_gantry_wcs_home(self):
        self.move_z_safe()
        self.gcode("G0 G90 G54 X0 Y0")

    def move_gantry_probe_pos(self):
        """Go to the probe position recorded as the G55 origin."""
        self.move_z_safe()
        self.gcode("G0 G90 G55 X0 Y0")

    def move_gantry_jog_to_xyz(self, x, y, z, mm_per_min):
        self.move_gantry_relative(x, y, z, mm_per_min)

    def move_gantry_relative(self, x, y, z, mm_per_min):
        self.gcode(
            "G21",  # millimeters
            f"G91 G0 X{fmt(x)} Y{fmt(y)} Z{fmt(z)} F{mm_per_min:g}",
            "G90",
        )

    # position recording
    def record_gantry_return(self):
        self.gcode("G28.1")

    def record_gantry_probe_pos(self):
        self.gcode("G10 P2 L20 X0 Y0 Z0")

    def record_gantry_wcs_home(self):
        self.gcode("G10 P1 L20 X0 Y0 Z0")

    def record_gantry_home(self):
        self.gcode("G30.1")

    def record_gantry_zero_wcs_x(self):
        self.gcode("G10 L20 P1 X0")

    def record_gantry_zero_wcs_y(self):
        self.gcode("G10 L20 P1 Y0")

    def record_gantry_zero_wcs_z(self):
        self.gcode("G10 L20 P1 Z0")

    # probing and homing
    def perform_homing(self):
        self.send_message("command", "homing")

    def perform_probing(self):
        """Probe Z against a touch plate and set the work Z origin on top of the stock."""
        dz = self.z_probe_thickness + 0.001
        self.gcode(
            "G91",                   # relative
            "G38.2 Z-15.001 F120",   # probe toward stock
            "G90",
            f"G10 L20 P1 Z{dz:g}",   # current Z is the plate thickness
            "G91",
            "G0 Z3",                 # lift off the plate
            "G90",
        )
