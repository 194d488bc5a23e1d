"""Grbl dialect"""
from gcode.sender import GcodeSender, fmt

# jog a little under the requested feed so the planner never runs dry
JOG_FEED_FACTOR = 0.98


class GcodeGrbl(GcodeSender):
    name = "grbl"
    controller_type = "Grbl"

    def move_gantry_jog_to_xyz(self, x, y, z, mm_per_min):
        """Jog with grbl's `$J=` command, which a feedhold or jog-cancel can interrupt."""
        self.gcode(
            "G21",
            "G91",
            f"$J=X{fmt(x)} Y{fmt(y)} Z{fmt(z)} F{mm_per_min * JOG_FEED_FACTOR:g}",
            "G90",
        )
