"""Marlin dialect"""
from gcode.sender import GcodeSender, fmt


class GcodeMarlin(GcodeSender):
    name = "marlin"
    controller_type = "Marlin"

    def perform_homing(self):
        self.gcode("G28 X Y")

    def perform_probing(self):
        # no probe cycle; Marlin runs its own touch-plate routine
        self.gcode("M28 Z")

    def move_gantry_relative(self, x, y, z, mm_per_min):
        self.gcode(
            "G21",
            "G91",
            f"G1 X{fmt(x)} Y{fmt(y)} Z{fmt(z)} F{mm_per_min:g}",
            "G90",
        )
