import itertools

from core.modifiers import Condition, ModifierState
from core.state import ControllerSnapshot

INPUTS = ("KEYCODE_BUTTON_L1", "KEYCODE_BUTTON_R1", "KEYCODE_BUTTON_LTRIGGER",
          "KEYCODE_BUTTON_RTRIGGER", "KEYCODE_HOME")


def test_at_most_one_condition_holds():
    for pressed in itertools.product((0, 1), repeat=len(INPUTS)):
        for trigger_axis in (0.0, 0.5, 1.0):
            snap = ControllerSnapshot(1, "", {"AXIS_LTRIGGER": trigger_axis}, dict(zip(INPUTS, pressed)))
            mods = ModifierState.from_snapshot(snap)
            assert len(mods.active_conditions()) <= 1
            assert not (mods.deadman_xy and mods.deadman_z)


def test_both_bumpers_make_z():
    snap = ControllerSnapshot(1, "", {}, {"KEYCODE_BUTTON_L1": 1, "KEYCODE_BUTTON_R1": 1})
    mods = ModifierState.from_snapshot(snap)
    assert mods.deadman_slow and mods.deadman_fast
    assert mods.deadman_z
    assert not mods.deadman_xy_only
    assert mods.condition is Condition.DEADMAN_Z_ONLY


def test_single_deadman_is_xy():
    for held in ("KEYCODE_BUTTON_L1", "KEYCODE_BUTTON_R1", "KEYCODE_BUTTON_LTRIGGER"):
        snap = ControllerSnapshot(1, "", {}, {held: 1})
        assert ModifierState.from_snapshot(snap).condition is Condition.DEADMAN_XY_ONLY
    assert ModifierState.from_snapshot(ControllerSnapshot(1, "", {}, {"KEYCODE_BUTTON_R1": 1})).deadman_fast


def test_slow_and_trigger_axis_make_z():
    snap = ControllerSnapshot(1, "", {"AXIS_RTRIGGER": 1.0}, {"KEYCODE_BUTTON_L1": 1})
    assert ModifierState.from_snapshot(snap).condition is Condition.DEADMAN_Z_ONLY


def test_partial_trigger_is_not_a_deadman():
    snap = ControllerSnapshot(1, "", {"AXIS_LTRIGGER": 0.9}, {})
    assert ModifierState.from_snapshot(snap).condition is Condition.UNMODIFIED


def test_shift_with_deadman_has_no_condition():
    mods = ModifierState(deadman_slow=True, deadman_fast=False, shift_key=True)
    assert mods.active_conditions() == []
    assert mods.condition is None
    assert ModifierState(False, False, True).condition is Condition.SHIFT_KEY_ONLY
