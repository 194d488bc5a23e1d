import json
from datetime import timedelta

import pytest
import yaml

from core.config import (ConfigError, JogSettings, load_options, load_options_file, merge_options,
                         parse_lifetime, read_cncrc_secret)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


def test_merge_options_is_recursive_and_copies():
    base = {"jog": {"interval_ms": 100, "dead_range": 0.1}, "port": "a"}
    merged = merge_options(base, {"jog": {"interval_ms": 50}, "port": "b"})
    assert merged == {"jog": {"interval_ms": 50, "dead_range": 0.1}, "port": "b"}
    assert base["jog"]["interval_ms"] == 100


def test_files_then_cli(tmp_path):
    system = write_yaml(tmp_path / "system.yaml", {"port": "/dev/ttyACM0", "baudrate": 57600,
                                                   "jog": {"xy_velocity_med": 2000}})
    user = write_yaml(tmp_path / "user.yaml", {"baudrate": 250000, "controller_type": "Marlin"})
    opts = load_options({"port": "/dev/ttyUSB3", "baudrate": None}, search=[system, user])
    assert opts.port == "/dev/ttyUSB3"
    assert opts.baudrate == 250000
    assert opts.controller_type == "marlin"
    assert opts.jog.xy_velocity_med == 2000.0
    assert opts.jog.xy_velocity_low == 300.0
    assert opts.socket_port == 8000


def test_explicit_config_file(tmp_path):
    extra = write_yaml(tmp_path / "pendant.yaml", {
        "z_probe_thickness": 12.5,
        "actions_map": {"KEYCODE_BUTTON_A": {"unmodified": "spindle_on"}},
    })
    opts = load_options({}, config_path=extra, simulate=True, search=[])
    assert opts.z_probe_thickness == 12.5
    assert opts.simulate is True
    assert opts.actions_map == {"KEYCODE_BUTTON_A": {"unmodified": "spindle_on"}}

    with pytest.raises(ConfigError):
        load_options({}, config_path=tmp_path / "missing.yaml", search=[])


def test_unreadable_default_file_is_skipped(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("port: [unclosed")
    assert load_options_file(bad) == {}
    assert load_options_file(tmp_path / "nope.yaml") == {}
    with pytest.raises(ConfigError):
        load_options_file(bad, required=True)


def test_bad_values():
    with pytest.raises(ConfigError):
        load_options({"baudrate": "fast"}, search=[])
    with pytest.raises(ConfigError):
        JogSettings.from_dict({"warp_speed": 9})
    with pytest.raises(ConfigError):
        JogSettings.from_dict({"interval_ms": 0})


def test_per_interval():
    assert JogSettings().per_interval(300) == pytest.approx(0.5)
    assert JogSettings(interval_ms=50).per_interval(3000) == pytest.approx(2.5)


def test_parse_lifetime():
    assert parse_lifetime("30d") == timedelta(days=30)
    assert parse_lifetime("12h") == timedelta(hours=12)
    assert parse_lifetime(3600) == timedelta(seconds=3600)
    with pytest.raises(ConfigError):
        parse_lifetime("forever")


def test_read_cncrc_secret(tmp_path):
    rc = tmp_path / ".cncrc"
    rc.write_text(json.dumps({"secret": "s3cret", "ports": []}))
    assert read_cncrc_secret(rc) == "s3cret"

    rc.write_text(json.dumps({"ports": []}))
    with pytest.raises(ConfigError):
        read_cncrc_secret(rc)
    with pytest.raises(ConfigError):
        read_cncrc_secret(tmp_path / "missing")
