#!/usr/bin/env python3
"""
Tests for the Recording Sensor runner (run_sensor.py).

SSH is patched out; these exercise config merging and the full
listing -> counts -> XML path.
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest
from lxml import etree

# Add parent directory to path
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))

import run_sensor  # noqa: E402
from ingest.remote_listing import RemoteListingError  # noqa: E402


@pytest.fixture
def key_file(tmp_path):
    key = tmp_path / "id_ed25519"
    key.write_text("dummy key")
    return key


def today_name(channel: str, hms: str = "02:34:07") -> str:
    return f"{channel}-{date.today().strftime('%d-%b-%y')}-{hms}.audio.m4a"


def ls_line(filename: str) -> str:
    return f"-rw-r--r-- 1 root root 1.2M Jul  1 02:34 {filename}"


def values(xml_text: str) -> dict:
    root = etree.fromstring(xml_text.encode("utf-8"))
    return {r.findtext("channel"): r.findtext("value") for r in root.findall("result")}


class TestBuildConfig:
    """Test build_config() merging."""

    def test_defaults(self, key_file):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file)])
        config = run_sensor.build_config(args, {})

        assert config.name == "node-name"
        assert config.target.hostname == "rec01"
        assert config.target.user == "root"
        assert config.target.port == 22
        assert config.path == "/var/rec"
        assert config.channels == ["itn", "azadi", "voa", "pars", "bbc", "one"]

    def test_yaml_values_used(self, key_file, tmp_path):
        yaml_file = tmp_path / "sensor.yaml"
        yaml_file.write_text(
            f"""
defaults:
  hostname: rec02
  key: {key_file}
  user: recorder
  port: 2222
  path: /srv/rec
  connect_timeout_sec: 3
channels: [bbc, voa]
thresholds:
  total_files_warning_max: 10
  total_files_error_max: 20
health_lookup: prtg.customlookups.rec
"""
        )
        cfg = run_sensor.load_config_yaml(yaml_file)
        config = run_sensor.build_config(run_sensor.parse_args([]), cfg)

        assert config.target.hostname == "rec02"
        assert config.target.user == "recorder"
        assert config.target.port == 2222
        assert config.target.connect_timeout_sec == 3
        assert config.path == "/srv/rec"
        assert config.channels == ["bbc", "voa"]
        assert config.thresholds.total_files_warning_max == 10
        assert config.thresholds.total_files_error_max == 20
        assert config.health_lookup == "prtg.customlookups.rec"

    def test_cli_overrides_yaml(self, key_file):
        cfg = {"defaults": {"hostname": "rec02", "port": 2222}, "channels": ["bbc"]}
        args = run_sensor.parse_args(
            ["--hostname", "rec03", "--key", str(key_file), "--port", "22", "--chan", "itn,one"]
        )
        config = run_sensor.build_config(args, cfg)

        assert config.target.hostname == "rec03"
        assert config.target.port == 22
        assert config.channels == ["itn", "one"]

    def test_missing_required(self):
        with pytest.raises(run_sensor.ConfigError, match="required"):
            run_sensor.build_config(run_sensor.parse_args(["--hostname", "rec01"]), {})

    def test_unreadable_key(self, tmp_path):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(tmp_path / "missing")])
        with pytest.raises(run_sensor.ConfigError, match="private key"):
            run_sensor.build_config(args, {})

    def test_bad_port(self, key_file):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file), "--port", "ssh"])
        with pytest.raises(run_sensor.ConfigError, match="port"):
            run_sensor.build_config(args, {})

    def test_defaults_not_a_mapping(self, key_file):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file)])
        with pytest.raises(run_sensor.ConfigError, match="defaults"):
            run_sensor.build_config(args, {"defaults": ["a", "b"]})

    def test_thresholds_not_a_mapping(self, key_file):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file)])
        with pytest.raises(run_sensor.ConfigError, match="thresholds"):
            run_sensor.build_config(args, {"thresholds": 5})

    def test_blank_yaml_channels_dropped(self, key_file):
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file)])
        config = run_sensor.build_config(args, {"channels": ["itn", "", "  ", "bbc"]})
        assert config.channels == ["itn", "bbc"]


class TestRunSensor:
    """Test run_sensor() end to end with SSH patched."""

    @patch("run_sensor.fetch_listing")
    def test_counts_reported(self, mock_fetch, key_file):
        mock_fetch.return_value = "\n".join(
            [
                "total 3M",
                ls_line(today_name("azadi", "01:00:00")),
                ls_line(today_name("azadi", "13:00:00")),
                ls_line("azadi-01-Jul-24-02:34:07.audio.m4a"),
                ls_line("badfile.txt"),
            ]
        )
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file), "--chan", "azadi,itn"])
        xml_text = run_sensor.run_sensor(run_sensor.build_config(args, {}))

        vals = values(xml_text)
        assert vals["Connection Health"] == "0"
        assert vals["azadi Total files"] == "3"
        assert vals["azadi Today Rec"] == "2"
        assert vals["itn Total files"] == "0"
        assert vals["itn Today Rec"] == "0"
        mock_fetch.assert_called_once()
        assert mock_fetch.call_args[0][1] == "/var/rec"

    @patch("run_sensor.fetch_listing")
    def test_listing_failure_report(self, mock_fetch, key_file):
        mock_fetch.side_effect = RemoteListingError("ssh exited with code 255")
        args = run_sensor.parse_args(["--hostname", "rec01", "--key", str(key_file)])
        xml_text = run_sensor.run_sensor(run_sensor.build_config(args, {}))

        assert values(xml_text) == {"Connection Health": "1"}


class TestMain:
    """Test main() exit codes and output streams."""

    def test_missing_arguments_exit_2(self, capsys):
        assert run_sensor.main([]) == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "ERROR" in captured.err

    def test_missing_config_file_exit_2(self, tmp_path, capsys):
        assert run_sensor.main(["--config", str(tmp_path / "nope.yaml")]) == 2
        assert "config file not found" in capsys.readouterr().err

    def test_bad_yaml_exit_2(self, tmp_path, capsys):
        yaml_file = tmp_path / "sensor.yaml"
        yaml_file.write_text("defaults: [unclosed\n")
        assert run_sensor.main(["--config", str(yaml_file)]) == 2

    @pytest.mark.parametrize("body", ["defaults: [a, b]\n", "thresholds: 5\n"])
    def test_malformed_section_exit_2(self, tmp_path, key_file, capsys, body):
        yaml_file = tmp_path / "sensor.yaml"
        yaml_file.write_text(body)
        exit_code = run_sensor.main(["--config", str(yaml_file), "--hostname", "rec01", "--key", str(key_file)])

        assert exit_code == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "must be a mapping" in captured.err

    @patch("run_sensor.fetch_listing")
    def test_xml_on_stdout(self, mock_fetch, key_file, capsys):
        mock_fetch.return_value = ls_line(today_name("bbc"))
        exit_code = run_sensor.main(["--hostname", "rec01", "--key", str(key_file), "--chan", "bbc"])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert out.startswith("<?xml")
        assert values(out)["bbc Today Rec"] == "1"

    @patch("run_sensor.fetch_listing")
    def test_connection_failure_exit_0(self, mock_fetch, key_file, capsys):
        mock_fetch.side_effect = RemoteListingError("Connection refused")
        exit_code = run_sensor.main(["--hostname", "rec01", "--key", str(key_file)])

        assert exit_code == 0
        assert values(capsys.readouterr().out) == {"Connection Health": "1"}

    @patch("run_sensor.run_sensor")
    def test_unexpected_error_exit_1(self, mock_run, key_file):
        mock_run.side_effect = RuntimeError("boom")
        assert run_sensor.main(["--hostname", "rec01", "--key", str(key_file)]) == 1
