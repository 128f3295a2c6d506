#!/usr/bin/env python3
"""
Recording Sensor runner

Runs a single snapshot:
- list the recording folder over SSH
- count recordings per channel and day
- print PRTG XML to stdout

Designed to be executed by PRTG as an "EXE/Script Advanced" sensor.
Logs go to stderr; stdout carries only the XML.
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from analyze.channel_counts import aggregate_listing, parse_channels_arg, summarize
from ingest.remote_listing import DEFAULT_CONNECT_TIMEOUT, RemoteListingError, SSHTarget, fetch_listing
from report.prtg_report import DEFAULT_HEALTH_LOOKUP, Thresholds, render_connection_failure, render_report

log = logging.getLogger("recording-sensor")

DEFAULT_CHANNELS = "itn,azadi,voa,pars,bbc,one"


class ConfigError(ValueError):
    """Sensor settings are missing or unusable."""


@dataclass(frozen=True)
class SensorConfig:
    name: str
    target: SSHTarget
    path: str
    channels: List[str]
    thresholds: Thresholds = field(default_factory=Thresholds)
    health_lookup: str = DEFAULT_HEALTH_LOOKUP


def load_config_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return cfg


def _pick(cli_value: Any, file_value: Any, default: Any) -> Any:
    if cli_value is not None:
        return cli_value
    if file_value is not None:
        return file_value
    return default


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def _channels_from(cli_value: Optional[str], file_value: Any) -> List[str]:
    if cli_value is not None:
        return parse_channels_arg(cli_value)
    if isinstance(file_value, str):
        return parse_channels_arg(file_value)
    if isinstance(file_value, list):
        return [str(c).strip() for c in file_value if str(c).strip()]
    return parse_channels_arg(DEFAULT_CHANNELS)


def build_config(args: argparse.Namespace, cfg: Dict[str, Any]) -> SensorConfig:
    """
    Merge CLI flags over the YAML file over built-in defaults.

    Raises ConfigError when a config section is not a mapping, the hostname
    or key is missing, or the key file cannot be read.
    """
    defaults = _section(cfg, "defaults")
    thresholds_raw = _section(cfg, "thresholds")

    hostname = _pick(args.hostname, defaults.get("hostname"), "")
    key = _pick(args.key, defaults.get("key"), "")
    if not hostname or not key:
        raise ConfigError("Please supply required arguments: --hostname and --key")

    key_file = Path(key)
    try:
        key_file.read_bytes()
    except OSError as e:
        raise ConfigError(f"Unable to read private key: {e}") from e

    target = SSHTarget(
        hostname=hostname,
        user=_pick(args.user, defaults.get("user"), "root"),
        port=_as_int("port", _pick(args.port, defaults.get("port"), 22)),
        key_file=key_file,
        connect_timeout_sec=_as_int(
            "connect_timeout_sec",
            _pick(args.connect_timeout, defaults.get("connect_timeout_sec"), DEFAULT_CONNECT_TIMEOUT),
        ),
    )

    base = Thresholds()
    thresholds = Thresholds(
        total_files_warning_max=_as_int(
            "total_files_warning_max",
            thresholds_raw.get("total_files_warning_max", base.total_files_warning_max),
        ),
        total_files_error_max=_as_int(
            "total_files_error_max",
            thresholds_raw.get("total_files_error_max", base.total_files_error_max),
        ),
        total_files_warning_msg=str(thresholds_raw.get("total_files_warning_msg", base.total_files_warning_msg)),
        total_files_error_msg=str(thresholds_raw.get("total_files_error_msg", base.total_files_error_msg)),
    )

    return SensorConfig(
        name=_pick(args.name, defaults.get("name"), "node-name"),
        target=target,
        path=_pick(args.path, defaults.get("path"), "/var/rec"),
        channels=_channels_from(args.chan, cfg.get("channels")),
        thresholds=thresholds,
        health_lookup=str(cfg.get("health_lookup") or DEFAULT_HEALTH_LOOKUP),
    )


def run_sensor(config: SensorConfig) -> str:
    """Produce the XML report for one snapshot. Listing failures yield the failure report."""
    start_time = time.time()
    log.info(f"Sensor run started for {config.name}")

    try:
        listing = fetch_listing(config.target, config.path)
    except RemoteListingError as e:
        elapsed = time.time() - start_time
        log.error(f"Remote listing failed for {config.name} (took {elapsed:.2f}s): {e}")
        return render_connection_failure(config.health_lookup)

    ledger = aggregate_listing(listing, config.channels)
    summaries = summarize(ledger)

    elapsed = time.time() - start_time
    log.info(
        f"Counted {sum(s.total for s in summaries)} files across {len(summaries)} channels "
        f"({len(listing.splitlines())} listing lines, took {elapsed:.2f}s)"
    )
    return render_report(summaries, config.thresholds, config.health_lookup)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    # None defaults let YAML values show through when a flag is not given
    ap = argparse.ArgumentParser(description="PRTG sensor for recorder folder file counts")
    ap.add_argument("--config", default=None, help="Path to sensor.yaml")
    ap.add_argument("--name", default=None, help="Node name. Default is node-name.")
    ap.add_argument("--hostname", default=None, help="Hostname. Required.")
    ap.add_argument("--user", default=None, help="Username. Default is root.")
    ap.add_argument("--key", default=None, help="SSH private key. Required.")
    ap.add_argument("--port", default=None, help="SSH port. Default is 22.")
    ap.add_argument("--path", default=None, help="Recording folder. Default is /var/rec.")
    ap.add_argument("--chan", default=None, help=f"Comma-separated channel names. Default is {DEFAULT_CHANNELS}")
    ap.add_argument("--connect-timeout", default=None, help=f"SSH connect timeout in seconds. Default is {DEFAULT_CONNECT_TIMEOUT}.")
    ap.add_argument("--log-level", default="INFO", help="Logging level for stderr")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        cfg: Dict[str, Any] = {}
        if args.config:
            config_path = Path(args.config)
            if not config_path.exists():
                raise ConfigError(f"config file not found: {config_path}")
            cfg = load_config_yaml(config_path)
        config = build_config(args, cfg)
    except (ConfigError, yaml.YAMLError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    try:
        print(run_sensor(config), end="")
        return 0
    except Exception as e:
        log.exception(f"Sensor run failed for {config.name}: {e}")
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
