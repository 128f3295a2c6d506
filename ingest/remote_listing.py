#!/usr/bin/env python3
"""
Recording Sensor: Remote Listing (v1)

- Runs `ls -lha <path>` on the recording server over SSH
- Returns the raw listing text (one file entry per line)
- Key-based auth only; host keys are not checked

Uses the system `ssh` client in batch mode, so no password prompts can hang a run.
"""

from __future__ import annotations

import argparse
import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

log = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10  # seconds
# Headroom on top of the connect timeout for the listing itself
COMMAND_TIMEOUT_SLACK = 30  # seconds


class RemoteListingError(RuntimeError):
    """The remote listing could not be produced (connect, auth or command failure)."""


@dataclass(frozen=True)
class SSHTarget:
    hostname: str
    user: str
    port: int
    key_file: Path
    connect_timeout_sec: int = DEFAULT_CONNECT_TIMEOUT


def listing_command(path: str) -> str:
    return f"ls -lha {shlex.quote(path)}"


def build_ssh_argv(target: SSHTarget, remote_command: str) -> List[str]:
    return [
        "ssh",
        "-i", str(target.key_file),
        "-p", str(target.port),
        "-o", "BatchMode=yes",
        "-o", "IdentitiesOnly=yes",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "LogLevel=ERROR",
        "-o", f"ConnectTimeout={target.connect_timeout_sec}",
        f"{target.user}@{target.hostname}",
        remote_command,
    ]


def fetch_listing(target: SSHTarget, path: str) -> str:
    argv = build_ssh_argv(target, listing_command(path))
    timeout = target.connect_timeout_sec + COMMAND_TIMEOUT_SLACK
    log.info(f"Listing {path} on {target.user}@{target.hostname}:{target.port}")

    try:
        proc = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise RemoteListingError("ssh client not found on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise RemoteListingError(f"ssh timed out after {timeout}s") from e

    if proc.returncode != 0:
        stderr = proc.stderr.strip()
        raise RemoteListingError(
            f"ssh exited with code {proc.returncode}: {stderr or 'no stderr'}"
        )

    return proc.stdout


def main() -> int:
    ap = argparse.ArgumentParser(description="Print the remote recording directory listing")
    ap.add_argument("--hostname", required=True)
    ap.add_argument("--user", default="root")
    ap.add_argument("--key", required=True, help="SSH private key file")
    ap.add_argument("--port", type=int, default=22)
    ap.add_argument("--path", default="/var/rec")
    args = ap.parse_args()

    target = SSHTarget(
        hostname=args.hostname,
        user=args.user,
        port=args.port,
        key_file=Path(args.key),
    )

    try:
        sys.stdout.write(fetch_listing(target, args.path))
    except RemoteListingError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
