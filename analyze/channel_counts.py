#!/usr/bin/env python3
"""
Recording Sensor: Channel Counts (v1)

Folds a long-format directory listing (`ls -l` style, filename in field 9)
into per-channel, per-day file counts, then derives two views per channel:

  total  = files across all days
  today  = files dated on the current calendar day (0 if none)

Input:
  Listing text from ingest/remote_listing.py (or a saved file / stdin).

Notes:
  - Lines that are short, blank or carry a non-recording filename are skipped.
  - Whitelisted channels with no files still get an (empty) entry, so a silent
    channel reports 0 instead of disappearing.
  - Built fresh per call; nothing is kept between runs.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from dateutil import parser as dtparser

from ingest.filename_parser import Rejected, parse_filename

log = logging.getLogger(__name__)

# `ls -l` puts the file name at index 8
FILENAME_FIELD = 8


@dataclass
class ChannelRecords:
    name: str
    records: Counter = field(default_factory=Counter)  # "YYYY-MM-DD" -> files


ChannelLedger = Dict[str, ChannelRecords]


@dataclass(frozen=True)
class ChannelSummary:
    channel: str
    total: int
    today: int


def aggregate(lines: Iterable[str], known_channels: Iterable[str] = ()) -> ChannelLedger:
    ledger: ChannelLedger = {}

    for line in lines:
        fields = line.split()
        if len(fields) <= FILENAME_FIELD:
            continue

        result = parse_filename(fields[FILENAME_FIELD])
        if isinstance(result, Rejected):
            log.debug(f"Skipping file {result.filename}: {result.reason}")
            continue

        if result.channel not in ledger:
            ledger[result.channel] = ChannelRecords(name=result.channel)
        ledger[result.channel].records[result.date] += 1

    for name in known_channels:
        if name not in ledger:
            ledger[name] = ChannelRecords(name=name)

    return ledger


def aggregate_listing(text: str, known_channels: Iterable[str] = ()) -> ChannelLedger:
    return aggregate(text.splitlines(), known_channels)


def same_day(stored: str, day: date) -> bool:
    """True if a stored YYYY-MM-DD key falls on `day`. Unparseable keys never match."""
    try:
        return dtparser.isoparse(stored).date() == day
    except ValueError:
        return False


def summarize(ledger: ChannelLedger, today: Optional[date] = None) -> List[ChannelSummary]:
    """
    Per-channel totals, sorted by channel name.

    `today` defaults to the local calendar date at call time.
    """
    if today is None:
        today = date.today()

    out: List[ChannelSummary] = []
    for name in sorted(ledger):
        records = ledger[name].records
        today_count = 0
        for d, count in records.items():
            if same_day(d, today):
                today_count = count
        out.append(ChannelSummary(channel=name, total=sum(records.values()), today=today_count))
    return out


def parse_channels_arg(s: str) -> List[str]:
    return [c.strip() for c in s.split(",") if c.strip()]


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--in", dest="inp", default="-", help="Listing text file ('-' for stdin)")
    ap.add_argument("--chan", default="", help="Comma-separated channels that must always be reported")
    ap.add_argument("--today", default=None, help="Override today's date YYYY-MM-DD")
    args = ap.parse_args()

    if args.inp == "-":
        text = sys.stdin.read()
    else:
        inp = Path(args.inp)
        if not inp.exists():
            print(f"ERROR: input not found: {inp}", file=sys.stderr)
            return 2
        text = inp.read_text(encoding="utf-8")

    today = None
    if args.today:
        try:
            today = dtparser.isoparse(args.today).date()
        except ValueError:
            print(f"ERROR: --today must be YYYY-MM-DD, got {args.today!r}", file=sys.stderr)
            return 2

    ledger = aggregate_listing(text, parse_channels_arg(args.chan))
    summaries = summarize(ledger, today=today)

    result = {
        "channels": [asdict(s) for s in summaries],
        "per_day": {name: dict(sorted(cr.records.items())) for name, cr in sorted(ledger.items())},
    }
    print(json.dumps(result, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
