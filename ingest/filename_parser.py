#!/usr/bin/env python3
"""
Recording Sensor: Filename Parser (v1)

Turns a recorder file name into a (channel, date) record.

Expected form:
  <channel>-<DD>-<Mon>-<YY>-<HH:MM:SS>.<ext...>
  e.g. azadi-01-Jul-24-02:34:07.audio.m4a

Anything else is rejected with a reason. Callers normally drop rejections;
the reason is kept so tests (and DEBUG logs) can tell the failure classes apart.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Union

# Two-digit years below the pivot are 20YY, the rest 19YY.
YEAR_PIVOT = 69

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

TIMESTAMP_RE = re.compile(
    r"^(?P<day>[0-9]{2})-(?P<month>[A-Za-z]{3})-(?P<year>[0-9]{2}) "
    r"(?P<hour>[0-9]{1,2}):(?P<minute>[0-9]{2}):(?P<second>[0-9]{2})$"
)

MISSING_EXTENSION = "missing_extension"
TOO_FEW_SEGMENTS = "too_few_segments"
BAD_TIMESTAMP = "bad_timestamp"


@dataclass(frozen=True)
class Record:
    channel: str
    date: str  # YYYY-MM-DD


@dataclass(frozen=True)
class Rejected:
    filename: str
    reason: str


ParseResult = Union[Record, Rejected]


def expand_year(yy: int) -> int:
    return 2000 + yy if yy < YEAR_PIVOT else 1900 + yy


def parse_timestamp(s: str) -> datetime:
    """
    Parse "DD-Mon-YY HH:MM:SS" into a naive datetime.

    Month names are matched against a fixed English table so the result
    does not depend on the process locale. Raises ValueError on bad input.
    """
    m = TIMESTAMP_RE.match(s)
    if not m:
        raise ValueError(f"timestamp does not match DD-Mon-YY HH:MM:SS: {s!r}")

    month = MONTHS.get(m.group("month").lower())
    if month is None:
        raise ValueError(f"unknown month abbreviation: {m.group('month')!r}")

    # datetime() validates day-of-month and the clock fields
    return datetime(
        expand_year(int(m.group("year"))),
        month,
        int(m.group("day")),
        int(m.group("hour")),
        int(m.group("minute")),
        int(m.group("second")),
    )


def parse_filename(filename: str) -> ParseResult:
    name_parts = filename.split(".")
    if len(name_parts) < 2:
        return Rejected(filename, MISSING_EXTENSION)

    parts = name_parts[0].split("-")
    if len(parts) < 5:
        return Rejected(filename, TOO_FEW_SEGMENTS)

    channel, day, month, year, time_part = parts[:5]

    try:
        ts = parse_timestamp(f"{day}-{month}-{year} {time_part}")
    except ValueError:
        return Rejected(filename, BAD_TIMESTAMP)

    return Record(channel=channel, date=ts.strftime("%Y-%m-%d"))


def is_record(result: ParseResult) -> bool:
    return isinstance(result, Record)
