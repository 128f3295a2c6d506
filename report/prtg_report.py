#!/usr/bin/env python3
"""
Recording Sensor: PRTG Report (v1)

Renders channel summaries as PRTG "EXE/Script Advanced" XML:

  <prtg>
    <result>  Connection Health   (0 = ok, 1 = listing failed)
    <result>  <channel> Total files   (with max warning/error limits)
    <result>  <channel> Today Rec
    ...
  </prtg>

Element order inside <result> is fixed; optional elements with no value are left out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from lxml import etree

from analyze.channel_counts import ChannelSummary

HEALTH_CHANNEL = "Connection Health"
DEFAULT_HEALTH_LOOKUP = "prtg.customlookups.gvb-sensor.timeout"

# (element name, ResultChannel attribute), in output order
RESULT_FIELDS = [
    ("channel", "channel"),
    ("value", "value"),
    ("unit", "unit"),
    ("customunit", "custom_unit"),
    ("limitmode", "limit_mode"),
    ("float", "is_float"),
    ("limiterrormsg", "limit_error_msg"),
    ("limitwarningmsg", "limit_warning_msg"),
    ("limitminerror", "limit_error_min"),
    ("limitmaxerror", "limit_error_max"),
    ("limitminwarning", "limit_warning_min"),
    ("limitmaxwarning", "limit_warning_max"),
    ("warning", "warning"),
    ("valuelookup", "value_lookup"),
]

# Written even when zero
ALWAYS_WRITTEN = {"channel", "value", "unit", "limitmode"}


@dataclass(frozen=True)
class Thresholds:
    total_files_warning_max: int = 50
    total_files_error_max: int = 70
    total_files_warning_msg: str = "Transfering files failed"
    total_files_error_msg: str = "Too much file are stored"


@dataclass(frozen=True)
class ResultChannel:
    channel: str
    value: str
    unit: str = "Count"
    custom_unit: str = ""
    limit_mode: int = 0
    is_float: int = 0
    limit_error_msg: str = ""
    limit_warning_msg: str = ""
    limit_error_min: str = ""
    limit_error_max: str = ""
    limit_warning_min: str = ""
    limit_warning_max: str = ""
    warning: str = ""
    value_lookup: str = ""


def health_channel(failed: bool, lookup: str = DEFAULT_HEALTH_LOOKUP) -> ResultChannel:
    return ResultChannel(
        channel=HEALTH_CHANNEL,
        value="1" if failed else "0",
        unit="Count",
        value_lookup=lookup,
        warning="1",
    )


def channel_results(summary: ChannelSummary, thresholds: Thresholds) -> List[ResultChannel]:
    total = ResultChannel(
        channel=f"{summary.channel} Total files",
        value=str(summary.total),
        unit="custom",
        custom_unit="files",
        limit_mode=1,
        limit_error_max=str(thresholds.total_files_error_max),
        limit_warning_max=str(thresholds.total_files_warning_max),
        limit_error_msg=thresholds.total_files_error_msg,
        limit_warning_msg=thresholds.total_files_warning_msg,
    )
    today = ResultChannel(
        channel=f"{summary.channel} Today Rec",
        value=str(summary.today),
        unit="custom",
        custom_unit="files",
    )
    return [total, today]


def build_results(
    summaries: Iterable[ChannelSummary],
    thresholds: Optional[Thresholds] = None,
    health_lookup: str = DEFAULT_HEALTH_LOOKUP,
) -> List[ResultChannel]:
    thresholds = thresholds or Thresholds()
    results = [health_channel(failed=False, lookup=health_lookup)]
    for s in summaries:
        results.extend(channel_results(s, thresholds))
    return results


def to_element(results: Iterable[ResultChannel]) -> etree._Element:
    root = etree.Element("prtg")
    for r in results:
        res_el = etree.SubElement(root, "result")
        for tag, attr in RESULT_FIELDS:
            val = getattr(r, attr)
            if tag not in ALWAYS_WRITTEN and val in ("", 0):
                continue
            etree.SubElement(res_el, tag).text = str(val)
    return root


def render(results: Iterable[ResultChannel]) -> str:
    return etree.tostring(
        to_element(results),
        pretty_print=True,
        xml_declaration=True,
        encoding="UTF-8",
    ).decode("utf-8")


def render_report(
    summaries: Iterable[ChannelSummary],
    thresholds: Optional[Thresholds] = None,
    health_lookup: str = DEFAULT_HEALTH_LOOKUP,
) -> str:
    return render(build_results(summaries, thresholds, health_lookup))


def render_connection_failure(health_lookup: str = DEFAULT_HEALTH_LOOKUP) -> str:
    return render([health_channel(failed=True, lookup=health_lookup)])
