"""
External calendar import: turns synced calendar events into busy blocks.

Only start/end (and the source event id) are kept; titles and descriptions of
a provider's personal events are never stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from slotengine.config import get_settings
from slotengine.core.errors import CalendarFetchError
from slotengine.core.schemas import ExternalBusyBlock
from slotengine.core.timeparse import parse_utc

logger = logging.getLogger(__name__)


def busy_blocks_from_google_events(
    items: Iterable[dict[str, Any]],
    provider: str = "google",
) -> list[ExternalBusyBlock]:
    """
    Map Google Calendar API event resources to busy blocks.

    Cancelled events and events marked "transparent" (show as free) are
    skipped. All-day events use `date` and cover whole UTC days; their end date
    is exclusive, as returned by the API.
    """
    blocks: list[ExternalBusyBlock] = []
    for event in items:
        if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
            continue
        start = _google_event_time(event.get("start") or {})
        end = _google_event_time(event.get("end") or {})
        if start is None or end is None or end <= start:
            logger.debug("Skipping calendar event without usable times: %s", event.get("id"))
            continue
        blocks.append(
            ExternalBusyBlock(
                start_utc=start,
                end_utc=end,
                source_event_id=event.get("id"),
                provider=provider,
            )
        )
    return blocks


def parse_ics_busy_blocks(ics_text: str, provider: str = "ics") -> list[ExternalBusyBlock]:
    """Parse VEVENT DTSTART/DTEND pairs from ICS text into busy blocks."""
    blocks: list[ExternalBusyBlock] = []
    in_event = False
    event: dict[str, Any] = {}

    for line in ics_text.splitlines():
        line = line.strip()
        if line == "BEGIN:VEVENT":
            in_event = True
            event = {}
        elif line == "END:VEVENT":
            in_event = False
            start, end = event.get("start"), event.get("end")
            if event.get("status") == "CANCELLED":
                continue
            if start is None or end is None or end <= start:
                continue
            blocks.append(
                ExternalBusyBlock(
                    start_utc=start,
                    end_utc=end,
                    source_event_id=event.get("uid"),
                    provider=provider,
                )
            )
        elif in_event:
            if line.startswith("DTSTART"):
                event["start"] = _parse_ics_date_property(line)
            elif line.startswith("DTEND"):
                event["end"] = _parse_ics_date_property(line)
            elif line.startswith("UID:"):
                event["uid"] = line.split(":", 1)[-1]
            elif line.startswith("STATUS:"):
                event["status"] = line.split(":", 1)[-1].upper()

    return blocks


async def fetch_ics_busy_blocks(url: str, timeout: float | None = None) -> list[ExternalBusyBlock]:
    """
    Download a public ICS feed and parse it into busy blocks.

    The request timeout defaults to `Settings.ics_timeout_seconds`.

    Raises:
        CalendarFetchError: network failure or non-2xx response.
    """
    if timeout is None:
        timeout = get_settings().ics_timeout_seconds
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(url, timeout=timeout)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("ICS fetch failed for %s: %s", url, e)
        raise CalendarFetchError(f"ICS fetch failed: {e}") from e

    return parse_ics_busy_blocks(resp.text)


def _google_event_time(value: dict[str, Any]) -> datetime | None:
    if value.get("dateTime"):
        return parse_utc(value["dateTime"])
    if value.get("date"):
        return parse_utc(f"{value['date']}T00:00:00+00:00")
    return None


def _parse_ics_date_property(line: str) -> datetime | None:
    """
    Parse a DTSTART/DTEND content line, e.g. `DTSTART;TZID=Europe/Rome:20260216T100000`.

    A TZID parameter localizes the wall-clock value. An unknown zone yields None
    so the event is dropped rather than placed at the wrong instant.
    """
    head, _, value = line.partition(":")
    zone: tzinfo = timezone.utc
    for param in head.split(";")[1:]:
        key, _, param_value = param.partition("=")
        if key.upper() != "TZID":
            continue
        try:
            zone = ZoneInfo(param_value.strip('"'))
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug("Dropping ICS time with unknown TZID %r", param_value)
            return None
    return _parse_ics_datetime(value, zone)


def _parse_ics_datetime(s: str, zone: tzinfo = timezone.utc) -> datetime | None:
    """Parse ICS datetime (YYYYMMDDTHHMMSSZ or YYYYMMDD). Floating times are read in `zone`."""
    try:
        s = s.strip()
        y = int(s[0:4])
        m = int(s[4:6])
        d = int(s[6:8])
        if len(s) == 8:
            local = datetime(y, m, d, tzinfo=zone)
        else:
            h = int(s[9:11])
            mi = int(s[11:13])
            sec = int(s[13:15])
            if s.endswith("Z"):
                zone = timezone.utc
            local = datetime(y, m, d, h, mi, sec, tzinfo=zone)
    except (ValueError, IndexError):
        return None
    return local.astimezone(timezone.utc)
