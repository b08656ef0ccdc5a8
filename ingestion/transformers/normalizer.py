"""
Normalize raw PublicInfoBanjir cells and feed items into typed records
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from core.reference import ReferenceData, DEFAULT_REFERENCE
from schemas.records import (
    DailyTotal,
    RainTableRow,
    WaterTableRow,
    FallbackRainRow,
    FallbackWaterRow,
    SkippedRow,
)
import logging

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"[-+]?\d+(?:\.\d+)?")
LOCAL_DATETIME_PATTERN = re.compile(
    r"^(\d{2})/(\d{2})/(\d{4}) (\d{2}):(\d{2})(?::(\d{2}))?$"
)
DATE_LABEL_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")

RAIN_MIN_CELLS = 13
WATER_MIN_CELLS = 12
DAILY_COLUMN_START = 5
DAILY_COLUMN_COUNT = 6


def parse_number(value: Any, sentinel_cutoff: float = DEFAULT_REFERENCE.sentinel_cutoff) -> Optional[float]:
    """
    Parse a numeric cell.

    "2.0" -> 2.0, "1,234.5" -> 1234.5, "2.0 mm" -> 2.0,
    "" / "No Data" -> None, "-9999.0" -> None (invalid sensor marker).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        match = NUMBER_PATTERN.search(text)
        if not match:
            return None
        number = float(match.group(0))

    if number != number or number in (float("inf"), float("-inf")):
        return None
    if number <= sentinel_cutoff:
        return None
    return number


def parse_local_datetime(raw: Any, utc_offset_hours: int = DEFAULT_REFERENCE.utc_offset_hours) -> Optional[datetime]:
    """
    Parse a portal timestamp ("DD/MM/YYYY HH:mm[:ss]", local time) into UTC.

    The offset is removed with plain field arithmetic on the naive local time;
    the result is tagged UTC. Anything that does not match returns None.
    """
    if not raw or not isinstance(raw, str):
        return None

    match = LOCAL_DATETIME_PATTERN.match(raw.strip())
    if not match:
        return None

    dd, mm, yyyy, hh, mi, ss = match.groups()
    try:
        local = datetime(
            int(yyyy), int(mm), int(dd), int(hh), int(mi), int(ss or 0)
        )
    except ValueError:
        return None

    return (local - timedelta(hours=utc_offset_hours)).replace(tzinfo=timezone.utc)


def to_title_case(value: Optional[str]) -> Optional[str]:
    """Title-case a station or district name, upper-casing parenthetical parts."""
    text = (value or "").strip()
    if not text:
        return None
    text = re.sub(r"\s+", " ", text.lower())
    text = re.sub(r"\b([a-z])(\S*)", lambda m: m.group(1).upper() + m.group(2), text)
    text = re.sub(r"\(([^)]*)\)", lambda m: f"({m.group(1).upper()})", text)
    return text


def canonical_region(value: Optional[str], aliases: Mapping[str, str] = DEFAULT_REFERENCE.region_aliases) -> str:
    """Map a state name or alias to its region code; unknown input passes through upper-cased."""
    upper = re.sub(r"\s+", " ", (value or "").strip().upper())
    return aliases.get(upper, upper)


def find_daily_dates(header_rows: Sequence[Sequence[str]], minimum: int = 5) -> List[str]:
    """Return the date labels of the first header row holding at least `minimum` dates."""
    for cells in header_rows:
        dates = [c for c in cells if c and DATE_LABEL_PATTERN.match(c)]
        if len(dates) >= minimum:
            return dates
    return []


def _cell(cells: Sequence[str], index: int) -> str:
    return cells[index].strip() if index < len(cells) and cells[index] else ""


def _optional_text(value: str) -> Optional[str]:
    return value or None


class RowNormalizer:
    """
    Type raw rows at the adapter boundary.

    Every method returns either a typed record or a SkippedRow; row defects
    are never raised.
    """

    def __init__(self, reference: ReferenceData = DEFAULT_REFERENCE):
        self.reference = reference

    def number(self, value: Any) -> Optional[float]:
        return parse_number(value, self.reference.sentinel_cutoff)

    def timestamp(self, value: Any) -> Optional[datetime]:
        return parse_local_datetime(value, self.reference.utc_offset_hours)

    # ------------------------------------------------------------------
    # Primary source
    # ------------------------------------------------------------------

    def rain_row(self, cells: Sequence[str], daily_dates: Sequence[str] = ()) -> Union[RainTableRow, SkippedRow]:
        """
        Rainfall table column mapping (tbody):
        0 No. | 1 Station ID | 2 Station | 3 District | 4 Last Updated |
        5..10 Daily rainfall | 11 Rainfall from midnight | 12 Total 1 hour (now)
        """
        cells = list(cells)
        if len(cells) < RAIN_MIN_CELLS:
            return SkippedRow(kind="rain", reason="too_few_cells", raw=cells)

        station_id = _cell(cells, 1)
        station_name = _cell(cells, 2)
        if not station_id or not station_name:
            return SkippedRow(kind="rain", reason="missing_station_identity", raw=cells)

        daily_totals = [
            DailyTotal(
                date_raw=date_raw,
                total_mm=self.number(_cell(cells, DAILY_COLUMN_START + i)),
            )
            for i, date_raw in enumerate(list(daily_dates)[:DAILY_COLUMN_COUNT])
        ]

        return RainTableRow(
            station_id=station_id,
            station_name=station_name,
            district=_optional_text(_cell(cells, 3)),
            recorded_at=self.timestamp(_cell(cells, 4)),
            rain_since_midnight_mm=self.number(_cell(cells, 11)),
            rain_1h_mm=self.number(_cell(cells, 12)),
            daily_totals=daily_totals,
            source=self.reference.primary_source,
        )

    def water_row(self, cells: Sequence[str]) -> Union[WaterTableRow, SkippedRow]:
        """
        Water level table column mapping (tbody):
        0 No. | 1 Station ID | 2 Station Name | 3 District | 4 Main Basin |
        5 Sub River Basin | 6 Last Updated | 7 Water Level (m) |
        8 Normal | 9 Alert | 10 Warning | 11 Danger
        """
        cells = list(cells)
        if len(cells) < WATER_MIN_CELLS:
            return SkippedRow(kind="water_level", reason="too_few_cells", raw=cells)

        station_id = _cell(cells, 1)
        station_name = _cell(cells, 2)
        if not station_id or not station_name:
            return SkippedRow(kind="water_level", reason="missing_station_identity", raw=cells)

        return WaterTableRow(
            station_id=station_id,
            station_name=station_name,
            district=_optional_text(_cell(cells, 3)),
            main_basin=_optional_text(_cell(cells, 4)),
            sub_river_basin=_optional_text(_cell(cells, 5)),
            recorded_at=self.timestamp(_cell(cells, 6)),
            water_level_m=self.number(_cell(cells, 7)),
            normal_threshold_m=self.number(_cell(cells, 8)),
            alert_threshold_m=self.number(_cell(cells, 9)),
            warning_threshold_m=self.number(_cell(cells, 10)),
            danger_threshold_m=self.number(_cell(cells, 11)),
            source=self.reference.primary_source,
        )

    # ------------------------------------------------------------------
    # Fallback feed
    # ------------------------------------------------------------------

    def feed_flags(self, value: Any) -> set:
        tokens = re.split(r"[^A-Z]+", str(value or "").upper())
        return {t for t in tokens if t}

    def feed_rows(
        self,
        item: Any,
        region: str,
    ) -> List[Union[FallbackRainRow, FallbackWaterRow, SkippedRow]]:
        """
        Turn one feed item into zero, one or two fallback rows.

        Items for other regions yield nothing. Items whose value or timestamp
        do not parse yield a SkippedRow for that measurement.
        """
        codes = self.reference.feed_fields
        if not isinstance(item, dict):
            return [SkippedRow(kind="feed", reason="not_an_object", raw=[str(item)[:200]])]

        state = canonical_region(item.get(codes.state), self.reference.region_aliases)
        if state != canonical_region(region, self.reference.region_aliases):
            return []

        name = to_title_case(_text(item.get(codes.station_name)))
        if not name:
            return [SkippedRow(kind="feed", reason="missing_station_name", raw=_raw(item))]

        district = to_title_case(_text(item.get(codes.district)))
        latitude = self.number(item.get(codes.latitude))
        longitude = self.number(item.get(codes.longitude))
        flags = self.feed_flags(item.get(codes.type_flags))

        out: List[Union[FallbackRainRow, FallbackWaterRow, SkippedRow]] = []

        if flags & set(self.reference.rain_flags):
            value = self.number(item.get(codes.rain_value))
            recorded_at = self.timestamp(_text(item.get(codes.rain_timestamp)))
            if value is None or recorded_at is None:
                out.append(SkippedRow(kind="feed_rain", reason="unparseable_value_or_timestamp", raw=_raw(item)))
            else:
                out.append(self._build(FallbackRainRow, item, dict(
                    station_name=name,
                    state=state,
                    district=district,
                    recorded_at=recorded_at,
                    rain_mm=value,
                    latitude=latitude,
                    longitude=longitude,
                    source=self.reference.fallback_source,
                )))

        if flags & set(self.reference.water_level_flags):
            value = self.number(item.get(codes.water_level_value))
            recorded_at = self.timestamp(_text(item.get(codes.water_level_timestamp)))
            if value is None or recorded_at is None:
                out.append(SkippedRow(kind="feed_water_level", reason="unparseable_value_or_timestamp", raw=_raw(item)))
            else:
                out.append(self._build(FallbackWaterRow, item, dict(
                    station_name=name,
                    state=state,
                    district=district,
                    recorded_at=recorded_at,
                    water_level_m=value,
                    latitude=latitude,
                    longitude=longitude,
                    source=self.reference.fallback_source,
                )))

        if not out:
            out.append(SkippedRow(kind="feed", reason="no_known_type_flag", raw=_raw(item)))
        return out

    @staticmethod
    def _build(model, item: Dict[str, Any], values: Dict[str, Any]):
        try:
            return model(**values)
        except ValidationError as e:
            return SkippedRow(kind="feed", reason=f"invalid_shape: {e.error_count()} errors", raw=_raw(item))


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _raw(item: Dict[str, Any]) -> List[str]:
    return [f"{k}={v}" for k, v in item.items()]
