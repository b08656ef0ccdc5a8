"""
Unit tests for cell/feed normalization
"""

import pytest
from datetime import datetime, timezone
from ingestion.transformers.normalizer import (
    RowNormalizer,
    canonical_region,
    find_daily_dates,
    parse_local_datetime,
    parse_number,
    to_title_case,
)
from core.reference import ReferenceData
from schemas.records import (
    FallbackRainRow,
    FallbackWaterRow,
    RainTableRow,
    SkippedRow,
    WaterTableRow,
)


class TestParseNumber:
    """Numeric cell parsing"""

    @pytest.mark.parametrize("raw,expected", [
        ("2.0", 2.0),
        ("0", 0.0),
        ("-1.5", -1.5),
        ("1,234.5", 1234.5),
        ("2.0 mm", 2.0),
        (3, 3.0),
        (4.25, 4.25),
    ])
    def test_valid_numbers(self, raw, expected):
        assert parse_number(raw) == expected

    @pytest.mark.parametrize("raw", ["-9999", "-9999.0", "-10000", -9999])
    def test_sentinel_values_are_none(self, raw):
        assert parse_number(raw) is None

    @pytest.mark.parametrize("raw", [None, "", "   ", "No Data", "-", True, float("nan")])
    def test_empty_or_non_numeric_is_none(self, raw):
        assert parse_number(raw) is None

    def test_custom_cutoff(self):
        assert parse_number("-50", sentinel_cutoff=-100) == -50.0
        assert parse_number("-100", sentinel_cutoff=-100) is None


class TestParseLocalDatetime:
    """Portal timestamp parsing (UTC+8 -> UTC)"""

    def test_subtracts_eight_hours(self):
        result = parse_local_datetime("15/01/2024 14:00")
        assert result == datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)

    def test_seconds_are_optional(self):
        result = parse_local_datetime("15/01/2024 14:00:30")
        assert result == datetime(2024, 1, 15, 6, 0, 30, tzinfo=timezone.utc)

    def test_crosses_midnight(self):
        result = parse_local_datetime("01/01/2024 03:00")
        assert result == datetime(2023, 12, 31, 19, 0, tzinfo=timezone.utc)

    def test_result_is_timezone_aware(self):
        assert parse_local_datetime("15/01/2024 14:00").tzinfo is not None

    @pytest.mark.parametrize("raw", [
        None, "", "2024-01-15 14:00", "15/01/2024", "15/1/2024 14:00", "31/02/2024 10:00", "garbage",
    ])
    def test_malformed_is_none(self, raw):
        assert parse_local_datetime(raw) is None


class TestTextHelpers:

    def test_title_case(self):
        assert to_title_case("SUNGAI  ARA") == "Sungai Ara"
        assert to_title_case("ldg. kuala (jps)") == "Ldg. Kuala (JPS)"
        assert to_title_case("") is None
        assert to_title_case(None) is None

    @pytest.mark.parametrize("raw,expected", [
        ("Penang", "PNG"),
        ("PULAU  PINANG", "PNG"),
        ("kedah", "KDH"),
        ("png", "PNG"),
        ("Unknown Land", "UNKNOWN LAND"),
    ])
    def test_canonical_region(self, raw, expected):
        assert canonical_region(raw) == expected

    def test_find_daily_dates_picks_row_with_dates(self):
        headers = [
            ["No.", "Station ID", "Station", "Daily Rainfall"],
            ["10/01/2024", "11/01/2024", "12/01/2024", "13/01/2024", "14/01/2024", "15/01/2024"],
        ]
        assert find_daily_dates(headers) == headers[1]

    def test_find_daily_dates_none_found(self):
        assert find_daily_dates([["No.", "Station"]]) == []


class TestRowNormalizer:
    """Typed rows at the adapter boundary"""

    def test_rain_row(self, rain_cells):
        dates = ["10/01/2024", "11/01/2024", "12/01/2024", "13/01/2024", "14/01/2024", "15/01/2024"]
        row = RowNormalizer().rain_row(rain_cells, dates)

        assert isinstance(row, RainTableRow)
        assert row.station_id == "3613001"
        assert row.station_name == "Sungai Ara"
        assert row.district == "Barat Daya"
        assert row.recorded_at == datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)
        assert row.rain_1h_mm == 0.5
        assert row.rain_since_midnight_mm == 2.0
        assert [d.total_mm for d in row.daily_totals] == [0.0, 12.5, 3.0, 0.0, None, 1.0]
        assert row.source == "publicinfobanjir"

    def test_rain_row_too_few_cells(self, rain_cells):
        row = RowNormalizer().rain_row(rain_cells[:12])
        assert isinstance(row, SkippedRow)
        assert row.reason == "too_few_cells"

    def test_rain_row_without_station_id(self, rain_cells):
        rain_cells[1] = ""
        row = RowNormalizer().rain_row(rain_cells)
        assert isinstance(row, SkippedRow)
        assert row.reason == "missing_station_identity"

    def test_rain_row_keeps_unparseable_timestamp_as_none(self, rain_cells):
        rain_cells[4] = "-"
        row = RowNormalizer().rain_row(rain_cells)
        assert isinstance(row, RainTableRow)
        assert row.recorded_at is None

    def test_water_row(self, water_cells):
        row = RowNormalizer().water_row(water_cells)

        assert isinstance(row, WaterTableRow)
        assert row.station_id == "5606410"
        assert row.recorded_at == datetime(2024, 1, 15, 6, 15, tzinfo=timezone.utc)
        assert row.water_level_m == 1.23
        assert row.danger_threshold_m == 3.5
        assert row.main_basin == "Sungai Pinang"

    def test_water_row_sentinel_level(self, water_cells):
        water_cells[7] = "-9999.00"
        row = RowNormalizer().water_row(water_cells)
        assert row.water_level_m is None

    def test_water_row_too_few_cells(self, water_cells):
        assert RowNormalizer().water_row(water_cells[:11]).reason == "too_few_cells"


class TestFeedRows:
    """Fallback feed item normalization"""

    def test_rain_item_for_region(self, feed_items):
        rows = RowNormalizer().feed_rows(feed_items[0], "PNG")

        assert len(rows) == 1
        row = rows[0]
        assert isinstance(row, FallbackRainRow)
        assert row.station_name == "Sungai Ara"
        assert row.state == "PNG"
        assert row.district is None
        assert row.rain_mm == 4.5
        assert row.recorded_at == datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)
        assert row.source == "publicinfobanjir_json"

    def test_water_level_item(self, feed_items):
        rows = RowNormalizer().feed_rows(feed_items[1], "PNG")
        assert isinstance(rows[0], FallbackWaterRow)
        assert rows[0].water_level_m == 1.30
        assert rows[0].district == "Timur Laut"

    def test_other_region_is_ignored(self, feed_items):
        assert RowNormalizer().feed_rows(feed_items[2], "PNG") == []

    def test_dual_flag_item_yields_two_rows(self):
        item = {
            "b": "Station X", "f": "PNG", "g": "RF,WL",
            "h": "1.0", "i": "15/01/2024 14:00", "j": "2.0", "k": "15/01/2024 14:00",
        }
        rows = RowNormalizer().feed_rows(item, "PNG")
        assert {type(r) for r in rows} == {FallbackRainRow, FallbackWaterRow}

    def test_unparseable_value_is_skipped(self):
        item = {"b": "Station X", "f": "PNG", "g": "RF", "h": "-9999", "i": "15/01/2024 14:00"}
        rows = RowNormalizer().feed_rows(item, "PNG")
        assert len(rows) == 1
        assert isinstance(rows[0], SkippedRow)
        assert rows[0].reason == "unparseable_value_or_timestamp"

    def test_missing_name_is_skipped(self):
        rows = RowNormalizer().feed_rows({"f": "PNG", "g": "RF"}, "PNG")
        assert rows[0].reason == "missing_station_name"

    def test_unknown_flag_is_skipped(self):
        rows = RowNormalizer().feed_rows({"b": "Station X", "f": "PNG", "g": "XX"}, "PNG")
        assert rows[0].reason == "no_known_type_flag"

    def test_non_object_item_is_skipped(self):
        rows = RowNormalizer().feed_rows(["not", "a", "dict"], "PNG")
        assert rows[0].reason == "not_an_object"

    def test_reference_data_is_injectable(self, feed_items):
        reference = ReferenceData(region_aliases={"PULAU PINANG": "PP"})
        rows = RowNormalizer(reference).feed_rows(feed_items[0], "PP")
        assert rows[0].state == "PP"
