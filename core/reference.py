"""
Immutable reference data shared by the normalizer, reconciler and source adapter.

Region codes, the state-name alias table and the numeric sentinel cutoff are
passed around as a single frozen object so they can be swapped in tests and
extended without touching parsing code.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple


REGION_CODES: Tuple[str, ...] = (
    "PLS", "KDH", "PNG", "PRK", "SEL", "WLH", "PTJ", "NSN",
    "MLK", "JHR", "PHG", "TRG", "KEL", "SRK", "SAB", "WLP",
)

# Full state names and common spellings used by the JSON feed -> portal codes.
REGION_ALIASES: Mapping[str, str] = MappingProxyType({
    "KEDAH": "KDH",
    "KELANTAN": "KEL",
    "TERENGGANU": "TRG",
    "PAHANG": "PHG",
    "SELANGOR": "SEL",
    "PERAK": "PRK",
    "PERLIS": "PLS",
    "PULAU PINANG": "PNG",
    "PENANG": "PNG",
    "WILAYAH PERSEKUTUAN": "WLP",
    "KUALA LUMPUR": "WLP",
    "PUTRAJAYA": "WLH",
    "LABUAN": "WLP",
    "NEGERI SEMBILAN": "NSN",
    "MELAKA": "MLK",
    "MALACCA": "MLK",
    "JOHOR": "JHR",
    "SABAH": "SAB",
    "SARAWAK": "SRK",
})


@dataclass(frozen=True)
class FeedFieldCodes:
    """Short keys used by the fallback JSON feed."""

    upstream_id: str = "a"
    station_name: str = "b"
    latitude: str = "c"
    longitude: str = "d"
    district: str = "e"
    state: str = "f"
    type_flags: str = "g"
    rain_value: str = "h"
    rain_timestamp: str = "i"
    water_level_value: str = "j"
    water_level_timestamp: str = "k"


@dataclass(frozen=True)
class ReferenceData:
    """
    Configuration data for parsing and matching.

    Attributes:
        region_aliases: Upper-cased state names -> region code
        sentinel_cutoff: Numeric values at or below this are invalid-sensor markers
        utc_offset_hours: Fixed offset of portal timestamps (Malaysia, UTC+8)
        primary_source: Provenance tag for rows scraped from the HTML tables
        fallback_source: Provenance tag for rows taken from the JSON feed
        rain_flags / water_level_flags: Type-flag tokens in the feed
    """

    region_aliases: Mapping[str, str] = field(default_factory=lambda: REGION_ALIASES)
    sentinel_cutoff: float = -9999.0
    utc_offset_hours: int = 8
    primary_source: str = "publicinfobanjir"
    fallback_source: str = "publicinfobanjir_json"
    rain_flags: Tuple[str, ...] = ("RF", "RAIN", "RAINFALL")
    water_level_flags: Tuple[str, ...] = ("WL", "WATER", "WATERLEVEL")
    feed_fields: FeedFieldCodes = field(default_factory=FeedFieldCodes)


DEFAULT_REFERENCE = ReferenceData()
