from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class StationType(str, enum.Enum):
    """Role a station was last observed in"""
    RAINFALL = "rainfall"
    WATER_LEVEL = "water_level"


class SourceMode(str, enum.Enum):
    """Which upstream path produced a task's rows"""
    PRIMARY = "primary"
    FALLBACK = "fallback"
