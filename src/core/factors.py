"""Scored factor types produced by the swim scorer.

Five fixed variants, one per weighted factor. Each carries its 0-100 score,
a factor-specific classification, the echoed input values and the ordered
issue strings that explain any deduction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from src.core.readings import ReleaseLevel, TidePhase, TrendDirection


class FactorKind(Enum):
    """Factor tag; values match the SCORE_WEIGHTS keys."""
    WATER_QUALITY = "water_quality"
    TIDE_AND_CURRENT = "tide_and_current"
    WAVES = "waves"
    WEATHER = "weather"
    DAM_RELEASES = "dam_releases"


class WaterQualityStatus(Enum):
    SAFE = "safe"
    ADVISORY = "advisory"
    WARNING = "warning"
    DANGEROUS = "dangerous"


class WaveStatus(Enum):
    CALM = "calm"
    MODERATE = "moderate"
    ROUGH = "rough"
    DANGEROUS = "dangerous"


class WindCondition(Enum):
    CALM = "calm"
    LIGHT = "light"
    MODERATE = "moderate"
    STRONG = "strong"


class Rating(Enum):
    """Overall swim rating."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DANGEROUS = "dangerous"


@dataclass(frozen=True)
class WaterQualityFactor:
    score: float
    status: WaterQualityStatus
    bacteria_level: str  # safe, moderate, high, dangerous, unknown
    recent_overflow: bool = False
    days_since_overflow: Optional[int] = None
    issues: tuple = ()
    kind: FactorKind = field(default=FactorKind.WATER_QUALITY, init=False)


@dataclass(frozen=True)
class TideCurrentFactor:
    score: float
    phase: TidePhase
    current_speed_knots: float
    tide_height_ft: float
    favorable: bool
    issues: tuple = ()
    kind: FactorKind = field(default=FactorKind.TIDE_AND_CURRENT, init=False)


@dataclass(frozen=True)
class WaveFactor:
    score: float
    height_ft: float
    status: WaveStatus
    issues: tuple = ()
    kind: FactorKind = field(default=FactorKind.WAVES, init=False)


@dataclass(frozen=True)
class WeatherFactor:
    score: float
    temperature_f: float
    wind_speed_mph: float
    wind_condition: WindCondition
    issues: tuple = ()
    kind: FactorKind = field(default=FactorKind.WEATHER, init=False)


@dataclass(frozen=True)
class DamReleaseFactor:
    score: float
    total_flow_cfs: float
    scoring_flow_cfs: float
    release_level: ReleaseLevel
    trend: TrendDirection = TrendDirection.STABLE
    top_contributor: str = "Unknown"
    issues: tuple = ()
    kind: FactorKind = field(default=FactorKind.DAM_RELEASES, init=False)


@dataclass(frozen=True)
class SwimScoreFactors:
    """Exactly the five scored factors, iterable in weight order."""
    water_quality: WaterQualityFactor
    tide_and_current: TideCurrentFactor
    waves: WaveFactor
    weather: WeatherFactor
    dam_releases: DamReleaseFactor

    def __iter__(self) -> Iterator:
        yield self.water_quality
        yield self.tide_and_current
        yield self.waves
        yield self.weather
        yield self.dam_releases

    @property
    def issues(self) -> list[str]:
        """All issue strings, factor by factor."""
        return [issue for factor in self for issue in factor.issues]


@dataclass(frozen=True)
class SwimScore:
    """Complete scoring result."""
    timestamp: datetime
    overall_score: int
    rating: Rating
    factors: SwimScoreFactors
    recommendations: tuple = ()
    warnings: tuple = ()
