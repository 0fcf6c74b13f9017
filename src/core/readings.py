"""Typed environmental readings consumed by the scoring engine.

Every reading carries a timestamp and a source tag. Fallback values are
tagged with ``UNAVAILABLE`` so the scorer can tell a real measurement from a
placeholder without ever receiving ``None``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from src.core.thresholds import DEFAULT_PHASE_PREFERENCE, OTHER_PHASE_WEIGHT, PREFERRED_PHASE_WEIGHT


UNAVAILABLE = "unavailable"
CALCULATED_FROM_TIDE = "calculated-from-tide-rate"


class TideType(Enum):
    """Kind of tide reading."""
    HIGH = "high"
    LOW = "low"
    NORMAL = "normal"


class TidePhase(Enum):
    """Direction of tidal movement."""
    FLOOD = "flood"
    EBB = "ebb"
    SLACK = "slack"


class TrendDirection(Enum):
    """Direction of a flow trend."""
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class ReleaseLevel(Enum):
    """Severity of combined upstream dam releases."""
    LOW = "low"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    HIGH = "high"
    EXTREME = "extreme"


class SourceState(Enum):
    """Outcome of a single source lookup."""
    OK = "ok"
    MISSING = "missing"
    ERROR = "error"


@dataclass(frozen=True)
class TideReading:
    """A single tide height observation or prediction."""
    timestamp: datetime
    height_ft: float
    type: TideType = TideType.NORMAL
    source: str = "NOAA"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class TidePrediction:
    """Current tide state with phase and rate of change."""
    timestamp: datetime
    height_ft: float
    current_phase: TidePhase
    change_rate_ft_per_hr: float
    type: TideType = TideType.NORMAL
    next_high: Optional[TideReading] = None
    next_low: Optional[TideReading] = None
    source: str = "NOAA"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class CurrentReading:
    """Water current, measured or derived from the tide."""
    timestamp: datetime
    speed_knots: float
    direction_deg: float
    lat: float
    lon: float
    source: str = "NOAA"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE

    @property
    def is_derived(self) -> bool:
        return self.source == CALCULATED_FROM_TIDE


@dataclass(frozen=True)
class WeatherReading:
    """Surface weather observation."""
    timestamp: datetime
    temperature_f: float
    wind_speed_mph: float
    wind_direction_deg: float
    visibility_miles: float
    conditions: str
    wind_gust_mph: Optional[float] = None
    pressure: Optional[float] = None
    humidity: Optional[float] = None
    source: str = "NOAA-NWS"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class WindReading:
    """Wind-only reading from a secondary provider."""
    timestamp: datetime
    wind_speed_mph: float
    wind_direction_deg: float
    wind_gust_mph: Optional[float] = None
    temperature_f: Optional[float] = None
    source: str = "open-meteo"


@dataclass(frozen=True)
class WaveReading:
    """Wave height and swell."""
    timestamp: datetime
    height_ft: float
    swell_period_s: Optional[float] = None
    swell_direction_deg: Optional[float] = None
    source: str = "NOAA-NDBC"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class WaterQualityReading:
    """Bacterial sampling result for the swim area."""
    timestamp: datetime
    status: str = "safe"  # safe, advisory, warning, closed
    enterococcus_count: Optional[float] = None
    coliform_count: Optional[float] = None
    notes: Optional[str] = None
    station_id: Optional[str] = None
    source: str = UNAVAILABLE

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class OverflowEvent:
    """Sanitary sewer overflow (SSO) report."""
    id: str
    reported_at: datetime
    resolved: bool
    location: str = "Unknown location"
    resolved_at: Optional[datetime] = None
    distance_miles: Optional[float] = None
    volume_gallons: Optional[float] = None
    notes: Optional[str] = None
    source: str = "SFPUC"

    def days_since(self, now: datetime) -> float:
        """Fractional days between the report and ``now``."""
        return (now - self.reported_at).total_seconds() / 86400


@dataclass(frozen=True)
class DamFlowSample:
    """One hourly outflow sample from a dam station."""
    station_id: str
    timestamp: datetime
    flow_cfs: float


@dataclass(frozen=True)
class DamStationSummary:
    """Per-station slice of the dam release aggregate."""
    station_id: str
    name: str
    current_flow_cfs: float
    percent_of_total: float
    average_48h_cfs: float
    peak_48h_cfs: float
    sample_count: int
    current_timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class DamHistory48h:
    """Combined 48-hour history across all stations."""
    average_flow_cfs: float
    peak_flow_cfs: float
    peak_timestamp: datetime
    trend: TrendDirection
    last_24h_average_cfs: float
    last_48h_average_cfs: float
    sample_count: int


@dataclass(frozen=True)
class DamReleaseAggregate:
    """System-wide dam release picture."""
    timestamp: datetime
    current_total_flow_cfs: float
    release_level: ReleaseLevel
    history: DamHistory48h
    stations: tuple = ()
    latest_data_timestamp: Optional[datetime] = None
    source: str = "CDEC"

    @property
    def is_available(self) -> bool:
        return self.source != UNAVAILABLE


@dataclass(frozen=True)
class TidePhasePreference:
    """User weighting (0-100) of each tide phase."""
    slack: float = DEFAULT_PHASE_PREFERENCE["slack"]
    flood: float = DEFAULT_PHASE_PREFERENCE["flood"]
    ebb: float = DEFAULT_PHASE_PREFERENCE["ebb"]

    def __post_init__(self):
        for phase in TidePhase:
            value = getattr(self, phase.value)
            if not 0 <= value <= 100:
                raise ValueError(f"Preference for {phase.value} must be 0-100, got {value}")

    def weight_for(self, phase: TidePhase) -> float:
        return getattr(self, phase.value)

    @classmethod
    def favoring(cls, phase) -> "TidePhasePreference":
        """Preference that rates one phase 100 and the others 85.

        Args:
            phase: TidePhase or its string value ("slack", "flood", "ebb")
        """
        phase = TidePhase(phase) if not isinstance(phase, TidePhase) else phase
        weights = {p.value: OTHER_PHASE_WEIGHT for p in TidePhase}
        weights[phase.value] = PREFERRED_PHASE_WEIGHT
        return cls(**weights)


@dataclass(frozen=True)
class SourceStatus:
    """Diagnostic for one attempted source lookup."""
    state: SourceState
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == SourceState.OK


@dataclass(frozen=True)
class ReadingSet:
    """Fully populated (possibly fallback-filled) inputs for one scoring pass."""
    fetched_at: datetime
    tide: TidePrediction
    current: CurrentReading
    weather: WeatherReading
    waves: WaveReading
    water_quality: WaterQualityReading
    dam_releases: DamReleaseAggregate
    overflows: tuple = ()
    diagnostics: dict = field(default_factory=dict)

    def data_freshness(self) -> dict[str, Optional[datetime]]:
        """Timestamp of each reading, None where only a fallback exists."""
        def stamp(reading):
            return reading.timestamp if reading.is_available else None

        return {
            "tide": self.tide.timestamp,
            "current": stamp(self.current),
            "weather": stamp(self.weather),
            "waves": stamp(self.waves),
            "water_quality": stamp(self.water_quality),
            "overflows": max((e.reported_at for e in self.overflows), default=None),
            "dam_releases": (
                self.dam_releases.latest_data_timestamp
                if self.dam_releases.is_available else None
            ),
        }


@dataclass(frozen=True)
class CriticalFailure:
    """Returned instead of a score when mandatory tide data is missing."""
    reason: str
    diagnostics: dict
    timestamp: datetime
