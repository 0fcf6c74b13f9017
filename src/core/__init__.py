"""Core swim condition fusion and scoring engine."""

from src.core.dam_aggregator import (
    DamReleaseAggregator,
    aggregate_dam_releases,
    classify_release_level,
)
from src.core.factors import (
    Rating,
    SwimScore,
    SwimScoreFactors,
)
from src.core.fusion import (
    ConditionsReport,
    SourceFusion,
    SourceProviders,
    assess_conditions,
)
from src.core.location import (
    SwimLocation,
    get_location,
    load_location,
)
from src.core.readings import (
    CriticalFailure,
    ReadingSet,
    TidePhase,
    TidePhasePreference,
)
from src.core.scorer import (
    SwimScorer,
    calculate_swim_score,
)
from src.core.thresholds import ScoringInvariantError

__all__ = [
    # Dam releases
    "DamReleaseAggregator",
    "aggregate_dam_releases",
    "classify_release_level",
    # Scores
    "Rating",
    "SwimScore",
    "SwimScoreFactors",
    "SwimScorer",
    "calculate_swim_score",
    "ScoringInvariantError",
    # Fusion
    "ConditionsReport",
    "SourceFusion",
    "SourceProviders",
    "assess_conditions",
    # Location
    "SwimLocation",
    "get_location",
    "load_location",
    # Readings
    "CriticalFailure",
    "ReadingSet",
    "TidePhase",
    "TidePhasePreference",
]
