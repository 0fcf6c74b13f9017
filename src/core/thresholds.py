"""Safety thresholds and score weights for swim condition scoring.

These values determine what constitutes safe, caution, and dangerous
conditions. They are shared by the dam-release aggregator and the scorer
so both classify flows identically.
"""

from types import MappingProxyType


class ScoringInvariantError(Exception):
    """Raised when a scoring invariant is violated (programming error)."""

    pass


# Water quality (Enterococcus, MPN/100ml)
ENTEROCOCCUS_SAFE = 104
ENTEROCOCCUS_ADVISORY = 500
ENTEROCOCCUS_DANGEROUS = 1000

# Total coliform (MPN/100ml), only used to classify provider readings
COLIFORM_ADVISORY = 200
COLIFORM_WARNING = 1000

# Sewer overflow windows
OVERFLOW_CAUTION_DAYS = 3
OVERFLOW_LOOKBACK_DAYS = 7
OVERFLOW_PROXIMITY_MILES = 2.0

# Wave height (feet), upper bounds of each band
WAVE_CALM_FT = 2.0
WAVE_SAFE_FT = 3.0
WAVE_MODERATE_FT = 5.0
WAVE_ROUGH_FT = 8.0

# Wind speed (mph), upper bounds of each band
WIND_CALM_MPH = 5
WIND_LIGHT_MPH = 10
WIND_MODERATE_MPH = 15
WIND_STRONG_MPH = 20
WIND_VERY_STRONG_MPH = 25
PRECIPITATION_KEYWORDS = ("rain", "storm")
PRECIPITATION_CAP = 40

# Current speed (knots)
CURRENT_SLOW_KT = 0.5
CURRENT_MODERATE_KT = 1.0
CURRENT_STRONG_KT = 1.5
CURRENT_VERY_STRONG_KT = 2.0

# Tide change rate (ft/hr)
TIDE_SLACK_RATE = 0.5
TIDE_LOW_CURRENT_RATE = 1.0
TIDE_MODERATE_CURRENT_RATE = 2.0

# Estimated current from tide rate when no current station reports
TIDE_RATE_TO_CURRENT_KT = 0.4

# Default tide phase preference (0-100 per phase)
DEFAULT_PHASE_PREFERENCE = MappingProxyType({"slack": 100, "flood": 85, "ebb": 85})
PREFERRED_PHASE_WEIGHT = 100
OTHER_PHASE_WEIGHT = 85

# Dam release total flow (CFS), strict greater-than boundaries
DAM_FLOW_MODERATE_CFS = 30_000
DAM_FLOW_ELEVATED_CFS = 50_000
DAM_FLOW_HIGH_CFS = 80_000
DAM_FLOW_EXTREME_CFS = 100_000

# Blend of recent averages vs discounted peak for the dam scoring flow
DAM_WEIGHT_LAST_24H = 0.6
DAM_WEIGHT_LAST_48H = 0.4
DAM_PEAK_DISCOUNT = 0.8

# Dam trend detection
DAM_TREND_MAX_POINTS = 12
DAM_TREND_PERCENT = 15.0

# Overall score weights (must sum to exactly 100)
SCORE_WEIGHTS = MappingProxyType({
    "water_quality": 30,   # Highest priority - safety first
    "tide_and_current": 25,
    "waves": 20,
    "weather": 15,
    "dam_releases": 10,
})

# Rating lower bounds, checked in order
RATING_MIN_SCORES = (
    ("excellent", 80),
    ("good", 60),
    ("fair", 40),
    ("poor", 20),
    ("dangerous", 0),
)


def check_weights(weights=SCORE_WEIGHTS) -> None:
    """Verify the score weights sum to exactly 100.

    Raises:
        ScoringInvariantError: If they do not.
    """
    total = sum(weights.values())
    if total != 100:
        raise ScoringInvariantError(f"Score weights sum to {total}, expected 100")


check_weights()
