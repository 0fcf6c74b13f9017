"""Recommendations and warnings derived from scored factors.

A fixed rule table grouped by topic. Within a group rules are checked in
order and the first match fires; groups are independent. Output is for
display only and never feeds back into the score.
"""

from typing import Callable, NamedTuple

from src.core.factors import SwimScoreFactors, WaterQualityStatus, WaveStatus, WindCondition
from src.core.readings import ReleaseLevel, TidePhase
from src.core.thresholds import CURRENT_MODERATE_KT, WAVE_CALM_FT


RECOMMENDATION = "recommendation"
WARNING = "warning"


class AdviceRule(NamedTuple):
    """One row of the advisory table."""
    applies: Callable[[SwimScoreFactors, int], bool]
    kind: str
    message: str


ADVICE_RULES = (
    ("water_quality", (
        AdviceRule(lambda f, s: f.water_quality.status == WaterQualityStatus.DANGEROUS,
                   WARNING, "Do not swim - dangerous water quality"),
        AdviceRule(lambda f, s: f.water_quality.status == WaterQualityStatus.WARNING,
                   WARNING, "Water quality warning in effect"),
        AdviceRule(lambda f, s: f.water_quality.recent_overflow,
                   WARNING, "Recent sewer overflow - use caution"),
    )),
    ("tide_and_current", (
        AdviceRule(lambda f, s: f.tide_and_current.phase == TidePhase.SLACK,
                   RECOMMENDATION, "Excellent time - slack tide"),
        AdviceRule(lambda f, s: f.tide_and_current.current_speed_knots > CURRENT_MODERATE_KT,
                   WARNING, "Strong currents - experienced swimmers only"),
    )),
    ("waves", (
        AdviceRule(lambda f, s: f.waves.status == WaveStatus.DANGEROUS,
                   WARNING, "Dangerous wave conditions"),
        AdviceRule(lambda f, s: f.waves.status == WaveStatus.ROUGH,
                   WARNING, "Rough seas - not recommended"),
        AdviceRule(lambda f, s: f.waves.height_ft < WAVE_CALM_FT,
                   RECOMMENDATION, "Calm water conditions"),
    )),
    ("weather", (
        AdviceRule(lambda f, s: f.weather.wind_condition == WindCondition.STRONG,
                   WARNING, "Strong winds present"),
    )),
    ("dam_releases", (
        AdviceRule(lambda f, s: f.dam_releases.release_level == ReleaseLevel.EXTREME,
                   WARNING, "Extreme dam releases - very strong currents expected"),
        AdviceRule(lambda f, s: f.dam_releases.release_level == ReleaseLevel.HIGH,
                   WARNING, "High dam releases - strong bay currents"),
        AdviceRule(lambda f, s: f.dam_releases.release_level == ReleaseLevel.ELEVATED,
                   WARNING, "Elevated dam releases - stronger bay currents"),
        AdviceRule(lambda f, s: f.dam_releases.release_level == ReleaseLevel.MODERATE,
                   RECOMMENDATION, "Moderate dam releases - be aware of currents"),
        AdviceRule(lambda f, s: f.dam_releases.release_level == ReleaseLevel.LOW,
                   RECOMMENDATION, "Normal dam operations"),
    )),
    ("overall", (
        AdviceRule(lambda f, s: s >= 80, RECOMMENDATION, "Excellent conditions for swimming"),
        AdviceRule(lambda f, s: s >= 60, RECOMMENDATION, "Good conditions for swimming"),
        AdviceRule(lambda f, s: s >= 40, RECOMMENDATION, "Fair conditions - experienced swimmers recommended"),
        AdviceRule(lambda f, s: s >= 20, WARNING, "Poor conditions - not recommended"),
        AdviceRule(lambda f, s: True, WARNING, "Dangerous conditions - do not swim"),
    )),
)


def generate_advice(factors: SwimScoreFactors, overall_score: int) -> tuple[list[str], list[str]]:
    """Apply the advisory table.

    Args:
        factors: Scored factors
        overall_score: Overall 0-100 score

    Returns:
        Tuple of (recommendations, warnings)
    """
    recommendations = []
    warnings = []

    for _topic, rules in ADVICE_RULES:
        for rule in rules:
            if rule.applies(factors, overall_score):
                target = warnings if rule.kind == WARNING else recommendations
                target.append(rule.message)
                break

    return recommendations, warnings
