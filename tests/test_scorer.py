from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import NOW, make_current, make_tide, make_water_quality, make_waves, make_weather
from src.core.dam_aggregator import unavailable_dam_releases
from src.core.factors import (
    DamReleaseFactor,
    Rating,
    SwimScoreFactors,
    TideCurrentFactor,
    WaterQualityFactor,
    WaterQualityStatus,
    WaveFactor,
    WaveStatus,
    WeatherFactor,
    WindCondition,
)
from src.core.fallbacks import fallback_water_quality, fallback_waves, fallback_weather
from src.core.readings import (
    DamHistory48h,
    DamReleaseAggregate,
    DamStationSummary,
    OverflowEvent,
    ReleaseLevel,
    TidePhase,
    TidePhasePreference,
    TrendDirection,
)
from src.core.scorer import SwimScorer, calculate_swim_score, rating_for
from src.core.thresholds import SCORE_WEIGHTS, ScoringInvariantError, check_weights


def overflow(days_ago, resolved=True, distance=0.5):
    return OverflowEvent(
        id=f"sso-{days_ago}",
        reported_at=NOW - timedelta(days=days_ago),
        resolved=resolved,
        distance_miles=distance,
    )


def dam_aggregate(last_24h, last_48h, peak):
    return DamReleaseAggregate(
        timestamp=NOW,
        current_total_flow_cfs=last_24h,
        release_level=ReleaseLevel.LOW,
        history=DamHistory48h(
            average_flow_cfs=last_48h,
            peak_flow_cfs=peak,
            peak_timestamp=NOW - timedelta(hours=6),
            trend=TrendDirection.INCREASING,
            last_24h_average_cfs=last_24h,
            last_48h_average_cfs=last_48h,
            sample_count=48,
        ),
        stations=(
            DamStationSummary("SHA", "Shasta Dam", 25_000, 62.5, 20_000, 40_000, 48),
            DamStationSummary("ORO", "Oroville Dam", 15_000, 37.5, 10_000, 20_000, 48),
        ),
        latest_data_timestamp=NOW,
    )


def test_weights_sum_to_100():
    assert sum(SCORE_WEIGHTS.values()) == 100
    check_weights()


def test_check_weights_rejects_bad_total():
    with pytest.raises(ScoringInvariantError):
        check_weights({"water_quality": 30, "waves": 20})


def test_ideal_conditions_score_100(readings):
    score = calculate_swim_score(readings)

    assert score.overall_score == 100
    assert score.rating == Rating.EXCELLENT
    assert all(factor.score == 100 for factor in score.factors)
    assert score.timestamp == NOW


# Water quality

def test_water_quality_safe_count():
    factor = SwimScorer().score_water_quality(make_water_quality(50), (), NOW)

    assert factor.score == 100
    assert factor.status == WaterQualityStatus.SAFE
    assert factor.bacteria_level == "safe"
    assert factor.issues == ()


def test_water_quality_high_count():
    factor = SwimScorer().score_water_quality(make_water_quality(600), (), NOW)

    assert factor.score == 30
    assert factor.status == WaterQualityStatus.WARNING
    assert factor.bacteria_level == "high"


def test_water_quality_unresolved_overflow_caps_score():
    factor = SwimScorer().score_water_quality(make_water_quality(50), (overflow(5, resolved=False),), NOW)

    assert factor.score <= 20
    assert factor.status == WaterQualityStatus.DANGEROUS
    assert "Active sewer overflow nearby" in factor.issues


def test_water_quality_recent_resolved_overflow():
    factor = SwimScorer().score_water_quality(make_water_quality(50), (overflow(1.5),), NOW)

    assert factor.score == 60
    assert factor.status == WaterQualityStatus.ADVISORY
    assert factor.recent_overflow is True
    assert factor.days_since_overflow == 1


def test_water_quality_old_overflow_ignored():
    factor = SwimScorer().score_water_quality(make_water_quality(50), (overflow(5),), NOW)

    assert factor.score == 100
    assert factor.recent_overflow is False
    assert factor.days_since_overflow is None


def test_water_quality_fallback_scores_50():
    factor = SwimScorer().score_water_quality(fallback_water_quality(NOW), (), NOW)

    assert factor.score == 50
    assert factor.status == WaterQualityStatus.ADVISORY
    assert "No water quality data available" in factor.issues


# Tide & current

def test_slack_tide_with_weak_current():
    factor = SwimScorer().score_tide_and_current(make_tide(TidePhase.SLACK, 0.2), make_current(0.1))

    assert factor.score == 100
    assert factor.favorable is True


def test_fast_ebb_capped_by_both_tiers():
    factor = SwimScorer().score_tide_and_current(make_tide(TidePhase.EBB, 2.5), make_current(1.8))

    assert factor.score <= 40
    assert factor.score == 34  # 85 x 0.4
    assert factor.favorable is False
    assert factor.issues == ("Strong tide movement (ebb)", "Strong current (1.8 knots)")


def test_moderate_flood_rate():
    factor = SwimScorer().score_tide_and_current(make_tide(TidePhase.FLOOD, 1.5), make_current(0.3))

    assert factor.score == 59.5
    assert factor.favorable is True


def test_very_strong_current_caps_slack():
    factor = SwimScorer().score_tide_and_current(make_tide(TidePhase.SLACK, 0.2), make_current(2.5))

    assert factor.score == 20
    # Slack phase is favorable regardless of speed
    assert factor.favorable is True


def test_missing_tide_scores_50():
    factor = SwimScorer().score_tide_and_current(None, None)

    assert factor.score == 50
    assert "No tide data available" in factor.issues


def test_preference_changes_base_score():
    scorer = SwimScorer()
    tide, current = make_tide(TidePhase.FLOOD, 0.2), make_current(0.1)

    assert scorer.score_tide_and_current(tide, current).score == 85
    assert scorer.score_tide_and_current(tide, current, TidePhasePreference.favoring("flood")).score == 100
    assert scorer.score_tide_and_current(tide, current, TidePhasePreference(flood=40)).score == 40


def test_preference_out_of_range():
    with pytest.raises(ValueError):
        TidePhasePreference(slack=120)


# Waves

@pytest.mark.parametrize("height, score, status", [
    (1.0, 100, WaveStatus.CALM),
    (2.0, 85, WaveStatus.CALM),
    (4.0, 60, WaveStatus.MODERATE),
    (6.0, 30, WaveStatus.ROUGH),
    (9.0, 10, WaveStatus.DANGEROUS),
])
def test_wave_bands(height, score, status):
    factor = SwimScorer().score_waves(make_waves(height))

    assert factor.score == score
    assert factor.status == status


def test_wave_fallback_scores_50():
    factor = SwimScorer().score_waves(fallback_waves(NOW))

    assert factor.score == 50
    assert factor.status == WaveStatus.MODERATE
    assert factor.issues == ("No wave data available",)


def test_measured_flat_water_is_not_fallback():
    factor = SwimScorer().score_waves(make_waves(0.0, source="NOAA-NDBC"))

    assert factor.score == 100


# Weather

def test_moderate_wind():
    factor = SwimScorer().score_weather(make_weather(wind=12))

    assert factor.score == 80
    assert factor.wind_condition == WindCondition.MODERATE


def test_very_strong_wind():
    factor = SwimScorer().score_weather(make_weather(wind=30))

    assert factor.score == 15
    assert factor.wind_condition == WindCondition.STRONG
    assert "Very strong winds (30 mph)" in factor.issues


def test_precipitation_caps_weather():
    factor = SwimScorer().score_weather(make_weather(wind=3, conditions="Light Rain and Fog"))

    assert factor.score == 40
    assert "Precipitation present" in factor.issues


def test_weather_fallback_scores_50():
    factor = SwimScorer().score_weather(fallback_weather(NOW))

    assert factor.score == 50
    assert "No wind data available" in factor.issues


# Dam releases

def test_dam_scoring_flow_uses_discounted_peak():
    scorer = SwimScorer()
    aggregate = dam_aggregate(last_24h=40_000, last_48h=20_000, peak=60_000)

    assert scorer.scoring_flow(aggregate) == pytest.approx(48_000)

    factor = scorer.score_dam_releases(aggregate)
    assert factor.release_level == ReleaseLevel.MODERATE
    assert factor.score == 75
    assert factor.top_contributor == "Shasta Dam"
    assert factor.trend == TrendDirection.INCREASING


def test_dam_scoring_flow_uses_blended_average():
    aggregate = dam_aggregate(last_24h=120_000, last_48h=100_000, peak=120_000)
    factor = SwimScorer().score_dam_releases(aggregate)

    # 0.6 x 120k + 0.4 x 100k = 112k > 0.8 x 120k
    assert factor.scoring_flow_cfs == pytest.approx(112_000)
    assert factor.release_level == ReleaseLevel.EXTREME
    assert factor.score == 10


def test_dam_unavailable_scores_75():
    factor = SwimScorer().score_dam_releases(unavailable_dam_releases(NOW))

    assert factor.score == 75
    assert factor.release_level == ReleaseLevel.LOW
    assert factor.issues == ("Dam release data unavailable",)


# Overall

def factors_with_scores(water, tide, waves, weather, dams):
    return SwimScoreFactors(
        water_quality=WaterQualityFactor(score=water, status=WaterQualityStatus.SAFE, bacteria_level="safe"),
        tide_and_current=TideCurrentFactor(
            score=tide, phase=TidePhase.SLACK, current_speed_knots=0.1, tide_height_ft=3.0, favorable=True,
        ),
        waves=WaveFactor(score=waves, height_ft=1.0, status=WaveStatus.CALM),
        weather=WeatherFactor(score=weather, temperature_f=62, wind_speed_mph=3, wind_condition=WindCondition.CALM),
        dam_releases=DamReleaseFactor(
            score=dams, total_flow_cfs=0, scoring_flow_cfs=0, release_level=ReleaseLevel.LOW,
        ),
    )


def test_overall_is_weighted_average():
    factors = factors_with_scores(70, 100, 100, 100, 100)

    assert SwimScorer().overall_score(factors) == 91


def test_overall_rounds_half_up():
    # 50x30 + 100x25 + 85x20 + 60x15 + 65x10 = 7250 -> 72.5
    factors = factors_with_scores(50, 100, 85, 60, 65)

    assert SwimScorer().overall_score(factors) == 73


def test_overall_out_of_range_raises():
    factors = factors_with_scores(200, 100, 100, 100, 100)

    with pytest.raises(ScoringInvariantError):
        SwimScorer().overall_score(factors)


@pytest.mark.parametrize("score, rating", [
    (100, Rating.EXCELLENT),
    (80, Rating.EXCELLENT),
    (79, Rating.GOOD),
    (60, Rating.GOOD),
    (59, Rating.FAIR),
    (40, Rating.FAIR),
    (20, Rating.POOR),
    (19, Rating.DANGEROUS),
    (0, Rating.DANGEROUS),
])
def test_rating_bands(score, rating):
    assert rating_for(score) == rating


def test_worst_case_stays_in_bounds(readings):
    worst = replace(
        readings,
        tide=make_tide(TidePhase.EBB, 9.0),
        current=make_current(6.0),
        weather=make_weather(wind=60, conditions="thunderstorm"),
        waves=make_waves(20.0),
        water_quality=make_water_quality(1_000_000),
        dam_releases=dam_aggregate(500_000, 500_000, 500_000),
        overflows=(overflow(0.2, resolved=False),),
    )

    score = calculate_swim_score(worst, preference=TidePhasePreference(slack=0, flood=0, ebb=0))

    assert 0 <= score.overall_score <= 100
    assert all(0 <= factor.score <= 100 for factor in score.factors)
    assert score.rating == Rating.DANGEROUS


def test_scoring_is_deterministic(readings):
    degraded = replace(readings, waves=fallback_waves(NOW), overflows=(overflow(1),))

    assert calculate_swim_score(degraded) == calculate_swim_score(degraded)


def test_preference_only_affects_tide_factor(readings):
    flooding = replace(readings, tide=make_tide(TidePhase.FLOOD, 0.8))

    default = calculate_swim_score(flooding)
    favored = calculate_swim_score(flooding, preference=TidePhasePreference.favoring(TidePhase.FLOOD))

    assert default.factors.tide_and_current.score == 85
    assert favored.factors.tide_and_current.score == 100
    assert default.factors.water_quality == favored.factors.water_quality
    assert default.factors.waves == favored.factors.waves
    assert default.factors.weather == favored.factors.weather
    assert default.factors.dam_releases == favored.factors.dam_releases
