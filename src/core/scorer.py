"""Swim condition scoring.

Scoring approach:
- Five independent factors, each scored 0-100 and clamped
- Overall score is the weighted average, rounded half up
- Rating bands from the overall score

Scoring Factors (weights):
- Water Quality: 30% - Bacteria counts, capped by nearby sewer overflows
- Tide & Current: 25% - Phase preference, tide change rate, current speed
- Waves: 20% - Wave height bands
- Weather: 15% - Wind speed bands, capped by precipitation
- Dam Releases: 10% - Blended upstream flow as a current indicator

Missing inputs never fail scoring. A fallback reading scores neutral-to-
cautious and leaves an issue string explaining the gap.
"""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from src.core.advisories import generate_advice
from src.core.dam_aggregator import classify_release_level
from src.core.factors import (
    DamReleaseFactor,
    Rating,
    SwimScore,
    SwimScoreFactors,
    TideCurrentFactor,
    WaterQualityFactor,
    WaterQualityStatus,
    WaveFactor,
    WaveStatus,
    WeatherFactor,
    WindCondition,
)
from src.core.readings import (
    CurrentReading,
    DamReleaseAggregate,
    OverflowEvent,
    ReadingSet,
    ReleaseLevel,
    TidePhase,
    TidePhasePreference,
    TidePrediction,
    TrendDirection,
    WaterQualityReading,
    WaveReading,
    WeatherReading,
)
from src.core.thresholds import (
    CURRENT_MODERATE_KT,
    CURRENT_SLOW_KT,
    CURRENT_STRONG_KT,
    CURRENT_VERY_STRONG_KT,
    DAM_PEAK_DISCOUNT,
    DAM_WEIGHT_LAST_24H,
    DAM_WEIGHT_LAST_48H,
    ENTEROCOCCUS_ADVISORY,
    ENTEROCOCCUS_DANGEROUS,
    ENTEROCOCCUS_SAFE,
    OVERFLOW_CAUTION_DAYS,
    PRECIPITATION_CAP,
    PRECIPITATION_KEYWORDS,
    RATING_MIN_SCORES,
    SCORE_WEIGHTS,
    TIDE_LOW_CURRENT_RATE,
    TIDE_MODERATE_CURRENT_RATE,
    WAVE_CALM_FT,
    WAVE_MODERATE_FT,
    WAVE_ROUGH_FT,
    WAVE_SAFE_FT,
    WIND_CALM_MPH,
    WIND_LIGHT_MPH,
    WIND_MODERATE_MPH,
    WIND_STRONG_MPH,
    WIND_VERY_STRONG_MPH,
    ScoringInvariantError,
)


# Enterococcus bands: (upper bound inclusive, score, bacteria level, status, issue)
BACTERIA_BANDS = (
    (ENTEROCOCCUS_SAFE, 100, "safe", WaterQualityStatus.SAFE, None),
    (ENTEROCOCCUS_ADVISORY, 70, "moderate", WaterQualityStatus.ADVISORY,
     "Elevated bacteria levels ({count:g} MPN/100ml)"),
    (ENTEROCOCCUS_DANGEROUS, 30, "high", WaterQualityStatus.WARNING,
     "High bacteria levels ({count:g} MPN/100ml)"),
    (math.inf, 0, "dangerous", WaterQualityStatus.DANGEROUS,
     "Dangerous bacteria levels ({count:g} MPN/100ml)"),
)

# Tide change-rate tiers: (|rate| upper bound exclusive, multiplier, cap, issue)
TIDE_RATE_TIERS = (
    (TIDE_LOW_CURRENT_RATE, 1.0, 100, None),
    (TIDE_MODERATE_CURRENT_RATE, 0.7, 70, "Moderate tide movement ({phase})"),
    (math.inf, 0.4, 40, "Strong tide movement ({phase})"),
)

# Current speed caps, most restrictive first: (speed lower bound exclusive, cap, issue)
CURRENT_SPEED_CAPS = (
    (CURRENT_VERY_STRONG_KT, 20, "Very strong current ({speed:.1f} knots)"),
    (CURRENT_STRONG_KT, 40, "Strong current ({speed:.1f} knots)"),
    (CURRENT_MODERATE_KT, 65, "Moderate current ({speed:.1f} knots)"),
)

# Wave height bands: (upper bound exclusive, score, status, issue)
WAVE_BANDS = (
    (WAVE_CALM_FT, 100, WaveStatus.CALM, None),
    (WAVE_SAFE_FT, 85, WaveStatus.CALM, None),
    (WAVE_MODERATE_FT, 60, WaveStatus.MODERATE, "Moderate waves ({height:.1f} ft)"),
    (WAVE_ROUGH_FT, 30, WaveStatus.ROUGH, "Rough waves ({height:.1f} ft)"),
    (math.inf, 10, WaveStatus.DANGEROUS, "Dangerous waves ({height:.1f} ft)"),
)

# Wind speed bands: (upper bound exclusive, score, condition, issue)
WIND_BANDS = (
    (WIND_CALM_MPH, 100, WindCondition.CALM, None),
    (WIND_LIGHT_MPH, 95, WindCondition.LIGHT, None),
    (WIND_MODERATE_MPH, 80, WindCondition.MODERATE, None),
    (WIND_STRONG_MPH, 60, WindCondition.MODERATE, "Moderate winds ({wind:.0f} mph)"),
    (WIND_VERY_STRONG_MPH, 35, WindCondition.STRONG, "Strong winds ({wind:.0f} mph)"),
    (math.inf, 15, WindCondition.STRONG, "Very strong winds ({wind:.0f} mph)"),
)

# Dam release score and issues per release level
DAM_LEVEL_SCORES = {
    ReleaseLevel.LOW: (100, ()),
    ReleaseLevel.MODERATE: (75, (
        "Moderate dam releases ({flow:,.0f} CFS)",
        "Increased current strength",
    )),
    ReleaseLevel.ELEVATED: (65, (
        "Elevated dam releases ({flow:,.0f} CFS)",
        "Strong currents - experienced swimmers only",
    )),
    ReleaseLevel.HIGH: (30, (
        "High dam releases ({flow:,.0f} CFS)",
        "Strong currents - experienced swimmers only",
    )),
    ReleaseLevel.EXTREME: (10, (
        "Extreme dam releases ({flow:,.0f} CFS)",
        "Very strong currents expected - swimming not recommended",
    )),
}


def clamp_score(score: float) -> float:
    """Clamp a factor score to [0, 100]."""
    return round(max(0.0, min(100.0, score)), 1)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rating_for(score: int) -> Rating:
    """Convert an overall score to a rating."""
    for name, min_score in RATING_MIN_SCORES:
        if score >= min_score:
            return Rating(name)
    return Rating.DANGEROUS


class SwimScorer:
    """Scores swim conditions from a fully populated ReadingSet."""

    WEIGHT_WATER_QUALITY = SCORE_WEIGHTS["water_quality"]
    WEIGHT_TIDE_AND_CURRENT = SCORE_WEIGHTS["tide_and_current"]
    WEIGHT_WAVES = SCORE_WEIGHTS["waves"]
    WEIGHT_WEATHER = SCORE_WEIGHTS["weather"]
    WEIGHT_DAM_RELEASES = SCORE_WEIGHTS["dam_releases"]

    # Neutral scores for fallback readings
    UNKNOWN_SCORE = 50
    UNKNOWN_DAM_SCORE = 75

    def score_water_quality(
        self,
        reading: Optional[WaterQualityReading],
        overflows: tuple,
        now: datetime,
    ) -> WaterQualityFactor:
        """Score water quality from bacteria counts and nearby overflows.

        Args:
            reading: Latest water quality sample (fallback if unavailable)
            overflows: Overflow events already filtered to the proximity radius
            now: Reference time for overflow age

        Returns:
            WaterQualityFactor
        """
        issues = []
        score = 100
        status = WaterQualityStatus.SAFE
        bacteria_level = "unknown"

        if reading is None or not reading.is_available:
            score = self.UNKNOWN_SCORE
            status = WaterQualityStatus.ADVISORY
            issues.append("No water quality data available")
        elif reading.enterococcus_count is not None:
            count = reading.enterococcus_count
            for upper, band_score, level, band_status, issue in BACTERIA_BANDS:
                if count <= upper:
                    score, bacteria_level, status = band_score, level, band_status
                    if issue:
                        issues.append(issue.format(count=count))
                    break

        active = [e for e in overflows if not e.resolved]
        recent: Optional[OverflowEvent] = next(
            (e for e in overflows if e.days_since(now) < OVERFLOW_CAUTION_DAYS),
            None,
        )
        days_since = math.floor(recent.days_since(now)) if recent else None

        if active:
            score = min(score, 20)
            status = WaterQualityStatus.DANGEROUS
            issues.append("Active sewer overflow nearby")
        elif recent:
            score = min(score, 60)
            if status == WaterQualityStatus.SAFE:
                status = WaterQualityStatus.ADVISORY
            issues.append(f"Recent sewer overflow {days_since} days ago")

        return WaterQualityFactor(
            score=clamp_score(score),
            status=status,
            bacteria_level=bacteria_level,
            recent_overflow=recent is not None,
            days_since_overflow=days_since,
            issues=tuple(issues),
        )

    def score_tide_and_current(
        self,
        tide: Optional[TidePrediction],
        current: Optional[CurrentReading],
        preference: Optional[TidePhasePreference] = None,
    ) -> TideCurrentFactor:
        """Score tide phase, tide change rate and current speed.

        Args:
            tide: Current tide prediction
            current: Measured or derived current
            preference: Tide phase weights. Defaults to slack 100, flood/ebb 85.

        Returns:
            TideCurrentFactor
        """
        if preference is None:
            preference = TidePhasePreference()

        issues = []
        phase = tide.current_phase if tide is not None else TidePhase.SLACK
        speed = current.speed_knots if current is not None and current.is_available else 0.0

        if tide is None or not tide.is_available:
            score = self.UNKNOWN_SCORE
            issues.append("No tide data available")
        else:
            base = preference.weight_for(phase)
            rate = abs(tide.change_rate_ft_per_hr)
            score = base
            for upper, multiplier, cap, issue in TIDE_RATE_TIERS:
                if rate < upper:
                    score = min(base * multiplier, cap)
                    if issue:
                        issues.append(issue.format(phase=phase.value))
                    break

            for lower, cap, issue in CURRENT_SPEED_CAPS:
                if speed > lower:
                    score = min(score, cap)
                    issues.append(issue.format(speed=speed))
                    break

        return TideCurrentFactor(
            score=clamp_score(score),
            phase=phase,
            current_speed_knots=speed,
            tide_height_ft=tide.height_ft if tide is not None else 0.0,
            favorable=phase == TidePhase.SLACK or speed < CURRENT_SLOW_KT,
            issues=tuple(issues),
        )

    def score_waves(self, waves: Optional[WaveReading]) -> WaveFactor:
        """Score wave height.

        Args:
            waves: Wave reading (fallback if unavailable)

        Returns:
            WaveFactor
        """
        if waves is None or not waves.is_available:
            return WaveFactor(
                score=float(self.UNKNOWN_SCORE),
                height_ft=0.0,
                status=WaveStatus.MODERATE,
                issues=("No wave data available",),
            )

        height = waves.height_ft
        for upper, score, status, issue in WAVE_BANDS:
            if height < upper:
                return WaveFactor(
                    score=clamp_score(score),
                    height_ft=height,
                    status=status,
                    issues=(issue.format(height=height),) if issue else (),
                )

        raise ScoringInvariantError(f"Wave height {height} matched no band")

    def score_weather(self, weather: Optional[WeatherReading]) -> WeatherFactor:
        """Score wind speed, capped when precipitation is reported.

        Args:
            weather: Weather reading (fallback if unavailable)

        Returns:
            WeatherFactor
        """
        issues = []

        if weather is None or not weather.is_available:
            score = self.UNKNOWN_SCORE
            condition = WindCondition.MODERATE
            wind = 0.0
            temperature = weather.temperature_f if weather is not None else 0.0
            issues.append("No wind data available")
        else:
            wind = weather.wind_speed_mph
            temperature = weather.temperature_f
            score, condition = self.UNKNOWN_SCORE, WindCondition.MODERATE
            for upper, band_score, band_condition, issue in WIND_BANDS:
                if wind < upper:
                    score, condition = band_score, band_condition
                    if issue:
                        issues.append(issue.format(wind=wind))
                    break

            conditions = (weather.conditions or "").lower()
            if any(keyword in conditions for keyword in PRECIPITATION_KEYWORDS):
                score = min(score, PRECIPITATION_CAP)
                issues.append("Precipitation present")

        return WeatherFactor(
            score=clamp_score(score),
            temperature_f=temperature,
            wind_speed_mph=wind,
            wind_condition=condition,
            issues=tuple(issues),
        )

    def scoring_flow(self, dam_releases: DamReleaseAggregate) -> float:
        """Blend recent averages with a discounted peak (CFS)."""
        history = dam_releases.history
        blended = (
            DAM_WEIGHT_LAST_24H * history.last_24h_average_cfs
            + DAM_WEIGHT_LAST_48H * history.last_48h_average_cfs
        )
        return max(blended, DAM_PEAK_DISCOUNT * history.peak_flow_cfs)

    def score_dam_releases(self, dam_releases: Optional[DamReleaseAggregate]) -> DamReleaseFactor:
        """Score upstream dam releases as a leading indicator of bay currents.

        Args:
            dam_releases: Aggregated releases (fallback if unavailable)

        Returns:
            DamReleaseFactor
        """
        if dam_releases is None or not dam_releases.is_available:
            return DamReleaseFactor(
                score=float(self.UNKNOWN_DAM_SCORE),
                total_flow_cfs=0.0,
                scoring_flow_cfs=0.0,
                release_level=ReleaseLevel.LOW,
                trend=TrendDirection.STABLE,
                top_contributor="Unknown",
                issues=("Dam release data unavailable",),
            )

        flow = self.scoring_flow(dam_releases)
        level = classify_release_level(flow)
        score, issue_templates = DAM_LEVEL_SCORES[level]

        top_contributor = "Unknown"
        top_flow = None
        for station in dam_releases.stations:
            if top_flow is None or station.current_flow_cfs > top_flow:
                top_contributor, top_flow = station.name, station.current_flow_cfs

        return DamReleaseFactor(
            score=clamp_score(score),
            total_flow_cfs=dam_releases.current_total_flow_cfs,
            scoring_flow_cfs=flow,
            release_level=level,
            trend=dam_releases.history.trend,
            top_contributor=top_contributor,
            issues=tuple(template.format(flow=flow) for template in issue_templates),
        )

    def overall_score(self, factors: SwimScoreFactors) -> int:
        """Weighted average of the factor scores, rounded half up.

        Raises:
            ScoringInvariantError: If the result falls outside [0, 100]
        """
        total = sum(
            Decimal(str(factor.score)) * SCORE_WEIGHTS[factor.kind.value]
            for factor in factors
        )
        overall = round_half_up(total / 100)
        if not 0 <= overall <= 100:
            raise ScoringInvariantError(f"Overall score {overall} outside [0, 100]")
        return overall

    def calculate_score(
        self,
        readings: ReadingSet,
        preference: Optional[TidePhasePreference] = None,
        now: Optional[datetime] = None,
    ) -> SwimScore:
        """Calculate the complete swim score.

        Pure: the same readings and preference always give the same score.

        Args:
            readings: Fully populated reading set
            preference: Tide phase weights (only affects tide & current)
            now: Reference time for overflow age. Defaults to readings.fetched_at.

        Returns:
            SwimScore
        """
        if now is None:
            now = readings.fetched_at

        factors = SwimScoreFactors(
            water_quality=self.score_water_quality(readings.water_quality, readings.overflows, now),
            tide_and_current=self.score_tide_and_current(readings.tide, readings.current, preference),
            waves=self.score_waves(readings.waves),
            weather=self.score_weather(readings.weather),
            dam_releases=self.score_dam_releases(readings.dam_releases),
        )

        overall = self.overall_score(factors)
        recommendations, warnings = generate_advice(factors, overall)

        return SwimScore(
            timestamp=now,
            overall_score=overall,
            rating=rating_for(overall),
            factors=factors,
            recommendations=tuple(recommendations),
            warnings=tuple(warnings),
        )


def calculate_swim_score(
    readings: ReadingSet,
    preference: Optional[TidePhasePreference] = None,
    now: Optional[datetime] = None,
) -> SwimScore:
    """Score a reading set with a default SwimScorer.

    Args:
        readings: Fully populated reading set
        preference: Optional tide phase weights
        now: Optional reference time

    Returns:
        SwimScore
    """
    return SwimScorer().calculate_score(readings, preference=preference, now=now)


