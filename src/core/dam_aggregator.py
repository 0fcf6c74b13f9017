"""Dam release aggregation across monitored upstream stations.

Turns independent 48-hour hourly outflow series into a system-wide
snapshot plus a combined history used as a leading indicator of bay
current strength:

- Current total = sum of each station's own latest sample
- Combined series = flows summed by exact timestamp (no interpolation)
- Trend = first N vs last N combined points, N = min(12, points / 4)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd

from src.core.readings import (
    DamFlowSample,
    DamHistory48h,
    DamReleaseAggregate,
    DamStationSummary,
    ReleaseLevel,
    TrendDirection,
    UNAVAILABLE,
)
from src.core.thresholds import (
    DAM_FLOW_ELEVATED_CFS,
    DAM_FLOW_EXTREME_CFS,
    DAM_FLOW_HIGH_CFS,
    DAM_FLOW_MODERATE_CFS,
    DAM_TREND_MAX_POINTS,
    DAM_TREND_PERCENT,
)


logger = logging.getLogger(__name__)


def classify_release_level(flow_cfs: float) -> ReleaseLevel:
    """Map a flow (CFS) to a release level using strict greater-than bounds."""
    if flow_cfs > DAM_FLOW_EXTREME_CFS:
        return ReleaseLevel.EXTREME
    elif flow_cfs > DAM_FLOW_HIGH_CFS:
        return ReleaseLevel.HIGH
    elif flow_cfs > DAM_FLOW_ELEVATED_CFS:
        return ReleaseLevel.ELEVATED
    elif flow_cfs > DAM_FLOW_MODERATE_CFS:
        return ReleaseLevel.MODERATE
    return ReleaseLevel.LOW


def _combined_series(station_series: dict[str, list[DamFlowSample]]) -> pd.Series:
    """Sum flows across stations at exactly matching timestamps."""
    records = [
        {"time": sample.timestamp, "flow_cfs": sample.flow_cfs}
        for samples in station_series.values()
        for sample in samples
    ]
    if not records:
        return pd.Series(dtype=float)

    df = pd.DataFrame(records)
    df["time"] = pd.to_datetime(df["time"], utc=True)
    return df.groupby("time", sort=True)["flow_cfs"].sum()


def _trend(values) -> TrendDirection:
    """Compare the mean of the first N combined points against the last N."""
    n = min(DAM_TREND_MAX_POINTS, len(values) // 4)
    if n == 0:
        return TrendDirection.STABLE

    first_avg = float(values[:n].mean())
    last_avg = float(values[-n:].mean())
    if first_avg <= 0:
        return TrendDirection.STABLE

    percent_change = (last_avg - first_avg) / first_avg * 100
    if percent_change > DAM_TREND_PERCENT:
        return TrendDirection.INCREASING
    elif percent_change < -DAM_TREND_PERCENT:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def _history(combined: pd.Series, now: datetime) -> DamHistory48h:
    """Averages, peak and trend of the combined series."""
    if combined.empty:
        return DamHistory48h(
            average_flow_cfs=0.0,
            peak_flow_cfs=0.0,
            peak_timestamp=now,
            trend=TrendDirection.STABLE,
            last_24h_average_cfs=0.0,
            last_48h_average_cfs=0.0,
            sample_count=0,
        )

    cutoff = pd.Timestamp(now - timedelta(hours=24))
    if cutoff.tzinfo is None:
        cutoff = cutoff.tz_localize("UTC")
    last_24h = combined[combined.index > cutoff]

    average_48h = float(combined.mean())
    average_24h = float(last_24h.mean()) if not last_24h.empty else 0.0

    return DamHistory48h(
        average_flow_cfs=average_48h,
        peak_flow_cfs=float(combined.max()),
        peak_timestamp=combined.idxmax().to_pydatetime(),
        trend=_trend(combined.to_numpy()),
        last_24h_average_cfs=average_24h,
        last_48h_average_cfs=average_48h,
        sample_count=len(combined),
    )


def aggregate_dam_releases(
    station_series: dict[str, list[DamFlowSample]],
    station_names: Optional[dict[str, str]] = None,
    now: Optional[datetime] = None,
    source: str = "CDEC",
) -> DamReleaseAggregate:
    """Aggregate per-station flow series into a DamReleaseAggregate.

    A station with no samples contributes zero flow but is still listed.
    Never raises for missing data; the worst case is an all-zero result.

    Args:
        station_series: Station ID -> samples (any order)
        station_names: Optional station ID -> display name
        now: Reference time for the 24h window. Defaults to current UTC time.
        source: Source tag for the aggregate

    Returns:
        DamReleaseAggregate
    """
    if now is None:
        now = datetime.now(timezone.utc)
    station_names = station_names or {}

    latest: dict[str, Optional[DamFlowSample]] = {}
    for station_id, samples in station_series.items():
        latest[station_id] = max(samples, key=lambda s: s.timestamp) if samples else None

    # Stations' latest timestamps need not match
    current_total = sum(s.flow_cfs for s in latest.values() if s is not None)

    stations = []
    for station_id, samples in station_series.items():
        current = latest[station_id]
        flows = [s.flow_cfs for s in samples]
        current_flow = current.flow_cfs if current else 0.0
        stations.append(DamStationSummary(
            station_id=station_id,
            name=station_names.get(station_id, station_id),
            current_flow_cfs=current_flow,
            current_timestamp=current.timestamp if current else None,
            percent_of_total=(current_flow / current_total * 100) if current_total > 0 else 0.0,
            average_48h_cfs=sum(flows) / len(flows) if flows else 0.0,
            peak_48h_cfs=max(flows) if flows else 0.0,
            sample_count=len(flows),
        ))

    history = _history(_combined_series(station_series), now)
    timestamps = [s.timestamp for s in latest.values() if s is not None]
    release_level = classify_release_level(current_total)

    logger.info(
        f"Dam releases - current: {current_total:,.0f} CFS ({release_level.value}), "
        f"48h avg: {history.average_flow_cfs:,.0f} CFS, peak: {history.peak_flow_cfs:,.0f} CFS, "
        f"trend: {history.trend.value}"
    )

    return DamReleaseAggregate(
        timestamp=now,
        current_total_flow_cfs=current_total,
        release_level=release_level,
        history=history,
        stations=tuple(stations),
        latest_data_timestamp=max(timestamps) if timestamps else None,
        source=source,
    )


def unavailable_dam_releases(now: datetime) -> DamReleaseAggregate:
    """All-zero aggregate used when the dam feed could not be reached."""
    return DamReleaseAggregate(
        timestamp=now,
        current_total_flow_cfs=0.0,
        release_level=ReleaseLevel.LOW,
        history=_history(pd.Series(dtype=float), now),
        source=UNAVAILABLE,
    )


class DamReleaseAggregator:
    """Aggregates releases for a configured list of monitored dams."""

    def __init__(self, dams):
        """Initialize the aggregator.

        Args:
            dams: Iterable of MonitoredDam (station_id, name)
        """
        self.dams = list(dams)

    def aggregate(
        self,
        station_series: dict[str, list[DamFlowSample]],
        now: Optional[datetime] = None,
    ) -> DamReleaseAggregate:
        """Aggregate, listing every configured station even if it returned nothing."""
        series = {dam.station_id: list(station_series.get(dam.station_id, [])) for dam in self.dams}
        for station_id, samples in station_series.items():
            series.setdefault(station_id, list(samples))

        names = {dam.station_id: dam.name for dam in self.dams}
        return aggregate_dam_releases(series, station_names=names, now=now)
