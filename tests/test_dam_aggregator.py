from datetime import timedelta

import pytest

from conftest import NOW, make_dam_series
from src.core.dam_aggregator import (
    DamReleaseAggregator,
    aggregate_dam_releases,
    classify_release_level,
    unavailable_dam_releases,
)
from src.core.location import MonitoredDam
from src.core.readings import DamFlowSample, ReleaseLevel, TrendDirection


def ramp(station_id, start, step, hours=48):
    """Hourly samples ending at NOW, flow changing by ``step`` each hour."""
    return [
        DamFlowSample(station_id, NOW - timedelta(hours=hours - 1 - i), start + i * step)
        for i in range(hours)
    ]


@pytest.mark.parametrize("flow, level", [
    (0, ReleaseLevel.LOW),
    (30_000, ReleaseLevel.LOW),
    (30_001, ReleaseLevel.MODERATE),
    (50_000, ReleaseLevel.MODERATE),
    (50_001, ReleaseLevel.ELEVATED),
    (80_001, ReleaseLevel.HIGH),
    (100_000, ReleaseLevel.HIGH),
    (100_001, ReleaseLevel.EXTREME),
])
def test_release_level_boundaries_are_strict(flow, level):
    assert classify_release_level(flow) == level


def test_current_total_sums_each_station_latest():
    series = {
        "SHA": [
            DamFlowSample("SHA", NOW - timedelta(hours=2), 20_000),
            DamFlowSample("SHA", NOW - timedelta(hours=1), 25_000),
        ],
        # Latest ORO sample is older than SHA's
        "ORO": [DamFlowSample("ORO", NOW - timedelta(hours=3), 15_000)],
    }

    aggregate = aggregate_dam_releases(series, {"SHA": "Shasta Dam"}, now=NOW)

    assert aggregate.current_total_flow_cfs == 40_000
    assert aggregate.release_level == ReleaseLevel.MODERATE
    assert aggregate.latest_data_timestamp == NOW - timedelta(hours=1)

    shasta, oroville = aggregate.stations
    assert shasta.name == "Shasta Dam"
    assert shasta.current_flow_cfs == 25_000
    assert shasta.percent_of_total == pytest.approx(62.5)
    assert shasta.average_48h_cfs == pytest.approx(22_500)
    assert shasta.peak_48h_cfs == 25_000
    assert oroville.name == "ORO"
    assert oroville.percent_of_total == pytest.approx(37.5)


def test_combined_series_only_sums_matching_timestamps():
    series = {
        "SHA": [
            DamFlowSample("SHA", NOW - timedelta(hours=1), 10_000),
            DamFlowSample("SHA", NOW, 10_000),
        ],
        "ORO": [
            DamFlowSample("ORO", NOW - timedelta(minutes=30), 5_000),
            DamFlowSample("ORO", NOW, 5_000),
        ],
    }

    history = aggregate_dam_releases(series, now=NOW).history

    # Three distinct timestamps: 10k, 5k, 15k
    assert history.sample_count == 3
    assert history.peak_flow_cfs == 15_000
    assert history.peak_timestamp == NOW
    assert history.average_flow_cfs == pytest.approx(10_000)


def test_history_averages_and_peak():
    aggregate = aggregate_dam_releases({"SHA": ramp("SHA", 10_000, 200)}, now=NOW)
    history = aggregate.history

    assert history.sample_count == 48
    assert history.last_48h_average_cfs == pytest.approx(14_700)
    assert history.last_24h_average_cfs == pytest.approx(17_100)
    assert history.peak_flow_cfs == 19_400
    assert history.peak_timestamp == NOW


def test_trend_increasing():
    history = aggregate_dam_releases({"SHA": ramp("SHA", 10_000, 200)}, now=NOW).history

    assert history.trend == TrendDirection.INCREASING


def test_trend_decreasing():
    history = aggregate_dam_releases({"SHA": ramp("SHA", 20_000, -200)}, now=NOW).history

    assert history.trend == TrendDirection.DECREASING


def test_trend_stable_within_threshold():
    history = aggregate_dam_releases(make_dam_series(flow=10_000), now=NOW).history

    assert history.trend == TrendDirection.STABLE


def test_trend_stable_with_too_few_points():
    history = aggregate_dam_releases({"SHA": ramp("SHA", 10_000, 5_000, hours=3)}, now=NOW).history

    assert history.trend == TrendDirection.STABLE


def test_empty_station_contributes_zero():
    series = {"SHA": ramp("SHA", 10_000, 0, hours=4), "ORO": []}

    aggregate = aggregate_dam_releases(series, now=NOW)

    assert aggregate.current_total_flow_cfs == 10_000
    oroville = aggregate.stations[1]
    assert oroville.current_flow_cfs == 0
    assert oroville.sample_count == 0
    assert oroville.current_timestamp is None


def test_all_stations_empty():
    aggregate = aggregate_dam_releases({"SHA": [], "ORO": []}, now=NOW)

    assert aggregate.current_total_flow_cfs == 0
    assert aggregate.release_level == ReleaseLevel.LOW
    assert aggregate.history.sample_count == 0
    assert aggregate.latest_data_timestamp is None
    assert all(station.percent_of_total == 0 for station in aggregate.stations)


def test_aggregator_lists_configured_stations():
    aggregator = DamReleaseAggregator([
        MonitoredDam("SHA", "Shasta Dam"),
        MonitoredDam("FOL", "Folsom Dam"),
    ])

    aggregate = aggregator.aggregate({"SHA": ramp("SHA", 8_000, 0, hours=6)}, now=NOW)

    assert [s.station_id for s in aggregate.stations] == ["SHA", "FOL"]
    assert [s.name for s in aggregate.stations] == ["Shasta Dam", "Folsom Dam"]
    assert aggregate.source == "CDEC"


def test_unavailable_aggregate():
    aggregate = unavailable_dam_releases(NOW)

    assert not aggregate.is_available
    assert aggregate.current_total_flow_cfs == 0
    assert aggregate.stations == ()
