#!/usr/bin/env python3
"""Live connectivity check for every data source.

Checks:
1. Location config loading
2. Individual API clients
3. Full fusion and scoring with live data

Run from project root:
    python scripts/check_sources.py
"""

import sys
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def check_location():
    """Check loading the location config."""
    print("\n" + "="*60)
    print("CHECK: Location Config")
    print("="*60)

    from src.core.location import get_location

    location = get_location()
    print(f"\n  Location: {location.name} ({location.id})")
    print(f"  Coordinates: {location.coordinates.lat}, {location.coordinates.lon}")
    print(f"  Tide station: {location.stations.tide}")
    print(f"  Current station: {location.stations.current}")
    print(f"  Buoy: {location.stations.buoy}")
    print(f"  Dams: {', '.join(location.dam_station_ids)}")

    inside = location.bounds.contains(location.coordinates)
    print(f"  Centre within swim-area bounds: {'yes' if inside else 'NO'}")

    return inside


def check_api_clients():
    """Check each API client can connect (with error handling)."""
    print("\n" + "="*60)
    print("CHECK: API Client Connectivity")
    print("="*60)

    from src.core.location import get_location
    location = get_location()
    lat, lon = location.coordinates.lat, location.coordinates.lon

    results = {}

    print("\n  Testing NOAA Tides Client...")
    try:
        from src.clients.noaa_tides_client import NOAATidesClient
        tide = NOAATidesClient(lat=lat, lon=lon).get_current_tide_prediction(station_id=location.stations.tide)
        if tide:
            print(f"    ✓ Tide: {tide.height_ft:.2f}ft, {tide.current_phase.value} ({tide.change_rate_ft_per_hr:+.2f} ft/hr)")
            results["tides"] = True
        else:
            print("    ⚠ No tide data returned")
            results["tides"] = False
    except Exception as e:
        print(f"    ✗ Tides error: {e}")
        results["tides"] = False

    print("\n  Testing NWS Client...")
    try:
        from src.clients.nws_client import NWSClient
        nws = NWSClient()
        weather = nws.get_latest_observation(lat, lon)
        if weather:
            print(f"    ✓ NWS: {weather.temperature_f:.0f}°F, wind {weather.wind_speed_mph:.0f} mph, {weather.conditions}")
            results["nws"] = True
        else:
            print("    ⚠ NWS observation missing temperature or wind")
            results["nws"] = False

        forecast = nws.get_hourly_forecast(lat, lon)
        if not forecast.empty:
            next_hours = forecast.head(6)
            print(f"    ✓ NWS forecast: {len(forecast)} hours, next 6h wind "
                  f"{next_hours['wind_speed_mph'].min():.0f}-{next_hours['wind_speed_mph'].max():.0f} mph")
        else:
            print("    ⚠ NWS hourly forecast empty")
    except Exception as e:
        print(f"    ✗ NWS error: {e}")
        results["nws"] = False

    print("\n  Testing Open-Meteo Client...")
    try:
        from src.clients.open_meteo_client import OpenMeteoClient
        wind = OpenMeteoClient().get_current_wind(lat, lon)
        if wind:
            print(f"    ✓ Open-Meteo: wind {wind.wind_speed_mph:.0f} mph from {wind.wind_direction_deg:.0f}°")
            results["open_meteo"] = True
        else:
            print("    ⚠ No wind data returned")
            results["open_meteo"] = False
    except Exception as e:
        print(f"    ✗ Open-Meteo error: {e}")
        results["open_meteo"] = False

    print("\n  Testing OpenWaterLog scraper...")
    try:
        from src.clients.openwaterlog_client import OpenWaterLogClient
        waves = OpenWaterLogClient().get_wave_reading()
        if waves:
            print(f"    ✓ OpenWaterLog: {waves.height_ft:.1f}ft")
            results["openwaterlog"] = True
        else:
            print("    ⚠ No waveData found")
            results["openwaterlog"] = False
    except Exception as e:
        print(f"    ✗ OpenWaterLog error: {e}")
        results["openwaterlog"] = False

    print("\n  Testing Buoy Client (NDBC)...")
    try:
        from src.clients.buoy_client import BuoyClient
        waves = BuoyClient().get_wave_reading(location.stations.buoy)
        if waves:
            print(f"    ✓ Buoy {location.stations.buoy}: {waves.height_ft:.1f}ft @ {waves.swell_period_s or 'N/A'}s")
            results["buoy"] = True
        else:
            print("    ⚠ Buoy returned no wave height data")
            results["buoy"] = False
    except Exception as e:
        print(f"    ✗ Buoy error: {e}")
        results["buoy"] = False

    print("\n  Testing Water Quality Client...")
    try:
        from src.clients.water_quality_client import WaterQualityClient
        reading = WaterQualityClient(lat, lon).get_water_quality()
        if reading:
            print(f"    ✓ {reading.source}: {reading.status} (entero {reading.enterococcus_count})")
            results["water_quality"] = True
        else:
            print("    ⚠ No water quality data from any source")
            results["water_quality"] = False
    except Exception as e:
        print(f"    ✗ Water quality error: {e}")
        results["water_quality"] = False

    print("\n  Testing SFPUC Client...")
    try:
        from src.clients.sfpuc_client import SFPUCClient
        events = SFPUCClient(lat, lon).get_recent_overflows()
        print(f"    ✓ SFPUC: {len(events)} overflow events in the last 7 days")
        results["sfpuc"] = True
    except Exception as e:
        print(f"    ✗ SFPUC error: {e}")
        results["sfpuc"] = False

    print("\n  Testing CDEC Client...")
    try:
        from src.clients.cdec_client import CDECClient
        series = CDECClient().get_station_series(location.dam_station_ids)
        for station_id, samples in series.items():
            latest = f"{samples[-1].flow_cfs:,.0f} cfs" if samples else "no data"
            print(f"    {station_id}: {len(samples)} samples, latest {latest}")
        results["cdec"] = any(series.values())
    except Exception as e:
        print(f"    ✗ CDEC error: {e}")
        results["cdec"] = False

    print(f"\n  API Results: {sum(results.values())}/{len(results)} working")
    return sum(results.values()) > 0


def check_scoring():
    """Check the full pipeline with live data."""
    print("\n" + "="*60)
    print("CHECK: Fusion & Scoring")
    print("="*60)

    from src.core.fusion import SourceFusion
    from src.core.readings import CriticalFailure

    result = SourceFusion().assess()
    if isinstance(result, CriticalFailure):
        print(f"\n  ✗ {result.reason}")
        for name, status in result.diagnostics.items():
            print(f"    {name}: {status.state.value} {status.message or ''}")
        return False

    score = result.score
    print(f"\n  Score: {score.overall_score} ({score.rating.value})")
    for factor in score.factors:
        print(f"    {factor.kind.value}: {factor.score:.0f}")
    for name, status in result.readings.diagnostics.items():
        print(f"    [{status.state.value}] {name}")

    return True


def run_all_checks():
    """Run all connectivity checks."""
    print("\n" + "#"*60)
    print("# AQUATIC PARK SWIM CONDITIONS - SOURCE CHECKS")
    print(f"# {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("#"*60)

    checks = [
        ("Location Config", check_location),
        ("API Clients", check_api_clients),
        ("Fusion & Scoring", check_scoring),
    ]

    results = []
    for name, check_func in checks:
        try:
            result = check_func()
            results.append((name, result))
        except Exception as e:
            print(f"\n  EXCEPTION in {name}: {e}")
            results.append((name, False))

    print("\n" + "="*60)
    print("SOURCE CHECK RESULTS")
    print("="*60)

    for name, passed in results:
        status = "✓ PASS" if passed else "✗ FAIL"
        print(f"  {status}: {name}")

    passed_count = sum(1 for _, p in results if p)
    print(f"\n  Total: {passed_count}/{len(results)} checks passed")
    print("="*60)

    return all(p for _, p in results)


if __name__ == "__main__":
    success = run_all_checks()
    sys.exit(0 if success else 1)
