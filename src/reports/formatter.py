"""Format an assessment as plain text for the console."""

from src.core.fusion import ConditionsReport
from src.core.readings import CriticalFailure


class ConditionsFormatter:
    """Formats a ConditionsReport for terminal output."""

    FACTOR_LABELS = {
        "water_quality": "Water Quality",
        "tide_and_current": "Tide & Current",
        "waves": "Waves",
        "weather": "Weather",
        "dam_releases": "Dam Releases",
    }

    def __init__(self, report: ConditionsReport, location_name: str = "Aquatic Park"):
        """Initialize formatter with a report.

        Args:
            report: The assessment to format.
            location_name: Heading shown at the top.
        """
        self.report = report
        self.location_name = location_name

    def format_text(self) -> str:
        """Format the report as plain text.

        Returns:
            Plain text formatted string.
        """
        score = self.report.score
        readings = self.report.readings
        date_str = self.report.timestamp.strftime("%A, %B %d, %Y at %H:%M UTC")

        lines = [
            "=" * 50,
            f"{self.location_name.upper()} SWIM CONDITIONS",
            date_str,
            "=" * 50,
            "",
            f"SCORE: {score.overall_score}/100 ({score.rating.value.upper()})",
            "",
        ]

        # Warnings first
        if score.warnings:
            lines.append("*** WARNINGS ***")
            for warning in score.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        lines.append("FACTORS")
        lines.append("-" * 30)
        for factor in score.factors:
            label = self.FACTOR_LABELS[factor.kind.value]
            lines.append(f"{label}: {factor.score:.0f}")
            for issue in factor.issues:
                lines.append(f"   {issue}")
        lines.append("")

        lines.append("CONDITIONS")
        lines.append("-" * 30)
        tide = readings.tide
        lines.append(
            f"Tide: {tide.height_ft:.1f} ft, {tide.current_phase.value} "
            f"({tide.change_rate_ft_per_hr:+.2f} ft/hr)"
        )
        if tide.next_high:
            lines.append(f"Next High: {tide.next_high.timestamp:%H:%M} UTC ({tide.next_high.height_ft:.1f} ft)")
        if tide.next_low:
            lines.append(f"Next Low: {tide.next_low.timestamp:%H:%M} UTC ({tide.next_low.height_ft:.1f} ft)")

        current = readings.current
        derived = " (estimated from tide)" if current.is_derived else ""
        lines.append(f"Current: {current.speed_knots:.1f} knots{derived}")

        weather = readings.weather
        if weather.is_available:
            lines.append(
                f"Weather: {weather.temperature_f:.0f}°F, wind {weather.wind_speed_mph:.0f} mph, "
                f"{weather.conditions}"
            )
        else:
            lines.append("Weather: N/A")

        waves = readings.waves
        lines.append(f"Waves: {waves.height_ft:.1f} ft ({waves.source})" if waves.is_available else "Waves: N/A")

        dams = readings.dam_releases
        if dams.is_available:
            lines.append(
                f"Dam releases: {dams.current_total_flow_cfs:,.0f} CFS ({dams.release_level.value}, "
                f"{dams.history.trend.value})"
            )
        else:
            lines.append("Dam releases: N/A")
        lines.append("")

        if score.recommendations:
            lines.append("RECOMMENDATIONS")
            lines.append("-" * 30)
            for recommendation in score.recommendations:
                lines.append(f"  - {recommendation}")
            lines.append("")

        degraded = {name: status for name, status in readings.diagnostics.items() if not status.ok}
        if degraded:
            lines.append("DATA SOURCES")
            lines.append("-" * 30)
            for name, status in degraded.items():
                lines.append(f"{name}: {status.state.value} - {status.message or ''}")
            lines.append("")

        # Footer
        lines.extend([
            "=" * 50,
            "Data: NOAA CO-OPS, NWS, Open-Meteo, NDBC, OpenWaterLog, SF Beach WQ, SFPUC, CDEC",
            "=" * 50,
        ])

        return "\n".join(lines)


def format_failure(failure: CriticalFailure) -> str:
    """Plain text summary of a critical failure and each source's status."""
    lines = [
        f"UNABLE TO SCORE CONDITIONS: {failure.reason}",
        "",
    ]
    for name, status in failure.diagnostics.items():
        message = f" - {status.message}" if status.message else ""
        lines.append(f"  {name}: {status.state.value}{message}")
    return "\n".join(lines)


def format_text(report: ConditionsReport, **kwargs) -> str:
    """Convenience function to format a report as plain text."""
    return ConditionsFormatter(report, **kwargs).format_text()
