"""Text and JSON output for swim condition assessments."""

from src.reports.formatter import ConditionsFormatter, format_failure, format_text
from src.reports.snapshot import (
    conditions_to_dict,
    critical_failure_to_dict,
    write_snapshot,
)

__all__ = [
    "ConditionsFormatter",
    "format_failure",
    "format_text",
    "conditions_to_dict",
    "critical_failure_to_dict",
    "write_snapshot",
]
