"""JSON snapshot of an assessment.

The document mirrors the entities: dataclasses become objects, enums their
values and datetimes ISO-8601 strings. A critical failure becomes
``{"error", "details"}`` for the HTTP layer to map to a 503.
"""

import json
import logging
from dataclasses import fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from src.core.fusion import ConditionsReport
from src.core.readings import CriticalFailure


logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "static-data.json"
BUILD_MODE = "static"


def to_jsonable(value: Any) -> Any:
    """Recursively convert entities to JSON-compatible values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def conditions_to_dict(report: ConditionsReport) -> dict:
    """Convert a ConditionsReport to a JSON-ready dict.

    Args:
        report: Scored assessment

    Returns:
        Dict with timestamp, score, readings and data_freshness
    """
    return {
        "timestamp": report.timestamp.isoformat(),
        "score": to_jsonable(report.score),
        "readings": to_jsonable(report.readings),
        "data_freshness": to_jsonable(report.readings.data_freshness()),
    }


def critical_failure_to_dict(failure: CriticalFailure) -> dict:
    """Convert a CriticalFailure to the error document.

    Args:
        failure: The failure returned by SourceFusion

    Returns:
        {"error": reason, "details": {timestamp, diagnostics}}
    """
    return {
        "error": failure.reason,
        "details": {
            "timestamp": failure.timestamp.isoformat(),
            "diagnostics": to_jsonable(failure.diagnostics),
        },
    }


def write_snapshot(report: ConditionsReport, path: Path) -> Path:
    """Write the static snapshot file with build metadata.

    Args:
        report: Scored assessment
        path: Output .json file, or a directory (created if missing) to write
            static-data.json into. A path without a suffix is a directory.

    Returns:
        Path written
    """
    path = Path(path)
    if path.is_dir() or not path.suffix:
        path = path / SNAPSHOT_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)

    document = {
        **conditions_to_dict(report),
        "buildTimestamp": datetime.now(timezone.utc).isoformat(),
        "buildMode": BUILD_MODE,
    }
    path.write_text(json.dumps(document, indent=2))

    logger.info(f"Snapshot written to {path} (score {report.score.overall_score})")
    return path
