"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from geocsv.common.fs import write_json
from geocsv.common.models import EnrichmentResult
from geocsv.common.time_utils import utc_timestamp_iso


def enrichment_status(result: EnrichmentResult) -> str:
    if result.has_failures:
        return "partial"
    return "success"


def write_run_summary(
    path: Path,
    *,
    run_id: str,
    result: EnrichmentResult,
    input_path: Path,
    output_path: Path,
    failure_policy: str,
) -> Path:
    payload = {
        "run_id": run_id,
        "finished_at": utc_timestamp_iso(),
        "stage": "geocode",
        "status": enrichment_status(result),
        "failure_policy": failure_policy,
        "input_path": str(input_path),
        "output_path": str(output_path),
        "counts": result.counts(),
        "failures": [failure.to_dict() for failure in result.failures],
    }
    return write_json(path, payload)
