"""Project enriched rows into a GeoJSON point FeatureCollection."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

from geocsv.common.config_loader import AppConfig
from geocsv.common.constants import LAT_FIELD, LON_FIELD, MISSING_COORDINATE_POLICIES
from geocsv.common.errors import CoordinateError
from geocsv.common.fs import write_json_compact
from geocsv.common.logging import log_event
from geocsv.common.models import Row
from geocsv.pipeline.table_io import read_table

logger = logging.getLogger(__name__)


def _parse_coordinate(row: Row, name: str) -> float:
    raw = row.get(name)
    if raw is None or not raw.strip():
        raise CoordinateError(f"missing {name}")
    try:
        value = float(raw)
    except ValueError as exc:
        raise CoordinateError(f"{name} is not numeric: {raw!r}") from exc
    if not math.isfinite(value):
        raise CoordinateError(f"{name} is not finite: {raw!r}")
    return value


def feature_url(row: Row, *, url_base: str, id_column: str) -> str | None:
    page_id = (row.get(id_column) or "").strip()
    if not page_id:
        return None
    return f"{url_base.rstrip('/')}/{page_id}"


def project_feature(row: Row, *, url_base: str, id_column: str) -> dict[str, Any]:
    lat = _parse_coordinate(row, LAT_FIELD)
    lon = _parse_coordinate(row, LON_FIELD)

    properties: dict[str, Any] = dict(row)
    properties[LAT_FIELD] = lat
    properties[LON_FIELD] = lon
    properties["url"] = feature_url(row, url_base=url_base, id_column=id_column)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties,
    }


def _null_geometry_feature(row: Row, *, url_base: str, id_column: str) -> dict[str, Any]:
    properties: dict[str, Any] = dict(row)
    properties[LAT_FIELD] = None
    properties[LON_FIELD] = None
    properties["url"] = feature_url(row, url_base=url_base, id_column=id_column)
    return {"type": "Feature", "geometry": None, "properties": properties}


def build_feature_collection(
    rows: list[Row],
    *,
    url_base: str,
    id_column: str,
    missing_coordinates: str = "null",
) -> tuple[dict[str, Any], list[int]]:
    """Return the collection envelope and the indexes of rows left out of it.

    ``missing_coordinates`` decides what happens to a row whose lat/lon is
    absent, empty, non-numeric or non-finite: ``skip`` drops it, ``fail``
    raises ``CoordinateError`` and ``null`` keeps it with a null geometry.
    """
    if missing_coordinates not in MISSING_COORDINATE_POLICIES:
        raise ValueError(f"Unknown missing_coordinates policy: {missing_coordinates}")

    features: list[dict[str, Any]] = []
    skipped: list[int] = []
    for row_index, row in enumerate(rows):
        try:
            features.append(project_feature(row, url_base=url_base, id_column=id_column))
        except CoordinateError as exc:
            if missing_coordinates == "fail":
                raise CoordinateError(f"Row {row_index}: {exc}") from exc
            if missing_coordinates == "null":
                features.append(_null_geometry_feature(row, url_base=url_base, id_column=id_column))
                continue
            skipped.append(row_index)
            log_event(
                logger,
                f"row {row_index} has no usable coordinates: {exc}",
                level=logging.WARNING,
                event="FEATURE_SKIPPED",
                status="skipped",
                row_index=row_index,
                error_code=exc.error_code,
            )

    return {"type": "FeatureCollection", "features": features}, skipped


def run_geojson_stage(config: AppConfig) -> dict[str, Any]:
    settings = config.geojson
    rows = read_table(Path(settings.input_path))
    collection, skipped = build_feature_collection(
        rows,
        url_base=settings.url_base,
        id_column=config.columns.page_id,
        missing_coordinates=settings.missing_coordinates,
    )
    out_path = write_json_compact(Path(settings.output_path), collection)
    return {
        "path": str(out_path),
        "rows_in": len(rows),
        "rows_out": len(collection["features"]),
        "skipped_rows": skipped,
    }
