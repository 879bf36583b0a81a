"""Sequential geocoding enrichment of table rows.

Rows are processed strictly in input order with exactly one lookup in flight
at a time; the external service's rate tolerance is respected by never
fanning out. Output is accumulated in memory and only written once every row
has been handled, so a fatal failure leaves no partial output behind.
"""

from __future__ import annotations

import logging
from pathlib import Path

from geocsv.common.config_loader import AppConfig, ColumnMap
from geocsv.common.constants import FAILURE_POLICIES, LAT_FIELD, LON_FIELD
from geocsv.common.errors import ROW_RECOVERABLE_ERRORS, ConfigError, NoMatchError
from geocsv.common.logging import log_event
from geocsv.common.models import Candidate, EnrichmentResult, GeoQuery, Row, RowFailure
from geocsv.geocoding.client import Geocoder, GeocodingClient
from geocsv.pipeline.table_io import read_table, write_table

logger = logging.getLogger(__name__)


def format_coordinate(value: float) -> str:
    """Shortest round-tripping text for a coordinate; integral values drop ``.0``."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _field(row: Row, column: str) -> str:
    return row.get(column) or ""


class EnrichmentPipeline:
    def __init__(
        self,
        geocoder: Geocoder,
        columns: ColumnMap,
        *,
        failure_policy: str = "fatal",
        min_confidence: float | None = None,
    ) -> None:
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unknown failure policy: {failure_policy}")
        self.geocoder = geocoder
        self.columns = columns
        self.failure_policy = failure_policy
        self.min_confidence = min_confidence

    def is_eligible(self, row: Row) -> bool:
        return bool(_field(row, self.columns.country)) and bool(_field(row, self.columns.state))

    def build_query(self, row: Row) -> GeoQuery:
        return GeoQuery(
            country=row[self.columns.country],
            state=row[self.columns.state],
            city=_field(row, self.columns.city) or None,
        )

    def select_candidate(self, candidates: list[Candidate], row_index: int) -> Candidate:
        if not candidates:
            raise NoMatchError(f"Row {row_index}: geocoding returned no candidates")
        best = candidates[0]
        if (
            self.min_confidence is not None
            and best.confidence is not None
            and best.confidence < self.min_confidence
        ):
            raise NoMatchError(
                f"Row {row_index}: best candidate confidence {best.confidence} "
                f"is below {self.min_confidence}"
            )
        return best

    def enrich_row(self, row: Row, row_index: int) -> Row:
        query = self.build_query(row)
        candidates = self.geocoder.lookup(query)
        best = self.select_candidate(candidates, row_index)

        enriched = dict(row)
        enriched[LAT_FIELD] = format_coordinate(best.lat)
        enriched[LON_FIELD] = format_coordinate(best.lon)
        return enriched

    def run(self, rows: list[Row]) -> EnrichmentResult:
        result = EnrichmentResult(rows_in=len(rows))

        for row_index, row in enumerate(rows):
            if not self.is_eligible(row):
                result.skipped += 1
                result.rows.append(dict(row))
                log_event(
                    logger,
                    f"row {row_index} has no country/region; passed through",
                    level=logging.DEBUG,
                    event="ROW_SKIPPED",
                    status="skipped",
                    row_index=row_index,
                )
                continue

            try:
                enriched = self.enrich_row(row, row_index)
            except ROW_RECOVERABLE_ERRORS as exc:
                if self.failure_policy == "fatal":
                    raise
                result.failures.append(RowFailure(row_index, exc.error_code, str(exc)))
                result.rows.append(dict(row))
                log_event(
                    logger,
                    f"row {row_index} left unenriched: {exc}",
                    level=logging.WARNING,
                    event="ROW_FAILED",
                    status="error",
                    row_index=row_index,
                    error_code=exc.error_code,
                )
                continue

            result.enriched += 1
            result.rows.append(enriched)
            log_event(
                logger,
                f"row {row_index} geocoded",
                level=logging.DEBUG,
                event="ROW_ENRICHED",
                status="ok",
                row_index=row_index,
            )

        return result


def build_geocoder(config: AppConfig) -> GeocodingClient:
    settings = config.geocoding
    if not settings.api_key:
        raise ConfigError(f"Geocoding API key is not set; export {settings.api_key_env}")
    return GeocodingClient(
        settings.api_base_url,
        settings.api_key,
        timeout=settings.timeout,
        rate_per_sec=settings.requests_per_second,
    )


def run_geocode_stage(config: AppConfig, *, geocoder: Geocoder | None = None) -> EnrichmentResult:
    """Read, enrich, and write the stage-1 table; nothing is written on a fatal error."""
    rows = read_table(Path(config.enrich.input_path))

    owns_geocoder = geocoder is None
    active = geocoder or build_geocoder(config)
    try:
        pipeline = EnrichmentPipeline(
            active,
            config.columns,
            failure_policy=config.enrich.failure_policy,
            min_confidence=config.geocoding.min_confidence,
        )
        result = pipeline.run(rows)
    finally:
        if owns_geocoder:
            active.close()

    write_table(Path(config.enrich.output_path), result.rows)
    return result
