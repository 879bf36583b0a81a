"""CLI entrypoint for the table geocoding and GeoJSON export pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from geocsv.common.config_loader import AppConfig, load_app_config, resolve_api_key
from geocsv.common.constants import (
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    FAILURE_POLICIES,
    MISSING_COORDINATE_POLICIES,
    STAGES,
)
from geocsv.common.errors import PipelineError
from geocsv.common.ids import generate_run_id
from geocsv.common.logging import build_logger, log_event
from geocsv.common.time_utils import elapsed_ms, monotonic_ms
from geocsv.pipeline.enrich import run_geocode_stage
from geocsv.pipeline.features import run_geojson_stage
from geocsv.pipeline.reports import enrichment_status, write_run_summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="geocsv", description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--input", default=None, help="Override the stage input path")
    parser.add_argument("--output", default=None, help="Override the stage output path")
    parser.add_argument("--failure-policy", default=None, choices=FAILURE_POLICIES)
    parser.add_argument("--missing-coordinates", default=None, choices=MISSING_COORDINATE_POLICIES)
    parser.add_argument("--report-path", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    enrich = config.enrich
    geojson = config.geojson

    if args.failure_policy:
        enrich = replace(enrich, failure_policy=args.failure_policy)
    if args.report_path:
        enrich = replace(enrich, report_path=Path(args.report_path))
    if args.missing_coordinates:
        geojson = replace(geojson, missing_coordinates=args.missing_coordinates)

    # With "all", --input feeds stage 1 and --output names the final GeoJSON;
    # the intermediate table stays wherever the config puts it.
    if args.command in ("geocode", "all") and args.input:
        enrich = replace(enrich, input_path=Path(args.input))
    if args.command == "geocode" and args.output:
        enrich = replace(enrich, output_path=Path(args.output))
    if args.command == "to-geojson" and args.input:
        geojson = replace(geojson, input_path=Path(args.input))
    if args.command in ("to-geojson", "all") and args.output:
        geojson = replace(geojson, output_path=Path(args.output))
    if args.command == "all":
        geojson = replace(geojson, input_path=enrich.output_path)

    return replace(config, enrich=enrich, geojson=geojson)


def execute_stage(stage: str, config: AppConfig, run_id: str, logger: logging.Logger) -> int:
    started = monotonic_ms()
    log_event(logger, "stage start", stage=stage, event="STAGE_START", status="ok")

    if stage == "geocode":
        result = run_geocode_stage(config)
        if config.enrich.report_path is not None:
            write_run_summary(
                config.enrich.report_path,
                run_id=run_id,
                result=result,
                input_path=config.enrich.input_path,
                output_path=config.enrich.output_path,
                failure_policy=config.enrich.failure_policy,
            )
        counts = result.counts()
        status = enrichment_status(result)
        log_event(
            logger,
            f"stage end: {counts['enriched']} enriched, {counts['skipped']} skipped, "
            f"{counts['failed']} failed",
            level=logging.WARNING if result.has_failures else logging.INFO,
            stage=stage,
            event="STAGE_END",
            status=status,
            rows_in=counts["rows_in"],
            rows_out=counts["rows_out"],
            duration_ms=elapsed_ms(started),
        )
        if result.has_failures:
            failed = ", ".join(str(failure.row_index) for failure in result.failures)
            log_event(
                logger,
                f"rows left unenriched: {failed}",
                level=logging.WARNING,
                stage=stage,
                event="FAILURE_SUMMARY",
                status="partial",
            )
        return EXIT_PARTIAL if result.has_failures else EXIT_SUCCESS

    if stage == "to-geojson":
        summary = run_geojson_stage(config)
        log_event(
            logger,
            f"stage end: wrote {summary['path']}",
            stage=stage,
            event="STAGE_END",
            status="ok",
            rows_in=summary["rows_in"],
            rows_out=summary["rows_out"],
            duration_ms=elapsed_ms(started),
        )
        return EXIT_SUCCESS

    raise ValueError(f"Unknown stage: {stage}")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    log_dir = Path(args.log_dir) if args.log_dir else None
    logger = build_logger(run_id, log_dir=log_dir, level=args.log_level)
    stages = STAGES if args.command == "all" else (args.command,)

    stage = stages[0]
    try:
        config = load_app_config(
            Path(args.config_dir),
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
        )
        config = apply_overrides(config, args)
        if "geocode" in stages:
            config = resolve_api_key(config)

        exit_code = EXIT_SUCCESS
        for stage in stages:
            exit_code = execute_stage(stage, config, run_id, logger)
            if exit_code != EXIT_SUCCESS:
                # Never export a table that still has unresolved rows.
                break
        return exit_code
    except PipelineError as exc:
        log_event(
            logger,
            f"{stage} failed: {exc}",
            level=logging.ERROR,
            stage=stage,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    except Exception as exc:
        logger.error(
            f"unexpected failure in {stage}: {exc!r}",
            exc_info=True,
            extra={"stage": stage, "event": "STAGE_FAIL", "status": "error", "error_code": "UNEXPECTED_ERROR"},
        )
        return EXIT_HARD_FAIL


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
