"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from geocsv.common.constants import FAILURE_POLICIES, MISSING_COORDINATE_POLICIES
from geocsv.common.errors import ConfigError

SECTIONS = {
    "geocoding": {"api_base_url", "api_key_env", "timeout", "requests_per_second", "min_confidence"},
    "columns": {"country", "state", "city", "page_id"},
    "enrich": {"input_path", "output_path", "failure_policy", "report_path"},
    "geojson": {"input_path", "output_path", "url_base", "missing_coordinates"},
}
OPTIONAL_KEYS = {
    "geocoding": {"requests_per_second", "min_confidence"},
    "enrich": {"report_path"},
}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_non_empty_str(value: object, ctx: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{ctx} must be a non-empty string")


def _assert_choice(value: object, choices: tuple[str, ...], ctx: str) -> None:
    if value not in choices:
        raise ConfigError(f"{ctx} must be one of {', '.join(choices)}; got {value!r}")


def _assert_positive_number(value: object, ctx: str, *, nullable: bool = False) -> None:
    if value is None and nullable:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_geocode_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "geocode config")
    _assert_required_keys(cfg, set(SECTIONS), "geocode config")
    _assert_no_unknown_keys(cfg, set(SECTIONS), "geocode config", allow_unknown)

    for section, known in SECTIONS.items():
        body = _assert_mapping(cfg[section], section)
        _assert_required_keys(body, known - OPTIONAL_KEYS.get(section, set()), section)
        _assert_no_unknown_keys(body, known, section, allow_unknown)

    geocoding = cfg["geocoding"]
    _assert_non_empty_str(geocoding["api_base_url"], "geocoding.api_base_url")
    _assert_non_empty_str(geocoding["api_key_env"], "geocoding.api_key_env")
    timeout = _assert_mapping(geocoding["timeout"], "geocoding.timeout")
    _assert_required_keys(timeout, {"connect_seconds", "read_seconds"}, "geocoding.timeout")
    _assert_positive_number(timeout["connect_seconds"], "geocoding.timeout.connect_seconds")
    _assert_positive_number(timeout["read_seconds"], "geocoding.timeout.read_seconds")
    _assert_positive_number(
        geocoding.get("requests_per_second"), "geocoding.requests_per_second", nullable=True
    )

    min_confidence = geocoding.get("min_confidence")
    if min_confidence is not None:
        if isinstance(min_confidence, bool) or not isinstance(min_confidence, (int, float)):
            raise ConfigError("geocoding.min_confidence must be a number or null")
        if not 0 <= min_confidence <= 1:
            raise ConfigError("geocoding.min_confidence must be within [0, 1]")

    for key in SECTIONS["columns"]:
        _assert_non_empty_str(cfg["columns"][key], f"columns.{key}")

    for key in ("input_path", "output_path"):
        _assert_non_empty_str(cfg["enrich"][key], f"enrich.{key}")
        _assert_non_empty_str(cfg["geojson"][key], f"geojson.{key}")
    _assert_choice(cfg["enrich"]["failure_policy"], FAILURE_POLICIES, "enrich.failure_policy")
    if cfg["enrich"].get("report_path") is not None:
        _assert_non_empty_str(cfg["enrich"]["report_path"], "enrich.report_path")

    _assert_non_empty_str(cfg["geojson"]["url_base"], "geojson.url_base")
    _assert_choice(
        cfg["geojson"]["missing_coordinates"],
        MISSING_COORDINATE_POLICIES,
        "geojson.missing_coordinates",
    )
    return cfg
