"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from geocsv.common.errors import ConfigError
from geocsv.common.fs import read_yaml
from geocsv.common.http import TimeoutConfig
from geocsv.common.schema import validate_geocode_config

CONFIG_FILENAME = "geocode.yml"


@dataclass(frozen=True)
class GeocodingSettings:
    api_base_url: str
    api_key_env: str
    timeout: TimeoutConfig
    requests_per_second: float | None = None
    min_confidence: float | None = None
    api_key: str | None = None


@dataclass(frozen=True)
class ColumnMap:
    country: str
    state: str
    city: str
    page_id: str


@dataclass(frozen=True)
class EnrichSettings:
    input_path: Path
    output_path: Path
    failure_policy: str = "fatal"
    report_path: Path | None = None


@dataclass(frozen=True)
class GeoJsonSettings:
    input_path: Path
    output_path: Path
    url_base: str
    missing_coordinates: str = "null"


@dataclass(frozen=True)
class AppConfig:
    geocoding: GeocodingSettings
    columns: ColumnMap
    enrich: EnrichSettings
    geojson: GeoJsonSettings


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def build_app_config(cfg: dict) -> AppConfig:
    geocoding = cfg["geocoding"]
    enrich = cfg["enrich"]
    geojson = cfg["geojson"]
    rate = geocoding.get("requests_per_second")
    min_confidence = geocoding.get("min_confidence")
    return AppConfig(
        geocoding=GeocodingSettings(
            api_base_url=geocoding["api_base_url"].rstrip("/"),
            api_key_env=geocoding["api_key_env"],
            timeout=TimeoutConfig(
                connect=float(geocoding["timeout"]["connect_seconds"]),
                read=float(geocoding["timeout"]["read_seconds"]),
            ),
            requests_per_second=float(rate) if rate is not None else None,
            min_confidence=float(min_confidence) if min_confidence is not None else None,
        ),
        columns=ColumnMap(**cfg["columns"]),
        enrich=EnrichSettings(
            input_path=Path(enrich["input_path"]),
            output_path=Path(enrich["output_path"]),
            failure_policy=enrich["failure_policy"],
            report_path=Path(enrich["report_path"]) if enrich.get("report_path") else None,
        ),
        geojson=GeoJsonSettings(
            input_path=Path(geojson["input_path"]),
            output_path=Path(geojson["output_path"]),
            url_base=geojson["url_base"],
            missing_coordinates=geojson["missing_coordinates"],
        ),
    )


def load_app_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> AppConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_app_config(validate_geocode_config(raw, allow_unknown=allow_unknown))


def resolve_api_key(config: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Return ``config`` with the geocoding credential read from the environment."""
    env = os.environ if environ is None else environ
    name = config.geocoding.api_key_env
    api_key = (env.get(name) or "").strip()
    if not api_key:
        raise ConfigError(f"Geocoding API key is not set; export {name}")
    return replace(config, geocoding=replace(config.geocoding, api_key=api_key))
