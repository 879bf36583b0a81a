from __future__ import annotations

import copy
from pathlib import Path

import pytest
import yaml

from geocsv.common.config_loader import load_app_config, resolve_api_key
from geocsv.common.errors import ConfigError
from geocsv.common.schema import validate_geocode_config


def _repo_config() -> dict:
    with Path("config/geocode.yml").open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def test_load_app_config_from_repo_config_dir():
    config = load_app_config(Path("config"))

    assert config.geocoding.api_base_url == "https://api.geoapify.com/v1"
    assert config.geocoding.api_key is None
    assert config.geocoding.timeout.connect == 10.0
    assert config.columns.state == "State/Region/Province"
    assert config.columns.page_id == "Page ID"
    assert config.enrich.failure_policy == "fatal"
    assert config.enrich.report_path is None
    assert config.geojson.missing_coordinates == "null"
    assert config.geojson.input_path == config.enrich.output_path


def test_load_app_config_applies_overlay_values(tmp_path: Path):
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "geocode.yml").write_text(
        """geocoding:
  min_confidence: 0.5
  requests_per_second: null
enrich:
  failure_policy: continue
  report_path: out/report.json
""",
        encoding="utf-8",
    )

    config = load_app_config(Path("config"), overlay_config_dir=overlay)

    assert config.geocoding.min_confidence == 0.5
    assert config.geocoding.requests_per_second is None
    assert config.geocoding.api_base_url == "https://api.geoapify.com/v1"
    assert config.enrich.failure_policy == "continue"
    assert config.enrich.report_path == Path("out/report.json")


def test_load_app_config_missing_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_app_config(tmp_path)


def test_load_app_config_invalid_yaml_raises(tmp_path: Path):
    (tmp_path / "geocode.yml").write_text("geocoding: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_app_config(tmp_path)


@pytest.mark.parametrize(
    ("section", "key", "value"),
    [
        ("enrich", "failure_policy", "retry"),
        ("geojson", "missing_coordinates", "guess"),
        ("geocoding", "min_confidence", 2),
        ("geocoding", "requests_per_second", 0),
        ("columns", "country", ""),
        ("geojson", "url_base", None),
    ],
)
def test_validate_rejects_bad_values(section, key, value):
    cfg = copy.deepcopy(_repo_config())
    cfg[section][key] = value
    with pytest.raises(ConfigError):
        validate_geocode_config(cfg)


def test_validate_rejects_unknown_and_missing_keys():
    cfg = copy.deepcopy(_repo_config())
    cfg["enrich"]["resume"] = True
    with pytest.raises(ConfigError, match="Unknown keys in enrich"):
        validate_geocode_config(cfg)
    assert validate_geocode_config(cfg, allow_unknown=True) is cfg

    cfg = copy.deepcopy(_repo_config())
    del cfg["columns"]
    with pytest.raises(ConfigError, match="Missing keys"):
        validate_geocode_config(cfg)


def test_optional_keys_may_be_omitted():
    cfg = copy.deepcopy(_repo_config())
    del cfg["geocoding"]["min_confidence"]
    del cfg["enrich"]["report_path"]
    assert validate_geocode_config(cfg) is cfg


def test_resolve_api_key_reads_configured_env_var():
    config = load_app_config(Path("config"))

    resolved = resolve_api_key(config, environ={"GEOAPIFY_API_KEY": " abc \n"})

    assert resolved.geocoding.api_key == "abc"
    assert config.geocoding.api_key is None


def test_resolve_api_key_missing_raises():
    config = load_app_config(Path("config"))
    with pytest.raises(ConfigError, match="GEOAPIFY_API_KEY"):
        resolve_api_key(config, environ={})
