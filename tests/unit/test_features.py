from __future__ import annotations

import math

import pytest

from geocsv.common.errors import CoordinateError
from geocsv.pipeline.features import build_feature_collection, feature_url, project_feature

BASE = "https://www.notion.so/march-am"


def _row(**overrides):
    row = {
        "Artist": "Mineral",
        "Country": "United Kingdom",
        "State/Region/Province": "England",
        "City": "Cambridge",
        "Page ID": "abc123",
        "lat": "52.2055314",
        "lon": "0.1186637",
    }
    row.update(overrides)
    return row


def test_project_feature_builds_point_with_numeric_coordinates():
    feature = project_feature(_row(), url_base=BASE, id_column="Page ID")

    assert feature["type"] == "Feature"
    assert feature["geometry"] == {"type": "Point", "coordinates": [0.1186637, 52.2055314]}
    props = feature["properties"]
    assert props["lat"] == 52.2055314
    assert props["lon"] == 0.1186637
    assert props["url"] == f"{BASE}/abc123"
    assert props["Artist"] == "Mineral"
    assert list(props) == [*_row(), "url"]


def test_feature_url_handles_trailing_slash_and_missing_id():
    assert feature_url({"Page ID": "x1"}, url_base=BASE + "/", id_column="Page ID") == f"{BASE}/x1"
    assert feature_url({"Page ID": ""}, url_base=BASE, id_column="Page ID") is None
    assert feature_url({}, url_base=BASE, id_column="Page ID") is None


@pytest.mark.parametrize(
    "overrides",
    [{"lat": ""}, {"lon": "east"}, {"lat": "nan"}, {"lon": "inf"}],
)
def test_project_feature_rejects_unusable_coordinates(overrides):
    with pytest.raises(CoordinateError):
        project_feature(_row(**overrides), url_base=BASE, id_column="Page ID")


def test_project_feature_rejects_rows_without_coordinate_columns():
    row = _row()
    del row["lat"]
    with pytest.raises(CoordinateError):
        project_feature(row, url_base=BASE, id_column="Page ID")


def _rows():
    return [_row(**{"Page ID": "a"}), _row(**{"Page ID": "b", "lat": "", "lon": ""}), _row(**{"Page ID": "c"})]


def test_collection_skip_policy_drops_rows_and_keeps_order():
    collection, skipped = build_feature_collection(
        _rows(), url_base=BASE, id_column="Page ID", missing_coordinates="skip"
    )

    assert collection["type"] == "FeatureCollection"
    assert [f["properties"]["Page ID"] for f in collection["features"]] == ["a", "c"]
    assert skipped == [1]


def test_collection_fail_policy_raises_with_row_index():
    with pytest.raises(CoordinateError, match="Row 1"):
        build_feature_collection(_rows(), url_base=BASE, id_column="Page ID", missing_coordinates="fail")


def test_collection_null_policy_keeps_row_with_null_geometry():
    collection, skipped = build_feature_collection(
        _rows(), url_base=BASE, id_column="Page ID", missing_coordinates="null"
    )

    assert skipped == []
    assert len(collection["features"]) == 3
    middle = collection["features"][1]
    assert middle["geometry"] is None
    assert middle["properties"]["lat"] is None
    assert middle["properties"]["lon"] is None
    assert middle["properties"]["url"] == f"{BASE}/b"


def test_feature_count_matches_rows_when_all_enriched():
    rows = [_row(lat=str(i), lon=str(-i), **{"Page ID": f"p{i}"}) for i in range(5)]
    collection, _ = build_feature_collection(rows, url_base=BASE, id_column="Page ID")

    assert len(collection["features"]) == len(rows)
    for row, feature in zip(rows, collection["features"]):
        lon, lat = feature["geometry"]["coordinates"]
        assert math.isclose(lon, float(row["lon"])) and math.isclose(lat, float(row["lat"]))


def test_default_policy_keeps_one_feature_per_row():
    rows = _rows()

    collection, skipped = build_feature_collection(rows, url_base=BASE, id_column="Page ID")

    assert skipped == []
    assert len(collection["features"]) == len(rows)
    assert [f["properties"]["Page ID"] for f in collection["features"]] == ["a", "b", "c"]
    assert collection["features"][1]["geometry"] is None


def test_unknown_missing_coordinates_policy_rejected():
    with pytest.raises(ValueError):
        build_feature_collection([], url_base=BASE, id_column="Page ID", missing_coordinates="guess")
