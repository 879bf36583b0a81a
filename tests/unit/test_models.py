import pytest

from geocsv.common.models import EnrichmentResult, GeoQuery, RowFailure


def test_structured_query_omits_empty_fields():
    query = GeoQuery(country="France", state="Brittany", city="")
    assert query.is_structured is True
    assert query.to_params() == {"country": "France", "state": "Brittany"}


def test_text_query_params():
    query = GeoQuery(text="Cambridge, Cambridgeshire, UK/England")
    assert query.is_structured is False
    assert query.to_params() == {"text": "Cambridge, Cambridgeshire, UK/England"}


def test_query_rejects_mixed_or_empty_forms():
    with pytest.raises(ValueError):
        GeoQuery(text="Paris", country="France")
    with pytest.raises(ValueError):
        GeoQuery()


def test_enrichment_result_counts():
    result = EnrichmentResult(rows=[{}, {}, {}], rows_in=3, enriched=1, skipped=1)
    result.failures.append(RowFailure(2, "NO_MATCH", "none"))

    assert result.has_failures is True
    assert result.counts() == {"rows_in": 3, "rows_out": 3, "enriched": 1, "skipped": 1, "failed": 1}
    assert result.failures[0].to_dict() == {"row_index": 2, "error_code": "NO_MATCH", "message": "none"}
