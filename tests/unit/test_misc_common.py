import json
import logging

from geocsv.common.http import TokenBucket
from geocsv.common.ids import generate_run_id
from geocsv.common.logging import JsonLineFormatter, RunContextFilter
from geocsv.common.time_utils import elapsed_ms, monotonic_ms


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")
    assert generate_run_id("geocode").startswith("geocode-")


def test_elapsed_ms_is_non_negative():
    assert elapsed_ms(monotonic_ms()) >= 0


def test_json_line_formatter_has_stable_keys_and_run_id():
    record = logging.LogRecord("geocsv.test", logging.WARNING, __file__, 1, "row %s failed", (3,), None)
    record.event = "ROW_FAILED"
    record.row_index = 3
    RunContextFilter("run-x").filter(record)

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "row 3 failed"
    assert payload["run_id"] == "run-x"
    assert payload["event"] == "ROW_FAILED"
    assert payload["row_index"] == 3
    assert payload["error_code"] is None
    assert payload["level"] == "WARNING"


def test_token_bucket_allows_burst_up_to_capacity_without_sleeping(monkeypatch):
    sleeps = []
    monkeypatch.setattr("geocsv.common.http.time.sleep", sleeps.append)
    bucket = TokenBucket(rate_per_sec=5.0)

    for _ in range(5):
        bucket.acquire()

    assert sleeps == []
