"""Geoapify-style geocoding search client."""

from __future__ import annotations

import math
from types import TracebackType
from typing import Any, Protocol

from geocsv.common.errors import InvalidResponseError
from geocsv.common.http import HttpClient, TimeoutConfig
from geocsv.common.models import Candidate, GeoQuery

SEARCH_PATH = "/geocode/search"


class Geocoder(Protocol):
    def lookup(self, query: GeoQuery) -> list[Candidate]: ...


def _coordinate(value: Any, name: str, index: int) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidResponseError(f"features[{index}].properties.{name} is not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise InvalidResponseError(f"features[{index}].properties.{name} is not finite")
    return number


def _confidence(properties: dict) -> float | None:
    rank = properties.get("rank")
    if not isinstance(rank, dict):
        return None
    value = rank.get("confidence")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_candidates(payload: Any) -> list[Candidate]:
    """Turn a search response document into ranked candidates.

    An empty ``features`` list is a valid "no match" answer; anything that is
    not a feature collection with numeric ``properties.lat``/``properties.lon``
    raises ``InvalidResponseError``.
    """
    if not isinstance(payload, dict):
        raise InvalidResponseError("Geocoding response is not a JSON object")
    features = payload.get("features")
    if not isinstance(features, list):
        raise InvalidResponseError("Geocoding response has no features list")

    candidates: list[Candidate] = []
    for index, feature in enumerate(features):
        properties = feature.get("properties") if isinstance(feature, dict) else None
        if not isinstance(properties, dict):
            raise InvalidResponseError(f"features[{index}] has no properties")
        formatted = properties.get("formatted")
        candidates.append(
            Candidate(
                lat=_coordinate(properties.get("lat"), "lat", index),
                lon=_coordinate(properties.get("lon"), "lon", index),
                confidence=_confidence(properties),
                formatted=formatted if isinstance(formatted, str) else None,
                properties=properties,
            )
        )
    return candidates


class GeocodingClient:
    def __init__(
        self,
        api_base_url: str,
        api_key: str,
        *,
        http_client: HttpClient | None = None,
        timeout: TimeoutConfig | None = None,
        rate_per_sec: float | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self.search_url = api_base_url.rstrip("/") + SEARCH_PATH
        self.api_key = api_key
        self.owns_client = http_client is None
        self.http_client = http_client or HttpClient(timeout=timeout, rate_per_sec=rate_per_sec)

    def close(self) -> None:
        if self.owns_client:
            self.http_client.close()

    def __enter__(self) -> "GeocodingClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def lookup(self, query: GeoQuery) -> list[Candidate]:
        params = {"apiKey": self.api_key}
        params.update(query.to_params())
        payload = self.http_client.get_json(self.search_url, params=params)
        return parse_candidates(payload)
