"""Прямое геокодирование через Mapbox Geocoding v6."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from . import deps
from .mapbox import MapboxClient
from .models import Coordinate, GeocodingCandidate, GeocodingFeature, GeocodingResponse

logger = logging.getLogger(__name__)

FORWARD_PATH = "/search/geocode/v6/forward"


def significant_length(query: str) -> int:
    """Число непробельных символов в ``query``."""

    return sum(1 for ch in query if not ch.isspace())


def _first_non_empty(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def feature_to_candidate(feature: GeocodingFeature) -> GeocodingCandidate | None:
    """Преобразуем объект ответа; ``None``, если у него нет годной точки."""

    if feature.geometry is None or len(feature.geometry.coordinates) < 2:
        return None
    lon, lat = feature.geometry.coordinates[:2]
    try:
        coordinate = Coordinate(lon=lon, lat=lat)
    except ValidationError:
        return None

    props = feature.properties
    full_address = props.full_address if props else None
    title = _first_non_empty(
        full_address,
        feature.place_name,
        feature.place_formatted,
        props.name if props else None,
        feature.text,
    ) or f"{coordinate.lon:.5f}, {coordinate.lat:.5f}"
    address = _first_non_empty(full_address)
    if address == title:
        address = _first_non_empty(
            feature.place_formatted, props.place_formatted if props else None
        )
    if address == title:
        address = None
    return GeocodingCandidate(
        id=feature.id or f"{coordinate.lon},{coordinate.lat}",
        title=title,
        address=address,
        coordinate=coordinate,
    )


class GeocodingClient(MapboxClient):
    upstream = "geocoding"

    def __init__(
        self,
        settings: deps.Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings, transport=transport)
        self.limit = settings.geocoding_limit
        self.min_query_length = settings.geocoding_min_query_length

    async def forward(self, query: str) -> list[GeocodingCandidate]:
        """Кандидаты для ``query`` в порядке ранжирования Mapbox.

        Короткие запросы сразу дают пустой список. Без токена доступа
        поднимается :class:`ConfigurationError`.
        """

        text = query.strip()
        if significant_length(text) < self.min_query_length:
            return []
        response = await self._get(
            FORWARD_PATH,
            {"q": text, "autocomplete": "true", "limit": str(self.limit)},
            GeocodingResponse,
        )
        candidates: list[GeocodingCandidate] = []
        for raw in response.features:
            try:
                feature = GeocodingFeature.model_validate(raw)
            except ValidationError:
                logger.debug("Skipping malformed geocoding feature")
                continue
            candidate = feature_to_candidate(feature)
            if candidate is not None:
                candidates.append(candidate)
        logger.debug("Geocoding %r returned %d candidates", text, len(candidates))
        return candidates[: self.limit]
