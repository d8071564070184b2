"""Клиент Mapbox Optimized Trips v1."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

import httpx

from . import deps
from .errors import (
    EmptyRouteError,
    InsufficientStopsError,
    OptimizationRejectedError,
    TooManyStopsError,
)
from .mapbox import MapboxClient
from .models import Coordinate, TripResponse

logger = logging.getLogger(__name__)

# Маршрут из точки в точку: первая координата остаётся началом, последняя
# концом, переставляются только промежуточные остановки.
TRIP_PARAMS = {
    "geometries": "geojson",
    "overview": "full",
    "source": "first",
    "destination": "last",
    "roundtrip": "false",
}

SUCCESS_CODE = "Ok"


def _plain(value: float) -> str:
    # Только обычная запись: "1e-05" Mapbox в пути не разберёт.
    return format(Decimal(repr(value)), "f")


def encode_coordinates(coordinates: Sequence[Coordinate]) -> str:
    """Сегмент пути вида ``lon,lat;lon,lat``."""

    return ";".join(f"{_plain(c.lon)},{_plain(c.lat)}" for c in coordinates)


class TripOptimizationClient(MapboxClient):
    """Запрашивает у Mapbox оптимальный порядок обхода координат.

    Состав координат определяет вызывающий код; текущее местоположение,
    если участвует, уже стоит на нулевой позиции.
    """

    upstream = "optimization"

    def __init__(
        self,
        settings: deps.Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(settings, transport=transport)
        self._profile = settings.optimization_profile.strip("/")
        self.max_coordinates = settings.optimization_max_coordinates

    async def optimize(self, coordinates: Sequence[Coordinate]) -> TripResponse:
        """Возвращает проверенный ответ для ``coordinates``.

        Меньше двух координат, больше :attr:`max_coordinates` или отсутствие
        токена дают исключение ещё до запроса.
        """

        if len(coordinates) < 2:
            raise InsufficientStopsError()
        if len(coordinates) > self.max_coordinates:
            raise TooManyStopsError(self.max_coordinates)
        self._require_token()

        path = f"/optimized-trips/v1/{self._profile}/{encode_coordinates(coordinates)}"
        logger.info("Requesting optimized trip for %d coordinates", len(coordinates))
        response = await self._get(path, TRIP_PARAMS, TripResponse)

        if response.code is not None and response.code != SUCCESS_CODE:
            logger.warning(
                "Optimization rejected with code %s: %s", response.code, response.message
            )
            raise OptimizationRejectedError(response.message)
        trip = response.trips[0] if response.trips else None
        if trip is None or trip.geometry is None or len(trip.geometry.points()) < 2:
            raise EmptyRouteError()
        return response
