from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

import httpx

from src.common.settings import Settings as CommonSettings

if TYPE_CHECKING:
    from .geocoding import GeocodingClient
    from .optimization import TripOptimizationClient
    from .planner import Planner


class Settings(CommonSettings):
    mapbox_access_token: str | None = None
    mapbox_base_url: str = "https://api.mapbox.com"
    mapbox_timeout: float = 10.0
    optimization_profile: str = "mapbox/driving"
    # Optimized Trips v1 accepts at most 12 coordinates per request.
    optimization_max_coordinates: int = 12
    geocoding_limit: int = 6
    geocoding_min_query_length: int = 3
    geocoding_debounce_seconds: float = 0.3


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outgoing Mapbox calls; ``None`` means the real network."""

    return None


def get_optimization_client() -> TripOptimizationClient:
    from .optimization import TripOptimizationClient

    return TripOptimizationClient(get_settings(), transport=get_transport())


def get_geocoding_client() -> GeocodingClient:
    from .geocoding import GeocodingClient

    return GeocodingClient(get_settings(), transport=get_transport())


def create_planner() -> Planner:
    """Build a planner session wired to the configured Mapbox clients."""

    from .planner import Planner

    settings = get_settings()
    return Planner(
        optimizer=get_optimization_client(),
        geocoder=get_geocoding_client(),
        debounce_seconds=settings.geocoding_debounce_seconds,
    )
