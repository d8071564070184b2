"""Domain model of the planner and the shapes of the Mapbox payloads."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

LonLat = tuple[float, float]


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lon: float = Field(ge=-180.0, le=180.0)
    lat: float = Field(ge=-90.0, le=90.0)

    def as_pair(self) -> LonLat:
        return (self.lon, self.lat)


def _new_id() -> str:
    return str(uuid4())


class Stop(BaseModel):
    """A waypoint chosen by the user."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    title: str
    address: Optional[str] = None
    coordinate: Coordinate


class GeocodingCandidate(BaseModel):
    """One ranked search result, turned into a :class:`Stop` on selection."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    address: Optional[str] = None
    coordinate: Coordinate

    def to_stop(self) -> Stop:
        # The same place may be added twice, so stops get their own ids.
        return Stop(title=self.title, address=self.address, coordinate=self.coordinate)


class OptimizationOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    include_current_location: bool = False


@dataclass(frozen=True)
class RouteArtifact:
    """Geometry and summary of the last successful optimization."""

    coordinates: tuple[LonLat, ...]
    distance_m: Optional[float]
    duration_s: Optional[float]


# Mapbox Optimized Trips v1 response


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class TripGeometry(_Payload):
    # Checked point by point in points(); a broken line is an empty route.
    coordinates: Optional[list[Any]] = None

    def points(self) -> list[LonLat]:
        """The line as ``(lon, lat)`` pairs, or ``[]`` if any point is unusable."""

        points: list[LonLat] = []
        for point in self.coordinates or []:
            if not isinstance(point, (list, tuple)) or len(point) < 2:
                return []
            lon, lat = point[0], point[1]
            if not (_is_number(lon) and _is_number(lat)):
                return []
            points.append((float(lon), float(lat)))
        return points


class Trip(_Payload):
    distance: Optional[float] = None
    duration: Optional[float] = None
    geometry: Optional[TripGeometry] = None


class Waypoint(_Payload):
    # Left unchecked here; reconciliation decides what a usable index is.
    waypoint_index: Any = None

    def position(self) -> Optional[float]:
        index = self.waypoint_index
        return float(index) if _is_number(index) else None


class TripResponse(_Payload):
    code: Optional[str] = None
    message: Optional[str] = None
    trips: list[Trip] = Field(default_factory=list)
    waypoints: list[Optional[Waypoint]] = Field(default_factory=list)

    @field_validator("waypoints", mode="before")
    @classmethod
    def _keep_unreadable_waypoints(cls, value: Any) -> list[Any]:
        # Bad waypoints only cost the reordering, never the route itself.
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, (dict, Waypoint)) else None for item in value]


# Mapbox Geocoding v6 forward response


class FeatureGeometry(_Payload):
    coordinates: list[float] = Field(default_factory=list)


class FeatureProperties(_Payload):
    name: Optional[str] = None
    full_address: Optional[str] = None
    place_formatted: Optional[str] = None


class GeocodingFeature(_Payload):
    id: Optional[str] = None
    geometry: Optional[FeatureGeometry] = None
    text: Optional[str] = None
    place_name: Optional[str] = None
    place_formatted: Optional[str] = None
    properties: Optional[FeatureProperties] = None


class GeocodingResponse(_Payload):
    features: list[dict] = Field(default_factory=list)
