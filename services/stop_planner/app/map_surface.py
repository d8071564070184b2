"""Map rendering capability used by the planner.

The planner core never talks to a map library. It drives a
:class:`MapSurface`; :class:`GeoJSONMapSurface` keeps the layers as GeoJSON
so an API client can draw them with whatever map SDK it has.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from .models import Coordinate, LonLat, Stop

STOP_ZOOM = 14.0


class MapSurface(Protocol):
    def render_route(self, coordinates: Optional[Sequence[LonLat]]) -> None: ...

    def render_stops(self, stops: Sequence[Stop], *, ordered: bool) -> None: ...

    def render_location(self, coordinate: Optional[Coordinate]) -> None: ...

    def fit_bounds(self, coordinates: Sequence[LonLat]) -> None: ...

    def center_on(self, coordinate: Coordinate, zoom: Optional[float] = None) -> None: ...


def _point(coordinate: Coordinate, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [coordinate.lon, coordinate.lat]},
        "properties": properties,
    }


def _collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


def bounding_box(coordinates: Sequence[LonLat]) -> tuple[float, float, float, float]:
    """``(min_lon, min_lat, max_lon, max_lat)`` of a non-empty sequence."""

    lons = [lon for lon, _ in coordinates]
    lats = [lat for _, lat in coordinates]
    return (min(lons), min(lats), max(lons), max(lats))


class GeoJSONMapSurface:
    def __init__(self) -> None:
        self._stops = _collection([])
        self._route: dict[str, Any] | None = None
        self._location: dict[str, Any] | None = None
        self.center: Coordinate | None = None
        self.zoom: float | None = None
        self.bounds: tuple[float, float, float, float] | None = None

    def render_route(self, coordinates: Optional[Sequence[LonLat]]) -> None:
        if not coordinates:
            self._route = None
            return
        self._route = {
            "type": "Feature",
            "properties": {},
            "geometry": {
                "type": "LineString",
                "coordinates": [[lon, lat] for lon, lat in coordinates],
            },
        }

    def render_stops(self, stops: Sequence[Stop], *, ordered: bool) -> None:
        features = []
        for position, stop in enumerate(stops, start=1):
            properties: dict[str, Any] = {
                "id": stop.id,
                "title": stop.title,
                "address": stop.address,
            }
            if ordered:
                properties["position"] = position
            features.append(_point(stop.coordinate, properties))
        self._stops = _collection(features)

    def render_location(self, coordinate: Optional[Coordinate]) -> None:
        if coordinate is None:
            self._location = None
            return
        self._location = _collection(
            [_point(coordinate, {"title": "Current location"})]
        )

    def fit_bounds(self, coordinates: Sequence[LonLat]) -> None:
        if not coordinates:
            return
        self.bounds = bounding_box(coordinates)
        self.center = None
        self.zoom = None

    def center_on(self, coordinate: Coordinate, zoom: Optional[float] = None) -> None:
        self.center = coordinate
        self.zoom = zoom
        self.bounds = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "stops": self._stops,
            "route": self._route,
            "location": self._location,
            "camera": {
                "center": self.center.as_pair() if self.center else None,
                "zoom": self.zoom,
                "bounds": self.bounds,
            },
        }
