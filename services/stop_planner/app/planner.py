"""One user's planning session."""

from __future__ import annotations

import logging

from .map_surface import STOP_ZOOM, GeoJSONMapSurface, MapSurface
from .models import Coordinate, GeocodingCandidate, OptimizationOptions, Stop
from .reconciliation import OptimizationOutcome, RouteReconciliationEngine, TripOptimizer
from .search import Geocoder, SearchResult, SearchSession
from .stops import StopListManager

logger = logging.getLogger(__name__)


class Planner:
    """Wires the stop list, the optimization engine, search and the map."""

    def __init__(
        self,
        optimizer: TripOptimizer,
        geocoder: Geocoder,
        debounce_seconds: float = 0.3,
        surface: MapSurface | None = None,
    ) -> None:
        self.stops = StopListManager()
        # Subscribed before the planner so the map sees an invalidated route.
        self.engine = RouteReconciliationEngine(self.stops, optimizer)
        self.search_session = SearchSession(geocoder, debounce_seconds)
        self.surface: MapSurface = surface or GeoJSONMapSurface()
        self.current_location: Coordinate | None = None
        self.stops.subscribe(self._render)

    def add_stop(self, stop: Stop) -> Stop:
        self.stops.append(stop)
        self.surface.center_on(stop.coordinate, STOP_ZOOM)
        return stop

    def add_candidate(self, candidate: GeocodingCandidate) -> Stop:
        return self.add_stop(candidate.to_stop())

    def remove_stop(self, stop_id: str) -> bool:
        return self.stops.remove(stop_id)

    def clear(self) -> None:
        self.stops.clear()

    def set_options(self, options: OptimizationOptions) -> None:
        self.engine.set_options(options)
        self._render()

    def set_current_location(self, coordinate: Coordinate | None) -> None:
        """Record the device fix, or ``None`` when permission was denied."""

        if coordinate == self.current_location:
            return
        first_fix = self.current_location is None
        self.current_location = coordinate
        if self.engine.options.include_current_location:
            # The origin of the route moved.
            self.engine.invalidate()
        self.surface.render_location(coordinate)
        if coordinate is not None and first_fix and not len(self.stops):
            self.surface.center_on(coordinate, STOP_ZOOM)
        self._render()

    async def search(self, query: str) -> SearchResult:
        return await self.search_session.search(query)

    async def optimize(self) -> OptimizationOutcome:
        try:
            outcome = await self.engine.optimize(self.current_location)
        finally:
            self._render()
        self.surface.fit_bounds(outcome.artifact.coordinates)
        return outcome

    def close(self) -> None:
        self.search_session.close()

    def _render(self) -> None:
        artifact = self.engine.artifact
        ordered = artifact is not None and self.engine.warning is None
        self.surface.render_stops(self.stops.stops, ordered=ordered)
        self.surface.render_route(artifact.coordinates if artifact else None)
