"""Route optimization: request building and merging the answer back.

The engine snapshots the stop list, asks the optimizer for a trip and, when
the answer arrives, reorders the live list to the visiting order Mapbox
picked. Mapbox reports waypoints in *input* order, each with the position
(``waypoint_index``) it takes in the trip. When the current location is
sent as the origin it occupies waypoint 0, so stop ``i`` is described by
waypoint ``i + waypoint_offset``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
from dataclasses import dataclass
from operator import itemgetter
from typing import Optional, Protocol, Sequence

from src.common.metrics import OPTIMIZATION_ATTEMPTS

from .errors import (
    ConfigurationError,
    EmptyRouteError,
    InsufficientStopsError,
    LocationUnavailableError,
    MalformedResponseError,
    OptimizationInProgressError,
    PlannerError,
    StaleRouteError,
    TooManyStopsError,
)
from .formatting import format_distance, format_duration
from .mapbox import SERVICE_NAME
from .models import (
    Coordinate,
    OptimizationOptions,
    RouteArtifact,
    Stop,
    TripResponse,
    Waypoint,
)
from .stops import StopListManager

logger = logging.getLogger(__name__)


class TripOptimizer(Protocol):
    max_coordinates: int

    @property
    def is_configured(self) -> bool: ...

    async def optimize(self, coordinates: Sequence[Coordinate]) -> TripResponse: ...


class OptimizationStatus(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OptimizationOutcome:
    artifact: RouteArtifact
    reordered: bool
    warning: MalformedResponseError | None = None


def waypoint_offset(options: OptimizationOptions) -> int:
    """Waypoints that precede the first stop in the request."""

    return 1 if options.include_current_location else 0


def reconcile_order(
    snapshot: Sequence[Stop],
    waypoints: Sequence[Optional[Waypoint]],
    offset: int,
) -> list[Stop]:
    """Return ``snapshot`` sorted by the trip position Mapbox assigned.

    Raises :class:`MalformedResponseError` when the waypoints cannot be
    mapped back onto the stops. Equal indexes keep their input order.
    """

    expected = len(snapshot) + offset
    if len(waypoints) < expected:
        raise MalformedResponseError(
            f"expected at least {expected} waypoints, got {len(waypoints)}"
        )
    keyed: list[tuple[float, Stop]] = []
    for i, stop in enumerate(snapshot):
        waypoint = waypoints[i + offset]
        index = waypoint.position() if waypoint is not None else None
        if index is None:
            raise MalformedResponseError(
                f"waypoint {i + offset} has no usable waypoint_index"
            )
        keyed.append((index, stop))
    keyed.sort(key=itemgetter(0))
    return [stop for _, stop in keyed]


def _measure(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value) or value < 0:
        return None
    return value


def build_artifact(response: TripResponse) -> RouteArtifact:
    """Take geometry and summary from the first trip.

    A distance or duration that is negative or not finite is treated as
    missing.
    """

    trip = response.trips[0] if response.trips else None
    points = trip.geometry.points() if trip and trip.geometry else []
    if len(points) < 2:
        raise EmptyRouteError()
    return RouteArtifact(
        coordinates=tuple(points),
        distance_m=_measure(trip.distance),
        duration_s=_measure(trip.duration),
    )


class RouteReconciliationEngine:
    """Runs one optimization at a time against a snapshot of the stops."""

    def __init__(
        self,
        stops: StopListManager,
        optimizer: TripOptimizer,
        options: OptimizationOptions | None = None,
    ) -> None:
        self._stops = stops
        self._optimizer = optimizer
        self._options = options or OptimizationOptions()
        self._generation = 0
        self.status = OptimizationStatus.IDLE
        self.artifact: RouteArtifact | None = None
        self.error: PlannerError | None = None
        self.warning: MalformedResponseError | None = None
        stops.subscribe(self.invalidate)

    @property
    def options(self) -> OptimizationOptions:
        return self._options

    @property
    def duration_text(self) -> str:
        return format_duration(self.artifact.duration_s if self.artifact else None)

    @property
    def distance_text(self) -> str:
        return format_distance(self.artifact.distance_m if self.artifact else None)

    def set_options(self, options: OptimizationOptions) -> None:
        if options == self._options:
            return
        self._options = options
        self.invalidate()

    def invalidate(self) -> None:
        """Drop the route and any error; the inputs it was built from changed."""

        self._generation += 1
        self.artifact = None
        self.error = None
        self.warning = None
        if self.status is not OptimizationStatus.REQUESTING:
            self.status = OptimizationStatus.IDLE

    def max_stops(self, options: OptimizationOptions | None = None) -> int:
        return self._optimizer.max_coordinates - waypoint_offset(options or self._options)

    def check_preconditions(self, current_location: Coordinate | None) -> None:
        options = self._options
        if len(self._stops) < 2:
            raise InsufficientStopsError()
        if options.include_current_location and current_location is None:
            raise LocationUnavailableError()
        max_stops = self.max_stops(options)
        if len(self._stops) > max_stops:
            raise TooManyStopsError(max_stops)
        if not self._optimizer.is_configured:
            raise ConfigurationError()

    async def optimize(
        self, current_location: Coordinate | None = None
    ) -> OptimizationOutcome:
        if self.status is OptimizationStatus.REQUESTING:
            raise OptimizationInProgressError()
        try:
            self.check_preconditions(current_location)
        except PlannerError as exc:
            self._fail(exc)
            raise

        options = self._options
        offset = waypoint_offset(options)
        snapshot = self._stops.stops
        coordinates = [stop.coordinate for stop in snapshot]
        # check_preconditions guarantees a location whenever offset is 1.
        if offset and current_location is not None:
            coordinates.insert(0, current_location)

        self.invalidate()
        generation = self._generation
        self.status = OptimizationStatus.REQUESTING
        logger.info(
            "Optimizing %d stops (waypoint offset %d)", len(snapshot), offset
        )
        try:
            response = await self._optimizer.optimize(coordinates)
            return self._apply(response, snapshot, offset, generation)
        except PlannerError as exc:
            if self.status is OptimizationStatus.REQUESTING:
                self._fail(exc)
            raise
        except asyncio.CancelledError:
            self.status = OptimizationStatus.IDLE
            raise
        except Exception:
            logger.exception("Optimization attempt failed unexpectedly")
            self.artifact = None
            self.status = OptimizationStatus.IDLE
            OPTIMIZATION_ATTEMPTS.labels(SERVICE_NAME, "unexpected").inc()
            raise

    def _apply(
        self,
        response: TripResponse,
        snapshot: Sequence[Stop],
        offset: int,
        generation: int,
    ) -> OptimizationOutcome:
        if generation != self._generation:
            # Stops, options or the origin changed while the call was in flight.
            error = StaleRouteError()
            self._fail(error)
            raise error
        try:
            artifact = build_artifact(response)
        except EmptyRouteError as exc:
            self._fail(exc)
            raise

        warning: MalformedResponseError | None = None
        try:
            order = reconcile_order(snapshot, response.waypoints, offset)
        except MalformedResponseError as exc:
            logger.warning("Keeping stop order: %s", exc.reason)
            warning = exc
        else:
            self._stops.reorder(order)

        self.artifact = artifact
        self.warning = warning
        self.status = OptimizationStatus.SUCCEEDED
        OPTIMIZATION_ATTEMPTS.labels(
            SERVICE_NAME, "succeeded" if warning is None else "unordered"
        ).inc()
        logger.info(
            "Route ready: %s km, %s",
            format_distance(artifact.distance_m),
            format_duration(artifact.duration_s),
        )
        return OptimizationOutcome(
            artifact=artifact, reordered=warning is None, warning=warning
        )

    def _fail(self, error: PlannerError) -> None:
        self.artifact = None
        self.warning = None
        self.error = error
        self.status = OptimizationStatus.FAILED
        OPTIMIZATION_ATTEMPTS.labels(SERVICE_NAME, error.code).inc()
        logger.info("Optimization failed: %s", error.message)
