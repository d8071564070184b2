"""Error taxonomy of the stop planner.

Every error carries a stable ``code`` (used by the API and metrics) and a
short human readable ``message`` that can be shown to the user as is.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all planner failures."""

    code = "planner_error"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(PlannerError):
    code = "configuration"
    default_message = "Mapbox access token is not configured"


class NetworkError(PlannerError):
    code = "network"
    default_message = "Could not reach the routing service. Check the connection and try again"


class ServiceError(PlannerError):
    """Upstream answered with a non-2xx status."""

    code = "service"

    def __init__(self, status: int, detail: str | None = None) -> None:
        self.status = status
        self.detail = detail
        if status == 401:
            message = "Mapbox rejected the access token: it is invalid or missing"
        elif status == 403:
            message = "The Mapbox access token is not allowed to use this API (check its scopes)"
        elif detail:
            message = f"Routing service failed with status {status}: {detail}"
        else:
            message = f"Routing service failed with status {status}"
        super().__init__(message)


class OptimizationRejectedError(PlannerError):
    code = "rejected"
    default_message = "The routing service could not optimize these stops"


class EmptyRouteError(PlannerError):
    code = "empty_route"
    default_message = "No route was found between these stops"


class InsufficientStopsError(PlannerError):
    code = "insufficient_stops"
    default_message = "Add at least two stops to optimize a route"


class LocationUnavailableError(PlannerError):
    code = "location_unavailable"
    default_message = "Current location is not available yet"


class TooManyStopsError(PlannerError):
    code = "too_many_stops"

    def __init__(self, max_stops: int) -> None:
        self.max_stops = max_stops
        super().__init__(f"A route can include at most {max_stops} stops")


class MalformedResponseError(PlannerError):
    """Waypoints could not be mapped back onto the stops.

    Not fatal: the route geometry is still shown, only the order is kept.
    """

    code = "malformed_response"
    default_message = "Stops could not be reordered; showing them in the original order"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__()


class OptimizationInProgressError(PlannerError):
    code = "in_progress"
    default_message = "A route is already being optimized"


class StaleRouteError(PlannerError):
    code = "stale_route"
    default_message = "Stops changed while the route was being optimized. Optimize again"


class DuplicateStopError(PlannerError):
    code = "duplicate_stop"

    def __init__(self, stop_id: str) -> None:
        self.stop_id = stop_id
        super().__init__(f"Stop {stop_id} is already in the list")
