from typing import Any, Callable

import httpx
import pytest

from services.stop_planner.app import deps
from services.stop_planner.app.errors import (
    ConfigurationError,
    EmptyRouteError,
    InsufficientStopsError,
    NetworkError,
    OptimizationRejectedError,
    ServiceError,
    TooManyStopsError,
)
from services.stop_planner.app.geocoding import GeocodingClient, feature_to_candidate
from services.stop_planner.app.models import Coordinate, GeocodingFeature
from services.stop_planner.app.optimization import TripOptimizationClient, encode_coordinates


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


class Recorder:
    """MockTransport handler that remembers the requests it served."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def _settings(**overrides: Any) -> deps.Settings:
    values: dict[str, Any] = {
        "mapbox_access_token": "pk.test",
        "mapbox_base_url": "https://mapbox.test",
    }
    values.update(overrides)
    return deps.Settings(**values)


def _trip_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "code": "Ok",
        "trips": [
            {
                "distance": 5000,
                "duration": 600,
                "geometry": {"type": "LineString", "coordinates": [[10, 10], [20, 20]]},
            }
        ],
        "waypoints": [{"waypoint_index": 1}, {"waypoint_index": 0}],
    }
    body.update(overrides)
    return body


POINTS = [Coordinate(lon=10.0, lat=10.0), Coordinate(lon=20.0, lat=20.0)]


def _optimizer(
    respond: Callable[[httpx.Request], httpx.Response], **overrides: Any
) -> tuple[TripOptimizationClient, Recorder]:
    recorder = Recorder(respond)
    client = TripOptimizationClient(
        _settings(**overrides), transport=httpx.MockTransport(recorder)
    )
    return client, recorder


@pytest.mark.anyio
async def test_optimize_builds_point_to_point_request(anyio_backend: str) -> None:
    client, recorder = _optimizer(lambda r: httpx.Response(200, json=_trip_body()))

    response = await client.optimize(POINTS)

    assert [w.waypoint_index for w in response.waypoints] == [1, 0]
    assert response.trips[0].distance == 5000
    request = recorder.requests[0]
    assert request.url.host == "mapbox.test"
    assert request.url.path == "/optimized-trips/v1/mapbox/driving/10.0,10.0;20.0,20.0"
    params = dict(request.url.params)
    assert params == {
        "geometries": "geojson",
        "overview": "full",
        "source": "first",
        "destination": "last",
        "roundtrip": "false",
        "access_token": "pk.test",
    }


@pytest.mark.anyio
async def test_optimize_refuses_without_dispatch(anyio_backend: str) -> None:
    client, recorder = _optimizer(lambda r: httpx.Response(200, json=_trip_body()))
    with pytest.raises(InsufficientStopsError):
        await client.optimize(POINTS[:1])
    with pytest.raises(TooManyStopsError):
        await client.optimize([Coordinate(lon=i, lat=i) for i in range(13)])

    unconfigured, other = _optimizer(
        lambda r: httpx.Response(200, json=_trip_body()), mapbox_access_token=None
    )
    assert unconfigured.is_configured is False
    with pytest.raises(ConfigurationError):
        await unconfigured.optimize(POINTS)

    assert recorder.requests == []
    assert other.requests == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "fragment"),
    [
        (401, "invalid or missing"),
        (403, "scopes"),
        (500, "status 500: boom"),
    ],
)
async def test_http_failures_become_service_errors(
    anyio_backend: str, status: int, fragment: str
) -> None:
    client, _ = _optimizer(lambda r: httpx.Response(status, json={"message": "boom"}))

    with pytest.raises(ServiceError) as excinfo:
        await client.optimize(POINTS)

    assert excinfo.value.status == status
    assert excinfo.value.detail == "boom"
    assert fragment in excinfo.value.message


@pytest.mark.anyio
async def test_transport_failure_is_network_error(anyio_backend: str) -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _optimizer(fail)
    with pytest.raises(NetworkError):
        await client.optimize(POINTS)


@pytest.mark.anyio
async def test_undecodable_body_is_network_error(anyio_backend: str) -> None:
    client, _ = _optimizer(
        lambda r: httpx.Response(
            200, headers={"Content-Encoding": "gzip"}, content=b"notgzip"
        )
    )
    with pytest.raises(NetworkError):
        await client.optimize(POINTS)


def test_coordinates_are_encoded_without_exponents() -> None:
    points = [Coordinate(lon=0.00001, lat=1e-7), Coordinate(lon=-73.5, lat=45.0)]
    assert encode_coordinates(points) == "0.00001,0.0000001;-73.5,45.0"


@pytest.mark.anyio
async def test_unreadable_waypoints_do_not_fail_the_request(anyio_backend: str) -> None:
    body = _trip_body(waypoints=None)
    client, _ = _optimizer(lambda r: httpx.Response(200, json=body))

    response = await client.optimize(POINTS)

    assert response.waypoints == []
    assert len(response.trips[0].geometry.points()) == 2


@pytest.mark.anyio
async def test_rejected_code_carries_service_message(anyio_backend: str) -> None:
    body = {"code": "NoTrips", "message": "No trip found"}
    client, _ = _optimizer(lambda r: httpx.Response(200, json=body))

    with pytest.raises(OptimizationRejectedError) as excinfo:
        await client.optimize(POINTS)
    assert excinfo.value.message == "No trip found"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "trips",
    [
        [],
        [{"distance": 1, "duration": 1}],
        [{"geometry": {"coordinates": [[10, 10]]}}],
        [{"geometry": {"coordinates": None}}],
    ],
)
async def test_missing_geometry_is_empty_route(
    anyio_backend: str, trips: list[dict[str, Any]]
) -> None:
    client, _ = _optimizer(lambda r: httpx.Response(200, json=_trip_body(trips=trips)))
    with pytest.raises(EmptyRouteError):
        await client.optimize(POINTS)


@pytest.mark.anyio
async def test_unreadable_body_is_service_error(anyio_backend: str) -> None:
    client, _ = _optimizer(lambda r: httpx.Response(200, text="<html>"))
    with pytest.raises(ServiceError):
        await client.optimize(POINTS)


def _feature(**fields: Any) -> GeocodingFeature:
    data: dict[str, Any] = {"id": "f1", "geometry": {"coordinates": [13.4, 52.5]}}
    data.update(fields)
    return GeocodingFeature.model_validate(data)


@pytest.mark.parametrize(
    ("fields", "title"),
    [
        (
            {
                "properties": {"full_address": "Unter den Linden 1, Berlin", "name": "X"},
                "place_name": "P",
            },
            "Unter den Linden 1, Berlin",
        ),
        ({"place_name": "Brandenburger Tor, Berlin", "text": "T"}, "Brandenburger Tor, Berlin"),
        ({"place_formatted": "Berlin, Germany", "text": "T"}, "Berlin, Germany"),
        ({"properties": {"name": "Museum", "full_address": " "}, "text": "T"}, "Museum"),
        ({"text": "Alexanderplatz"}, "Alexanderplatz"),
        ({}, "13.40000, 52.50000"),
    ],
)
def test_candidate_title_precedence(fields: dict[str, Any], title: str) -> None:
    candidate = feature_to_candidate(_feature(**fields))
    assert candidate is not None
    assert candidate.title == title
    assert candidate.coordinate == Coordinate(lon=13.4, lat=52.5)


def test_candidate_keeps_full_address_as_subtitle() -> None:
    candidate = feature_to_candidate(
        _feature(properties={"name": "Museum", "full_address": "Museum, Berlin"})
    )
    assert candidate is not None
    assert candidate.title == "Museum, Berlin"
    assert candidate.address is None

    candidate = feature_to_candidate(
        _feature(place_name="Museum", properties={"full_address": "Street 1, Berlin"})
    )
    assert candidate is not None
    assert candidate.title == "Street 1, Berlin"


def test_features_without_valid_point_are_skipped() -> None:
    assert feature_to_candidate(_feature(geometry=None)) is None
    assert feature_to_candidate(_feature(geometry={"coordinates": [1.0]})) is None
    assert feature_to_candidate(_feature(geometry={"coordinates": [200.0, 0.0]})) is None


def _geocoder(
    respond: Callable[[httpx.Request], httpx.Response], **overrides: Any
) -> tuple[GeocodingClient, Recorder]:
    recorder = Recorder(respond)
    client = GeocodingClient(_settings(**overrides), transport=httpx.MockTransport(recorder))
    return client, recorder


@pytest.mark.anyio
async def test_forward_geocoding_request_and_ranking(anyio_backend: str) -> None:
    body = {
        "features": [
            {"id": "a", "geometry": {"coordinates": [13.4, 52.5]}, "text": "First"},
            {"id": "broken", "geometry": {"coordinates": "nope"}},
            {"id": "b", "geometry": {"coordinates": [13.5, 52.6]}, "text": "Second"},
        ]
    }
    client, recorder = _geocoder(lambda r: httpx.Response(200, json=body))

    candidates = await client.forward("  Berlin Mitte ")

    assert [c.id for c in candidates] == ["a", "b"]
    request = recorder.requests[0]
    assert request.url.path == "/search/geocode/v6/forward"
    assert dict(request.url.params) == {
        "q": "Berlin Mitte",
        "autocomplete": "true",
        "limit": "6",
        "access_token": "pk.test",
    }


@pytest.mark.anyio
@pytest.mark.parametrize("query", ["", "ab", " a  b ", "\tx\n"])
async def test_short_queries_skip_the_network(anyio_backend: str, query: str) -> None:
    client, recorder = _geocoder(lambda r: httpx.Response(200, json={"features": []}))
    assert await client.forward(query) == []
    assert recorder.requests == []


@pytest.mark.anyio
async def test_geocoding_without_token_is_configuration_error(anyio_backend: str) -> None:
    client, recorder = _geocoder(
        lambda r: httpx.Response(200, json={"features": []}), mapbox_access_token=None
    )
    with pytest.raises(ConfigurationError):
        await client.forward("Berlin")
    assert recorder.requests == []
