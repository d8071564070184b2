import asyncio

import pytest

from services.stop_planner.app.errors import ConfigurationError, NetworkError
from services.stop_planner.app.models import Coordinate, GeocodingCandidate
from services.stop_planner.app.search import SearchSession


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


def _candidate(query: str) -> GeocodingCandidate:
    return GeocodingCandidate(
        id=f"id-{query}", title=query.title(), coordinate=Coordinate(lon=13.4, lat=52.5)
    )


class GatedGeocoder:
    """Answers each query only once its gate is opened."""

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}
        self.errors: dict[str, Exception] = {}
        self.started: list[str] = []

    def gate(self, query: str) -> asyncio.Event:
        return self.gates.setdefault(query, asyncio.Event())

    async def forward(self, query: str) -> list[GeocodingCandidate]:
        self.started.append(query)
        await self.gate(query).wait()
        if query in self.errors:
            raise self.errors[query]
        return [_candidate(query)]


@pytest.mark.anyio
async def test_latest_query_wins(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    session = SearchSession(geocoder, debounce_seconds=0)

    first = asyncio.create_task(session.search("berlin"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    second = asyncio.create_task(session.search("berlin mitte"))
    await asyncio.sleep(0)
    geocoder.gate("berlin").set()
    geocoder.gate("berlin mitte").set()

    old, new = await asyncio.gather(first, second)

    assert old.stale is True
    assert old.candidates == ()
    assert new.stale is False
    assert [c.id for c in new.candidates] == ["id-berlin mitte"]
    assert session.latest is new


@pytest.mark.anyio
async def test_superseded_failure_does_not_touch_results(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    geocoder.errors["broken"] = NetworkError()
    session = SearchSession(geocoder, debounce_seconds=0)
    geocoder.gate("good").set()

    result = await session.search("good")
    assert session.latest is result

    pending = asyncio.create_task(session.search("broken"))
    await asyncio.sleep(0)
    newer = asyncio.create_task(session.search("good"))
    geocoder.gate("broken").set()

    stale, fresh = await asyncio.gather(pending, newer)
    assert stale.stale is True
    assert stale.error is None
    assert fresh.error is None
    assert session.latest is fresh


@pytest.mark.anyio
async def test_missing_token_gives_empty_results_and_error(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    geocoder.errors["berlin"] = ConfigurationError()
    geocoder.gate("berlin").set()
    session = SearchSession(geocoder, debounce_seconds=0)

    result = await session.search("berlin")

    assert result.candidates == ()
    assert isinstance(result.error, ConfigurationError)
    assert session.latest is result


@pytest.mark.anyio
async def test_debounce_cancels_before_any_lookup(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    geocoder.gate("berlin mitte").set()
    session = SearchSession(geocoder, debounce_seconds=0.05)

    first = asyncio.create_task(session.search("berl"))
    await asyncio.sleep(0)
    result = await session.search("berlin mitte")

    assert (await first).stale is True
    assert geocoder.started == ["berlin mitte"]
    assert result.candidates[0].title == "Berlin Mitte"


@pytest.mark.anyio
async def test_close_cancels_pending_search(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    session = SearchSession(geocoder, debounce_seconds=0)

    pending = asyncio.create_task(session.search("berlin"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    session.close()

    assert (await pending).stale is True
    assert session.latest.query == ""


@pytest.mark.anyio
async def test_take_consumes_candidate(anyio_backend: str) -> None:
    geocoder = GatedGeocoder()
    geocoder.gate("berlin").set()
    session = SearchSession(geocoder, debounce_seconds=0)
    await session.search("berlin")

    assert session.take("unknown") is None
    candidate = session.take("id-berlin")
    assert candidate is not None
    assert candidate.title == "Berlin"
    assert session.take("id-berlin") is None
