import logging
from typing import Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status

from . import deps, schemas
from .errors import (
    ConfigurationError,
    DuplicateStopError,
    EmptyRouteError,
    InsufficientStopsError,
    LocationUnavailableError,
    NetworkError,
    OptimizationInProgressError,
    OptimizationRejectedError,
    PlannerError,
    ServiceError,
    StaleRouteError,
    TooManyStopsError,
)
from .models import Coordinate, OptimizationOptions, Stop
from .planner import Planner

logger = logging.getLogger(__name__)

router = APIRouter()

_planners: Dict[str, Planner] = {}

_ERROR_STATUS: Dict[type, int] = {
    InsufficientStopsError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LocationUnavailableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TooManyStopsError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DuplicateStopError: status.HTTP_409_CONFLICT,
    OptimizationInProgressError: status.HTTP_409_CONFLICT,
    StaleRouteError: status.HTTP_409_CONFLICT,
    ConfigurationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    NetworkError: status.HTTP_504_GATEWAY_TIMEOUT,
    ServiceError: status.HTTP_502_BAD_GATEWAY,
    OptimizationRejectedError: status.HTTP_502_BAD_GATEWAY,
    EmptyRouteError: status.HTTP_502_BAD_GATEWAY,
}


def _http_error(exc: PlannerError) -> HTTPException:
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            code = _ERROR_STATUS[cls]
            break
    return HTTPException(
        status_code=code, detail={"code": exc.code, "message": exc.message}
    )


def _error_info(exc: Optional[PlannerError]) -> Optional[schemas.ErrorInfo]:
    if exc is None:
        return None
    return schemas.ErrorInfo(code=exc.code, message=exc.message)


def get_planner(session_id: str) -> Planner:
    planner = _planners.get(session_id)
    if planner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    return planner


def _state(planner: Planner) -> schemas.PlannerState:
    engine = planner.engine
    artifact = engine.artifact
    ordered = artifact is not None and engine.warning is None
    stops = [
        schemas.StopOut(
            id=stop.id,
            title=stop.title,
            address=stop.address,
            lon=stop.coordinate.lon,
            lat=stop.coordinate.lat,
            position=position if ordered else None,
        )
        for position, stop in enumerate(planner.stops, start=1)
    ]
    route = None
    if artifact is not None:
        route = schemas.RouteOut(
            coordinates=[[lon, lat] for lon, lat in artifact.coordinates],
            distance_m=artifact.distance_m,
            duration_s=artifact.duration_s,
        )
    return schemas.PlannerState(
        stops=stops,
        options=engine.options,
        current_location=planner.current_location,
        status=engine.status.value,
        route=route,
        duration_text=engine.duration_text,
        distance_text=engine.distance_text,
        max_stops=engine.max_stops(),
        error=_error_info(engine.error),
        warning=_error_info(engine.warning),
    )


@router.post(
    "/sessions",
    response_model=schemas.SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session() -> schemas.SessionResponse:
    session_id = str(uuid4())
    _planners[session_id] = deps.create_planner()
    logger.info("Planner session %s created", session_id)
    return schemas.SessionResponse(session_id=session_id)


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str) -> dict[str, str]:
    planner = _planners.pop(session_id, None)
    if planner is not None:
        planner.close()
    return {"status": "ok"}


@router.get("/sessions/{session_id}", response_model=schemas.PlannerState)
async def get_state(planner: Planner = Depends(get_planner)) -> schemas.PlannerState:
    return _state(planner)


@router.post(
    "/sessions/{session_id}/stops",
    response_model=schemas.PlannerState,
    status_code=status.HTTP_201_CREATED,
)
async def add_stop(
    data: schemas.StopCreate, planner: Planner = Depends(get_planner)
) -> schemas.PlannerState:
    stop = Stop(
        title=data.title,
        address=data.address,
        coordinate=Coordinate(lon=data.lon, lat=data.lat),
    )
    try:
        planner.add_stop(stop)
    except PlannerError as exc:
        raise _http_error(exc) from exc
    return _state(planner)


@router.post(
    "/sessions/{session_id}/stops/from-candidate",
    response_model=schemas.PlannerState,
    status_code=status.HTTP_201_CREATED,
)
async def add_candidate(
    data: schemas.CandidateSelection, planner: Planner = Depends(get_planner)
) -> schemas.PlannerState:
    candidate = planner.search_session.take(data.candidate_id)
    if candidate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found"
        )
    planner.add_candidate(candidate)
    return _state(planner)


@router.delete("/sessions/{session_id}/stops/{stop_id}", response_model=schemas.PlannerState)
async def remove_stop(
    stop_id: str, planner: Planner = Depends(get_planner)
) -> schemas.PlannerState:
    planner.remove_stop(stop_id)
    return _state(planner)


@router.delete("/sessions/{session_id}/stops", response_model=schemas.PlannerState)
async def clear_stops(planner: Planner = Depends(get_planner)) -> schemas.PlannerState:
    planner.clear()
    return _state(planner)


@router.put("/sessions/{session_id}/options", response_model=schemas.PlannerState)
async def update_options(
    data: OptimizationOptions, planner: Planner = Depends(get_planner)
) -> schemas.PlannerState:
    planner.set_options(data)
    return _state(planner)


@router.put("/sessions/{session_id}/location", response_model=schemas.PlannerState)
async def update_location(
    data: schemas.LocationUpdate, planner: Planner = Depends(get_planner)
) -> schemas.PlannerState:
    planner.set_current_location(Coordinate(lon=data.lon, lat=data.lat))
    return _state(planner)


@router.delete("/sessions/{session_id}/location", response_model=schemas.PlannerState)
async def forget_location(planner: Planner = Depends(get_planner)) -> schemas.PlannerState:
    planner.set_current_location(None)
    return _state(planner)


@router.get("/sessions/{session_id}/search", response_model=schemas.SearchResponse)
async def search(
    q: str = Query(""), planner: Planner = Depends(get_planner)
) -> schemas.SearchResponse:
    result = await planner.search(q)
    return schemas.SearchResponse(
        query=result.query,
        candidates=[
            schemas.CandidateOut(
                id=c.id,
                title=c.title,
                address=c.address,
                lon=c.coordinate.lon,
                lat=c.coordinate.lat,
            )
            for c in result.candidates
        ],
        stale=result.stale,
        error=_error_info(result.error),
    )


@router.post("/sessions/{session_id}/optimize", response_model=schemas.OptimizeResponse)
async def optimize(planner: Planner = Depends(get_planner)) -> schemas.OptimizeResponse:
    try:
        outcome = await planner.optimize()
    except PlannerError as exc:
        raise _http_error(exc) from exc
    return schemas.OptimizeResponse(state=_state(planner), reordered=outcome.reordered)


@router.get("/sessions/{session_id}/map", response_model=schemas.MapResponse)
async def get_map(planner: Planner = Depends(get_planner)) -> schemas.MapResponse:
    snapshot = planner.surface.snapshot()  # type: ignore[attr-defined]
    return schemas.MapResponse(**snapshot)


def close_all() -> None:
    for planner in _planners.values():
        planner.close()
    _planners.clear()
