from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .models import Coordinate, OptimizationOptions


class SessionResponse(BaseModel):
    session_id: str


class StopCreate(BaseModel):
    title: str = Field(min_length=1)
    address: Optional[str] = None
    lon: float = Field(ge=-180.0, le=180.0)
    lat: float = Field(ge=-90.0, le=90.0)


class CandidateSelection(BaseModel):
    candidate_id: str


class LocationUpdate(BaseModel):
    lon: float = Field(ge=-180.0, le=180.0)
    lat: float = Field(ge=-90.0, le=90.0)


class ErrorInfo(BaseModel):
    code: str
    message: str


class StopOut(BaseModel):
    id: str
    title: str
    address: Optional[str]
    lon: float
    lat: float
    position: Optional[int] = None


class RouteOut(BaseModel):
    coordinates: List[List[float]]
    distance_m: Optional[float]
    duration_s: Optional[float]


class PlannerState(BaseModel):
    stops: List[StopOut]
    options: OptimizationOptions
    current_location: Optional[Coordinate]
    status: str
    route: Optional[RouteOut]
    duration_text: str
    distance_text: str
    max_stops: int
    error: Optional[ErrorInfo] = None
    warning: Optional[ErrorInfo] = None


class CandidateOut(BaseModel):
    id: str
    title: str
    address: Optional[str]
    lon: float
    lat: float


class SearchResponse(BaseModel):
    query: str
    candidates: List[CandidateOut]
    stale: bool = False
    error: Optional[ErrorInfo] = None


class OptimizeResponse(BaseModel):
    state: PlannerState
    reordered: bool


class MapResponse(BaseModel):
    stops: dict[str, Any]
    route: Optional[dict[str, Any]]
    location: Optional[dict[str, Any]]
    camera: dict[str, Any]
