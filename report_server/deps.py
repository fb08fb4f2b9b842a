"""FastAPI dependency providers for the services built at startup."""

from __future__ import annotations

from fastapi import Request

from .ingestion import IngestionEngine
from .queries import QueryService
from .store import ReportStore


def get_store(request: Request) -> ReportStore:
    return request.app.state.store


def get_engine(request: Request) -> IngestionEngine:
    return request.app.state.engine


def get_queries(request: Request) -> QueryService:
    return request.app.state.queries
