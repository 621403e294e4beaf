"""FastAPI application entrypoint for repospider service mode."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..commands import GITHUB, LOCAL, SpiderRequest, run_spider
from ..config import ConfigError
from ..errors import EnumerationError
from ..logging import get_logger
from ..models import SpiderSummary

SpiderRunner = Callable[[SpiderRequest], Awaitable[SpiderSummary]]


class _SpiderPayload(BaseModel):
    workspace_id: Optional[str] = None
    update: bool = False
    pool_size: Optional[int] = Field(default=None, ge=1)
    extractors: List[str] = Field(default_factory=list)


class GitHubSpiderPayload(_SpiderPayload):
    owner: Optional[str] = None
    query: Optional[str] = None
    search: Optional[str] = None
    clone_under: Optional[str] = None
    max_examined: Optional[int] = Field(default=None, ge=1)
    max_kept: Optional[int] = Field(default=None, ge=1)


class LocalSpiderPayload(_SpiderPayload):
    directory: str


class FailureResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_url: str = Field(alias="repoUrl")
    while_trying_to: str = Field(alias="whileTryingTo")
    message: str


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repositories_detected: int = Field(alias="repositoriesDetected")
    projects_detected: int = Field(alias="projectsDetected")
    failed: List[FailureResponse]
    kept_existing: List[str] = Field(alias="keptExisting")
    persisted_analyses: List[str] = Field(alias="persistedAnalyses")

    @classmethod
    def from_summary(cls, summary: SpiderSummary) -> "SummaryResponse":
        return cls.model_validate(summary.as_dict())


class HealthResponse(BaseModel):
    status: str


def _default_runner() -> SpiderRunner:
    return run_spider


def create_app(
    runner_factory: Callable[[], SpiderRunner] = _default_runner,
) -> FastAPI:
    """Create the FastAPI application exposing spider operations."""

    app = FastAPI(title="Repospider Service", version="1.0.0")
    logger = get_logger("service")

    async def get_runner() -> SpiderRunner:
        return runner_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/spider/github", response_model=SummaryResponse)
    async def spider_github(
        payload: GitHubSpiderPayload,
        runner: SpiderRunner = Depends(get_runner),
    ) -> SummaryResponse:
        if not (payload.owner or payload.query):
            raise ValueError("Either an owner or a query is required to spider GitHub")
        request = SpiderRequest(
            source=GITHUB,
            workspace_id=payload.workspace_id,
            update=payload.update,
            owner=payload.owner,
            query=payload.query,
            search=payload.search,
            clone_under=Path(payload.clone_under) if payload.clone_under else None,
            pool_size=payload.pool_size,
            max_examined=payload.max_examined,
            max_kept=payload.max_kept,
            extractors=list(payload.extractors),
        )
        logger.info("Spidering GitHub for %s", payload.query or payload.owner)
        return SummaryResponse.from_summary(await runner(request))

    @app.post("/spider/local", response_model=SummaryResponse)
    async def spider_local(
        payload: LocalSpiderPayload,
        runner: SpiderRunner = Depends(get_runner),
    ) -> SummaryResponse:
        request = SpiderRequest(
            source=LOCAL,
            workspace_id=payload.workspace_id,
            update=payload.update,
            local_directory=Path(payload.directory),
            pool_size=payload.pool_size,
            extractors=list(payload.extractors),
        )
        logger.info("Spidering local directory %s", payload.directory)
        return SummaryResponse.from_summary(await runner(request))

    @app.exception_handler(EnumerationError)
    async def enumeration_error_handler(_: Any, exc: EnumerationError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = [
    "GitHubSpiderPayload",
    "LocalSpiderPayload",
    "SummaryResponse",
    "create_app",
    "run_service",
]
