"""HTTP surface exposing scrape runs and dataset downloads."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict

from .config import HarvesterConfig, ScrapeMode
from .errors import EmptyResultError, PersistenceError, ValidationError
from .infra import OutputDirectory
from .orchestrator import PageRangeOrchestrator, build_orchestrator

OrchestratorFactory = Callable[[], PageRangeOrchestrator]


class ScrapeRequest(BaseModel):
    """Request body; field checks happen in the orchestrator so errors map to 400."""

    model_config = ConfigDict(extra="ignore")

    baseUrl: Any = None
    startPage: Any = None
    endPage: Any = None


def _capabilities() -> dict[str, Any]:
    page_params = {
        "baseUrl": 'URL without page number (e.g., "https://www.businesslist.com.ng/location/lagos/")',
        "startPage": "Integer ≥ 1",
        "endPage": "Integer ≥ startPage",
    }
    return {
        "status": "running",
        "endpoints": {
            "scrape": {"method": "POST", "path": "/scrape", "parameters": page_params},
            "scrapeCategory": {
                "method": "POST",
                "path": "/scrape-category",
                "parameters": {
                    **page_params,
                    "baseUrl": 'Category URL (e.g., "https://www.businesslist.com.ng/category/hotels/city:lagos")',
                },
            },
            "download": {
                "method": "GET",
                "path": "/download/{filename}",
                "description": "Download CSV file",
            },
        },
    }


def create_app(
    config: HarvesterConfig,
    outputs_dir: Path,
    orchestrator_factory: OrchestratorFactory | None = None,
    logger: structlog.BoundLogger | None = None,
) -> FastAPI:
    log = logger or structlog.get_logger("directory_harvester.server")
    output_dir = OutputDirectory(outputs_dir)

    def default_factory() -> PageRangeOrchestrator:
        return build_orchestrator(config, outputs_dir, logger=log)

    factory = orchestrator_factory or default_factory

    app = FastAPI(title="Directory Harvester", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing parameters", "details": str(exc.errors())},
        )

    def _run(payload: ScrapeRequest, mode: ScrapeMode) -> Any:
        try:
            with factory() as orchestrator:
                result = orchestrator.run(
                    payload.baseUrl, payload.startPage, payload.endPage, mode=mode
                )
        except ValidationError as exc:
            return JSONResponse(status_code=400, content={"error": exc.error, "details": exc.details})
        except EmptyResultError as exc:
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": str(exc),
                    "details": exc.result.to_payload(),
                    "solution": exc.solution,
                },
            )
        except PersistenceError as exc:
            log.error("dataset_write_failed", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Failed to save dataset",
                    "details": str(exc),
                },
            )
        return {
            "success": True,
            **result.to_payload(),
            "downloadLink": f"/download/{result.stats.output_file}",
        }

    @app.post("/scrape")
    def scrape(payload: ScrapeRequest) -> Any:
        return _run(payload, ScrapeMode.DIRECTORY)

    @app.post("/scrape-category")
    def scrape_category(payload: ScrapeRequest) -> Any:
        return _run(payload, ScrapeMode.CATEGORY)

    @app.get("/download/{filename}")
    def download(filename: str) -> Any:
        path = output_dir.resolve_download(filename)
        if path is None:
            return JSONResponse(status_code=404, content={"error": "File not found"})
        return FileResponse(path, media_type="text/csv", filename=path.name)

    @app.get("/")
    def index() -> dict[str, Any]:
        return _capabilities()

    return app


def serve(config: HarvesterConfig, outputs_dir: Path, host: str | None = None, port: int | None = None) -> None:
    app = create_app(config, outputs_dir)
    uvicorn.run(app, host=host or config.server.host, port=port or config.server.port)


__all__ = ["ScrapeRequest", "create_app", "serve"]
