"""FastAPI application exposing the illustration library."""

import logging
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.console import Console

from storybook.db_config import create_indexes
from storybook.errors import InvalidRequest, LibraryImageNotFound, PageNotFound, StorageUnavailable
from storybook.web.routes import library

logger = logging.getLogger(__name__)
console = Console()

project_root = Path(__file__).parent.parent.parent.parent
load_dotenv(project_root / ".env")


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def register_exception_handlers(api_app: FastAPI) -> None:
    """Map library errors onto HTTP status codes."""

    @api_app.exception_handler(InvalidRequest)
    async def _invalid_request(request: Request, exc: InvalidRequest):
        return _error_response(400, exc)

    @api_app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError):
        problems = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"] if part != "body")
            problems.append(f"{field}: {error['msg']}" if field else error["msg"])
        return JSONResponse(status_code=400, content={"detail": "; ".join(problems)})

    @api_app.exception_handler(LibraryImageNotFound)
    async def _image_not_found(request: Request, exc: LibraryImageNotFound):
        return _error_response(404, exc)

    @api_app.exception_handler(PageNotFound)
    async def _page_not_found(request: Request, exc: PageNotFound):
        return _error_response(404, exc)

    @api_app.exception_handler(StorageUnavailable)
    async def _storage_unavailable(request: Request, exc: StorageUnavailable):
        logger.error(f"Storage unavailable while handling {request.url.path}: {exc}")
        return _error_response(503, exc)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    api_app = FastAPI(
        title="Storybook Illustration Library",
        description="Reuse of previously generated storybook illustrations",
        version="1.0.0",
    )

    api_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @api_app.on_event("startup")
    async def _ensure_indexes():
        try:
            create_indexes()
            console.log("Library indexes ensured")
        except StorageUnavailable as e:
            console.log(f"Failed to create indexes: {e}")

    register_exception_handlers(api_app)
    api_app.include_router(library.router, prefix="/api/library", tags=["library"])

    @api_app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "storybook-library"}

    return api_app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = False):
    """Run the FastAPI server."""
    uvicorn.run(
        "storybook.web.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    run_server()
