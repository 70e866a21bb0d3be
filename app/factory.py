from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import Optional
from app.config import FULL_PROFILE, ServerConfig
from app.middleware.error_pages import install_error_pages
from app.middleware.request_tracing import install_request_tracing
from app.routers import hello_router
from app.schemas.api_docs import ApiDocs, build_api_docs
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Application ready (profile={app.state.config.profile})")
    yield
    # Shutdown
    logger.info("Application stopped")


def create_app(config: ServerConfig = FULL_PROFILE, api_docs: Optional[ApiDocs] = None) -> FastAPI:
    """
    Compose the landing page application for one profile.

    Layers are added inside out: routes and documentation, the static mount,
    the error fallback layer, then request tracing around everything.
    """
    if api_docs is None:
        api_docs = build_api_docs()

    app = FastAPI(
        title=api_docs.title,
        version=api_docs.version,
        description=api_docs.description,
        openapi_tags=api_docs.openapi_tags,
        openapi_url=api_docs.openapi_url,
        docs_url=api_docs.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.config = config

    app.include_router(hello_router.router)

    # http://localhost:8686/static/app.css
    if config.serve_static:
        if config.static_dir.is_dir():
            app.mount("/static", StaticFiles(directory=str(config.static_dir)), name="static")
        else:
            # /static/* then falls through to the 404 handling
            logger.warning(f"Static directory '{config.static_dir}' not found, /static is not served")

    # http://localhost:8686/ab
    if config.error_pages:
        install_error_pages(app, config.templates_dir)

    if config.request_tracing:
        install_request_tracing(app)

    return app
