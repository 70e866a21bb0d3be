"""
Error fallback layer: HTML pages for route misses and internal errors.

``handle_500`` runs as HTTP middleware, so it sees every response the
router, the static mount and the 404 fallback produce. Only a 500 is
replaced; everything else is returned untouched.
"""

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union
import logging

from app.schemas.page_schemas import ErrorPageContext

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = "page.html"

SERVER_ERROR = ErrorPageContext(title="server error", message="try later")
NOT_FOUND = ErrorPageContext(title="not found", message="unfound url")

CallNext = Callable[[Request], Awaitable[Response]]


class ErrorPages:
    def __init__(self, templates_dir: Union[str, Path]):
        self.templates = Jinja2Templates(directory=str(templates_dir))

    def render_page(self, title: str, message: Optional[str], status_code: int) -> HTMLResponse:
        """
        Render templates/page.html into a fresh response.

        Template errors are not caught: an error page that cannot be rendered
        means the deployment is broken, and the request is aborted.
        """
        context = ErrorPageContext(title=title, message=message)
        template = self.templates.get_template(PAGE_TEMPLATE)
        return HTMLResponse(template.render(**context.model_dump()), status_code=status_code)

    async def handle_500(self, request: Request, call_next: CallNext) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error while serving {request.method} {request.url.path}")
            return self.render_page(SERVER_ERROR.title, SERVER_ERROR.message, 500)

        if response.status_code != 500:
            return response

        logger.warning(f"Replacing 500 response body for {request.method} {request.url.path}")
        return self.render_page(SERVER_ERROR.title, SERVER_ERROR.message, 500)

    async def handle_404(self, request: Request, exc: Exception) -> HTMLResponse:
        return self.render_page(NOT_FOUND.title, NOT_FOUND.message, 404)


def install_error_pages(app: FastAPI, templates_dir: Union[str, Path]) -> ErrorPages:
    """Register the 404 fallback and the 500 middleware on ``app``"""
    pages = ErrorPages(templates_dir)
    app.add_exception_handler(404, pages.handle_404)
    app.middleware("http")(pages.handle_500)
    return pages
