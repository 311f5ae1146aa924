"""
NotPasteBin Frontend — Page Rendering
=======================================

What:  Loads index.html once and renders it from a PageContext.
Why:   One template serves all three pages (main, read, edit); the context
       flags select the section. Jinja2 autoescapes .html templates, so note
       text is always rendered as text, never as markup.
How:   fastapi.templating.Jinja2Templates; the Jinja2 environment is built at
       startup and only read afterwards.

Failure Modes:
    Template missing at startup → TemplateNotFound from verify() → process exits
    Template error at request time → RenderError → logged, 500
"""

import logging

import jinja2
from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from notpastebin_frontend.exceptions import RenderError
from notpastebin_frontend.schemas.note import PageContext

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = "index.html"


class PageRenderer:
    """Renders PageContext records through the page template."""

    def __init__(self, directory: str):
        self.directory = directory
        self.templates = Jinja2Templates(directory=directory)

    def verify(self) -> None:
        """
        Parse the page template now instead of on the first request.

        Raises:
            jinja2.TemplateError: missing file or syntax error.
        """
        self.templates.get_template(PAGE_TEMPLATE)
        logger.info("Page template loaded from %s", self.directory)

    def render(self, request: Request, context: PageContext) -> Response:
        try:
            return self.templates.TemplateResponse(
                request,
                PAGE_TEMPLATE,
                context.model_dump(),
            )
        except jinja2.TemplateError as e:
            raise RenderError(
                context={"template": PAGE_TEMPLATE, "error": f"{type(e).__name__}: {e}"}
            ) from e
