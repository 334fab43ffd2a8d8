"""
Field Provenance Web Interface

FastAPI application exposing one review session:
- Document viewer page with the provenance overlay
- JSON endpoints for document loading, field selection, navigation and zoom
- Rendered page images with highlight, markers and tooltip
- Field panel rows and extraction failure summaries
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field

from ..core.config_manager import ConfigurationManager
from ..core.models import LoadState
from ..viewer.document_source import SubmissionDocument
from ..viewer.session import ReviewSession

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


class DocumentRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_name: str = Field(..., alias="fileName")
    field_provenance: Optional[Any] = Field(None, alias="fieldProvenance")
    base64_data: Optional[str] = Field(None, alias="base64Data")


class OpenDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(..., alias="submissionId")
    document: DocumentRecord


class SelectFieldRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field_name: str = Field(..., alias="fieldName")
    form: Union[str, Dict[str, Any]]


class PageRequest(BaseModel):
    page: int


class ZoomRequest(BaseModel):
    zoom: Optional[float] = None
    action: Optional[str] = Field(None, description="in | out | reset")


class FieldPanelRequest(BaseModel):
    forms: List[Dict[str, Any]] = Field(default_factory=list)


class FailuresRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    skipped_forms: List[Any] = Field(default_factory=list, alias="skippedForms")


def create_app(config: Optional[Dict[str, Any]] = None, session: Optional[ReviewSession] = None) -> FastAPI:
    """
    Build the web application.

    Args:
        config: Loaded configuration; read from the environment when omitted
        session: Prepared review session (tests inject one with fakes)
    """
    if session is None:
        config = config or ConfigurationManager.load_configuration()
        session = ReviewSession.from_config(config)
    reduced_motion = bool(config and config['rendering']['reduced_motion'])

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await session.aclose()

    app = FastAPI(title="Field Provenance Viewer", version="1.0.0", lifespan=lifespan)
    app.state.session = session
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    def snapshot(**extra: Any) -> Dict[str, Any]:
        payload = session.snapshot()
        payload.update(extra)
        return payload

    @app.get("/", response_class=HTMLResponse)
    async def review_page(request: Request):
        """Document viewer."""
        return templates.TemplateResponse(request, "review.html", {
            "session": session.snapshot(),
            "reduced_motion": reduced_motion,
        })

    @app.get("/api/session", response_class=JSONResponse)
    async def get_session():
        return snapshot()

    @app.post("/api/documents/open")
    async def open_document(body: OpenDocumentRequest):
        """Open a submission document; the previous highlight is cleared."""
        record = SubmissionDocument(
            id=body.document.id,
            file_name=body.document.file_name,
            field_provenance=body.document.field_provenance,
            base64_data=body.document.base64_data,
        )
        ready = await session.open_document(body.submission_id, record)
        return snapshot(ready=ready)

    @app.post("/api/documents/retry")
    async def retry_document():
        if session.viewport.load_state is not LoadState.FAILED:
            raise HTTPException(status_code=409, detail="Document has not failed to load")
        ready = await session.retry()
        return snapshot(ready=ready)

    @app.post("/api/fields/select")
    async def select_field(body: SelectFieldRequest):
        """Field click from the data panel."""
        try:
            target = session.select_field(body.field_name, body.form)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return snapshot(sourceAvailable=target is not None)

    @app.post("/api/highlight/clear")
    async def clear_highlight():
        session.clear_highlight()
        return snapshot()

    @app.post("/api/viewport/page")
    async def go_to_page(body: PageRequest):
        return snapshot(accepted=session.go_to_page(body.page))

    @app.post("/api/viewport/next")
    async def next_page():
        return snapshot(accepted=session.next_page())

    @app.post("/api/viewport/prev")
    async def previous_page():
        return snapshot(accepted=session.previous_page())

    @app.post("/api/viewport/zoom")
    async def zoom(body: ZoomRequest):
        if body.zoom is not None:
            session.set_zoom(body.zoom)
        elif body.action == "in":
            session.zoom_in()
        elif body.action == "out":
            session.zoom_out()
        elif body.action == "reset":
            session.reset_zoom()
        else:
            raise HTTPException(status_code=400, detail="Provide 'zoom' or an action of in, out or reset")
        return snapshot()

    @app.get("/api/overlay", response_class=JSONResponse)
    async def get_overlay(tooltip: bool = False):
        return session.overlay_scene(show_tooltip=tooltip).to_dict()

    @app.get("/api/pages/current.png")
    async def current_page_image(tooltip: bool = False):
        """Current page with its overlay, at the current zoom."""
        composite = await session.render(show_tooltip=tooltip)
        if composite is None:
            raise HTTPException(status_code=409, detail="Page not ready")
        return Response(
            content=composite.to_png(),
            media_type="image/png",
            headers={"X-Page-Number": str(composite.page_number)},
        )

    @app.post("/api/fields/panel")
    async def field_panel(body: FieldPanelRequest):
        return {"rows": [row.to_dict() for row in session.field_panel(body.forms)]}

    @app.post("/api/failures")
    async def failures(body: FailuresRequest):
        return session.failures(body.skipped_forms)

    return app
