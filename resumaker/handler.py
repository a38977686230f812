# handler.py
import asyncio
import logging
import re
import unicodedata
import uuid
from time import perf_counter
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .agents import JobDescriptionAnalysisAgent, ObjectiveGenerationAgent, ResponsibilityEnhancementAgent
from .core.browser_capture import rasterizer_for
from .core.config import Settings, load_settings
from .core.errors import (
    AiFlowError,
    AiUnavailableError,
    EmptyInputError,
    EntryNotFoundError,
    FlowInProgressError,
    PdfExportError,
    ResumakerError,
    ResumeValidationError,
)
from .core.form_controller import ResumeFormController
from .core.gemini_client import GeminiClient
from .core.preview_renderer import preview_to_png


# --- Request models ---

class PersonalDetailsUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    linkedin: Optional[str] = None


class EducationPayload(BaseModel):
    institution: Optional[str] = None
    degree: Optional[str] = None
    graduation_year: Optional[str] = None
    details: Optional[str] = None


class ExperiencePayload(BaseModel):
    company: Optional[str] = None
    role: Optional[str] = None
    duration: Optional[str] = None


class NewExperiencePayload(ExperiencePayload):
    responsibilities: Optional[List[str]] = None


class TextPayload(BaseModel):
    text: str = ""


class ThemeUpdate(BaseModel):
    left_column_bg_color: Optional[str] = None
    left_column_text_color: Optional[str] = None
    skill_tag_bg_color: Optional[str] = None
    skill_tag_text_color: Optional[str] = None


class SuggestionChoice(BaseModel):
    choice: int


# --- Sessions ---

class SessionStore:
    """In-memory editing sessions. Nothing survives a restart."""

    def __init__(self, controller_factory: Callable[[], ResumeFormController]):
        self.controller_factory = controller_factory
        self._sessions: Dict[str, ResumeFormController] = {}

    def create(self) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = self.controller_factory()
        logging.info(f"Created editing session {session_id}")
        return session_id

    def get(self, session_id: str) -> ResumeFormController:
        controller = self._sessions.get(session_id)
        if controller is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
        return controller

    def delete(self, session_id: str):
        if self._sessions.pop(session_id, None) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
        logging.info(f"Closed editing session {session_id}")


def default_controller_factory(settings: Settings) -> Callable[[], ResumeFormController]:
    """Builds controllers wired to Gemini, or without AI when no API key is configured."""
    gemini_client = None
    if settings.gemini_api_key:
        gemini_client = GeminiClient(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            max_attempts=settings.gemini_max_attempts,
        )
    else:
        logging.warning("GEMINI_API_KEY environment variable not set; AI assistance is disabled.")
    rasterizer = rasterizer_for(settings.capture_backend)

    def factory() -> ResumeFormController:
        if gemini_client is None:
            return ResumeFormController(capture_scale=settings.capture_scale, rasterizer=rasterizer)
        return ResumeFormController(
            objective_agent=ObjectiveGenerationAgent(gemini_client),
            analysis_agent=JobDescriptionAnalysisAgent(gemini_client),
            enhancement_agent=ResponsibilityEnhancementAgent(gemini_client),
            capture_scale=settings.capture_scale,
            rasterizer=rasterizer,
        )

    return factory


def _state(controller: ResumeFormController, **extra) -> Dict[str, object]:
    body = controller.snapshot()
    body["notifications"] = [n.model_dump() for n in controller.drain_notifications()]
    body.update(extra)
    return body


async def read_upload_with_limit(file: UploadFile, max_bytes: int) -> bytes:
    """Reads an upload stream, refusing anything above `max_bytes`."""
    chunks = []
    total = 0
    while True:
        chunk = await file.read(64 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Photo exceeds the {max_bytes} byte limit",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def content_disposition(filename: str) -> str:
    """Attachment header carrying an ASCII fallback name and the exact UTF-8 name (RFC 6266)."""
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r"_{2,}", "_", re.sub(r'["\\]', "", fallback)).lstrip("_") or "Resume.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


ERROR_STATUS = {
    ResumeValidationError: 422,
    EmptyInputError: status.HTTP_400_BAD_REQUEST,
    FlowInProgressError: status.HTTP_409_CONFLICT,
    EntryNotFoundError: status.HTTP_404_NOT_FOUND,
    AiUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    AiFlowError: status.HTTP_502_BAD_GATEWAY,
    PdfExportError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(settings: Optional[Settings] = None,
               controller_factory: Optional[Callable[[], ResumeFormController]] = None) -> FastAPI:
    """
    Creates the Resumaker API.

    Args:
        settings: Runtime settings; read from the environment when omitted.
        controller_factory: Builds the controller of each new session. Defaults
            to controllers wired to Gemini according to `settings`.
    """
    settings = settings or load_settings()
    store = SessionStore(controller_factory or default_controller_factory(settings))

    app = FastAPI(
        title="Resumaker API",
        description="""
        API backend for the AI-assisted resume builder.

        Each session holds one resume being edited. Every change re-renders the
        preview; the AI endpoints draft an objective, analyze a job description
        or rewrite a responsibility; the export endpoint returns the PDF.
        """,
        version="1.0.0",
    )
    app.state.session_store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = perf_counter()
        response = await call_next(request)
        duration_ms = (perf_counter() - start) * 1000
        logging.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f} ms)")
        return response

    @app.exception_handler(ResumakerError)
    async def resumaker_error_handler(request: Request, exc: ResumakerError):
        status_code = next(
            (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        content = {"detail": str(exc)}
        if isinstance(exc, ResumeValidationError):
            content["field_errors"] = exc.field_errors
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    # --- API Endpoints ---

    @app.get("/health")
    async def health():
        return {"message": "Health OK", "ai_enabled": bool(settings.gemini_api_key)}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session():
        session_id = store.create()
        return _state(store.get(session_id), session_id=session_id)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str):
        return _state(store.get(session_id), session_id=session_id)

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_session(session_id: str):
        store.delete(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/sessions/{session_id}/notifications")
    async def get_notifications(session_id: str):
        controller = store.get(session_id)
        return {"notifications": [n.model_dump() for n in controller.drain_notifications()]}

    # Personal details

    @app.patch("/sessions/{session_id}/personal")
    async def update_personal(session_id: str, payload: PersonalDetailsUpdate):
        controller = store.get(session_id)
        controller.update_personal_details(**payload.model_dump(exclude_unset=True))
        return _state(controller)

    @app.post("/sessions/{session_id}/photo")
    async def upload_photo(session_id: str, photo: UploadFile = File(...)):
        controller = store.get(session_id)
        data = await read_upload_with_limit(photo, settings.max_photo_bytes)
        controller.upload_photo(data)
        return _state(controller)

    @app.delete("/sessions/{session_id}/photo")
    async def remove_photo(session_id: str):
        controller = store.get(session_id)
        controller.remove_photo()
        return _state(controller)

    # Education

    @app.post("/sessions/{session_id}/education", status_code=status.HTTP_201_CREATED)
    async def add_education(session_id: str, payload: EducationPayload):
        controller = store.get(session_id)
        entry = controller.add_education(**payload.model_dump(exclude_none=True))
        return _state(controller, entry_id=entry.id)

    @app.patch("/sessions/{session_id}/education/{entry_id}")
    async def update_education(session_id: str, entry_id: str, payload: EducationPayload):
        controller = store.get(session_id)
        controller.update_education(entry_id, **payload.model_dump(exclude_unset=True))
        return _state(controller)

    @app.delete("/sessions/{session_id}/education/{entry_id}")
    async def remove_education(session_id: str, entry_id: str):
        controller = store.get(session_id)
        controller.remove_education(entry_id)
        return _state(controller)

    # Experience

    @app.post("/sessions/{session_id}/experience", status_code=status.HTTP_201_CREATED)
    async def add_experience(session_id: str, payload: NewExperiencePayload):
        controller = store.get(session_id)
        entry = controller.add_experience(**payload.model_dump(exclude_none=True))
        return _state(controller, entry_id=entry.id)

    @app.patch("/sessions/{session_id}/experience/{entry_id}")
    async def update_experience(session_id: str, entry_id: str, payload: ExperiencePayload):
        controller = store.get(session_id)
        controller.update_experience(entry_id, **payload.model_dump(exclude_unset=True))
        return _state(controller)

    @app.delete("/sessions/{session_id}/experience/{entry_id}")
    async def remove_experience(session_id: str, entry_id: str):
        controller = store.get(session_id)
        controller.remove_experience(entry_id)
        return _state(controller)

    @app.post("/sessions/{session_id}/experience/{entry_id}/responsibilities", status_code=status.HTTP_201_CREATED)
    async def add_responsibility(session_id: str, entry_id: str, payload: TextPayload):
        controller = store.get(session_id)
        index = controller.add_responsibility(entry_id, payload.text)
        return _state(controller, index=index)

    @app.put("/sessions/{session_id}/experience/{entry_id}/responsibilities/{index}")
    async def update_responsibility(session_id: str, entry_id: str, index: int, payload: TextPayload):
        controller = store.get(session_id)
        controller.update_responsibility(entry_id, index, payload.text)
        return _state(controller)

    @app.delete("/sessions/{session_id}/experience/{entry_id}/responsibilities/{index}")
    async def remove_responsibility(session_id: str, entry_id: str, index: int):
        controller = store.get(session_id)
        controller.remove_responsibility(entry_id, index)
        return _state(controller)

    # Skills, strengths, weaknesses, achievements

    @app.post("/sessions/{session_id}/lists/{field_name}", status_code=status.HTTP_201_CREATED)
    async def add_list_item(session_id: str, field_name: str, payload: TextPayload):
        controller = store.get(session_id)
        index = controller.add_list_item(field_name, payload.text)
        return _state(controller, index=index)

    @app.put("/sessions/{session_id}/lists/{field_name}/{index}")
    async def update_list_item(session_id: str, field_name: str, index: int, payload: TextPayload):
        controller = store.get(session_id)
        controller.update_list_item(field_name, index, payload.text)
        return _state(controller)

    @app.delete("/sessions/{session_id}/lists/{field_name}/{index}")
    async def remove_list_item(session_id: str, field_name: str, index: int):
        controller = store.get(session_id)
        controller.remove_list_item(field_name, index)
        return _state(controller)

    # Free text and theme

    @app.put("/sessions/{session_id}/objective")
    async def set_objective(session_id: str, payload: TextPayload):
        controller = store.get(session_id)
        controller.set_objective(payload.text)
        return _state(controller)

    @app.put("/sessions/{session_id}/job-description")
    async def set_job_description(session_id: str, payload: TextPayload):
        controller = store.get(session_id)
        controller.set_job_description(payload.text)
        return _state(controller)

    @app.patch("/sessions/{session_id}/theme")
    async def set_theme(session_id: str, payload: ThemeUpdate):
        controller = store.get(session_id)
        controller.set_theme(**payload.model_dump(exclude_none=True))
        return _state(controller)

    # AI assistance

    @app.post("/sessions/{session_id}/ai/objective")
    async def generate_objective(session_id: str):
        controller = store.get(session_id)
        objective = await controller.generate_objective()
        return _state(controller, objective=objective)

    @app.delete("/sessions/{session_id}/ai/objective")
    async def discard_objective(session_id: str):
        controller = store.get(session_id)
        controller.discard_generated_objective()
        return _state(controller)

    @app.post("/sessions/{session_id}/ai/analysis")
    async def analyze_job_description(session_id: str):
        controller = store.get(session_id)
        suggestions = await controller.analyze_job_description()
        return _state(controller, suggestions=suggestions)

    @app.post("/sessions/{session_id}/experience/{entry_id}/responsibilities/{index}/enhance")
    async def enhance_responsibility(session_id: str, entry_id: str, index: int):
        controller = store.get(session_id)
        suggestions = await controller.enhance_responsibility(entry_id, index)
        return _state(controller, suggestions=suggestions)

    @app.post("/sessions/{session_id}/experience/{entry_id}/responsibilities/{index}/enhance/accept")
    async def accept_enhancement(session_id: str, entry_id: str, index: int, payload: SuggestionChoice):
        controller = store.get(session_id)
        controller.accept_enhancement(entry_id, index, payload.choice)
        return _state(controller)

    @app.delete("/sessions/{session_id}/experience/{entry_id}/responsibilities/{index}/enhance")
    async def discard_enhancement(session_id: str, entry_id: str, index: int):
        controller = store.get(session_id)
        controller.discard_enhancement(entry_id, index)
        return _state(controller)

    # Preview and export

    @app.get("/sessions/{session_id}/preview.png")
    async def preview(session_id: str, scale: int = Query(1, ge=1, le=3)):
        controller = store.get(session_id)
        png = await asyncio.to_thread(preview_to_png, controller.preview, scale, controller.exporter.rasterizer)
        return Response(content=png, media_type="image/png")

    @app.post("/sessions/{session_id}/export")
    async def export_pdf(session_id: str):
        controller = store.get(session_id)
        document = await controller.export_pdf()
        return Response(
            content=document.content,
            media_type="application/pdf",
            headers={
                "Content-Disposition": content_disposition(document.filename),
                "X-Page-Count": str(document.page_count),
            },
        )

    return app
