"""
The form controller owns one editing session: the resume, the transient AI
state, the color theme and the preview mounted on the display surface.

Every mutation re-renders the preview synchronously. AI calls and the PDF
capture run in worker threads and are awaited, so loading flags are checked
and flipped on the event loop only.
"""
import asyncio
import base64
import io
import logging
from typing import Dict, List, Optional, Set, Tuple

from PIL import Image
from pydantic import ValidationError

from .display_surface import DisplaySurface
from .errors import (
    AiFlowError,
    AiUnavailableError,
    EmptyInputError,
    EntryNotFoundError,
    FlowInProgressError,
    PdfExportError,
    ResumeValidationError,
)
from .layout import PreviewNode
from .pdf_exporter import ExportedDocument, PdfExporter
from .preview_renderer import render_preview
from .rasterizer import capture
from .resume_models import (
    LIST_FIELDS,
    AiAnalysisState,
    ColorTheme,
    EducationEntry,
    ExperienceEntry,
    Notification,
    ResumeData,
)
from .validation import validate_resume

PERSONAL_FIELDS = ("name", "address", "phone", "email", "linkedin")
EDUCATION_FIELDS = ("institution", "degree", "graduation_year", "details")
EXPERIENCE_FIELDS = ("company", "role", "duration")


def _check_fields(fields: Dict[str, object], allowed: Tuple[str, ...]):
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")


class ResumeFormController:

    def __init__(self, objective_agent=None, analysis_agent=None, enhancement_agent=None,
                 theme: Optional[ColorTheme] = None, capture_scale: float = 2,
                 surface: Optional[DisplaySurface] = None, rasterizer=capture):
        """
        Args:
            objective_agent: An ObjectiveGenerationAgent, or None when AI is unavailable.
            analysis_agent: A JobDescriptionAnalysisAgent, or None.
            enhancement_agent: A ResponsibilityEnhancementAgent, or None.
            theme: Initial color theme.
            capture_scale: Quality multiplier for PDF capture.
            surface: Display surface to mount the preview on.
            rasterizer: Capture function handed to the PDF exporter.
        """
        self.objective_agent = objective_agent
        self.analysis_agent = analysis_agent
        self.enhancement_agent = enhancement_agent

        self.resume = ResumeData()
        self.ai_state = AiAnalysisState()
        self.theme = theme or ColorTheme()
        self.surface = surface or DisplaySurface()
        self.exporter = PdfExporter(self.surface, rasterizer=rasterizer, scale=capture_scale)

        self.notifications: List[Notification] = []
        self.field_errors: Dict[str, str] = {}
        self.pending_enhancements: Dict[Tuple[str, int], List[str]] = {}
        self.enhancing: Set[Tuple[str, int]] = set()
        self._objective_before_ai: Optional[str] = None
        self.preview: Optional[PreviewNode] = None
        self._refresh_preview()

    # --- Preview and notifications ---

    def _refresh_preview(self):
        self.preview = render_preview(self.resume, self.theme)
        self.surface.mount(self.preview)

    def _changed(self):
        self._refresh_preview()
        # Once a submit has failed, errors follow the user's edits.
        if self.field_errors:
            self.field_errors = validate_resume(self.resume)

    def notify(self, title: str, description: str, variant: str = "default"):
        self.notifications.append(Notification(title=title, description=description, variant=variant))

    def drain_notifications(self) -> List[Notification]:
        drained, self.notifications = self.notifications, []
        return drained

    # --- Lookups ---

    def _education(self, entry_id: str) -> EducationEntry:
        for entry in self.resume.professional_details.education:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(f"Education entry '{entry_id}' not found.")

    def _experience(self, entry_id: str) -> ExperienceEntry:
        for entry in self.resume.professional_details.experience:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(f"Experience entry '{entry_id}' not found.")

    def _list(self, field_name: str) -> List[str]:
        if field_name not in LIST_FIELDS:
            raise EntryNotFoundError(f"Unknown list '{field_name}'.")
        return getattr(self.resume.professional_details, field_name)

    @staticmethod
    def _check_index(items: List[str], index: int, what: str):
        if not 0 <= index < len(items):
            raise EntryNotFoundError(f"No {what} at index {index}.")

    def load_resume(self, resume: ResumeData):
        """Replaces the whole document, e.g. with one read from a file."""
        self.resume = resume
        self.pending_enhancements.clear()
        self._changed()

    # --- Personal details ---

    def update_personal_details(self, **fields: str):
        _check_fields(fields, PERSONAL_FIELDS)
        for key, value in fields.items():
            setattr(self.resume.personal_details, key, value)
        self._changed()

    def upload_photo(self, data: bytes) -> str:
        """
        Stores an uploaded photo and its preview string.

        Returns:
            The `data:` URL used by the preview.

        Raises:
            ResumeValidationError: If the bytes are not a readable image.
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.verify()
            mime_type = Image.MIME.get(image.format, "image/png")
        except Exception as e:
            logging.warning(f"Rejected photo upload: {e}")
            raise ResumeValidationError({"personal_details.photo": "Photo must be an image file"}) from e

        preview = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
        self.resume.personal_details.photo = data
        self.resume.personal_details.photo_preview = preview
        self._changed()
        return preview

    def remove_photo(self):
        self.resume.personal_details.photo = None
        self.resume.personal_details.photo_preview = None
        self._changed()

    # --- Education ---

    def add_education(self, **fields: str) -> EducationEntry:
        _check_fields(fields, EDUCATION_FIELDS)
        entry = EducationEntry(**fields)
        self.resume.professional_details.education.append(entry)
        self._changed()
        return entry

    def update_education(self, entry_id: str, **fields: str) -> EducationEntry:
        _check_fields(fields, EDUCATION_FIELDS)
        entry = self._education(entry_id)
        for key, value in fields.items():
            setattr(entry, key, value)
        self._changed()
        return entry

    def remove_education(self, entry_id: str):
        entry = self._education(entry_id)
        self.resume.professional_details.education.remove(entry)
        self._changed()

    # --- Experience and responsibilities ---

    def add_experience(self, responsibilities: Optional[List[str]] = None, **fields: str) -> ExperienceEntry:
        _check_fields(fields, EXPERIENCE_FIELDS)
        entry = ExperienceEntry(responsibilities=list(responsibilities) if responsibilities is not None else [""],
                                **fields)
        self.resume.professional_details.experience.append(entry)
        self._changed()
        return entry

    def update_experience(self, entry_id: str, **fields: str) -> ExperienceEntry:
        _check_fields(fields, EXPERIENCE_FIELDS)
        entry = self._experience(entry_id)
        for key, value in fields.items():
            setattr(entry, key, value)
        self._changed()
        return entry

    def remove_experience(self, entry_id: str):
        entry = self._experience(entry_id)
        self.resume.professional_details.experience.remove(entry)
        self._drop_pending(entry_id)
        self._changed()

    def add_responsibility(self, entry_id: str, text: str = "") -> int:
        entry = self._experience(entry_id)
        entry.responsibilities.append(text)
        self._changed()
        return len(entry.responsibilities) - 1

    def update_responsibility(self, entry_id: str, index: int, text: str):
        entry = self._experience(entry_id)
        self._check_index(entry.responsibilities, index, "responsibility")
        entry.responsibilities[index] = text
        self._changed()

    def remove_responsibility(self, entry_id: str, index: int):
        entry = self._experience(entry_id)
        self._check_index(entry.responsibilities, index, "responsibility")
        del entry.responsibilities[index]
        # Pending suggestions are keyed by index, which just shifted.
        self._drop_pending(entry_id)
        self._changed()

    def _drop_pending(self, entry_id: str):
        for key in [key for key in self.pending_enhancements if key[0] == entry_id]:
            del self.pending_enhancements[key]

    # --- Skills, strengths, weaknesses, achievements ---

    def add_list_item(self, field_name: str, value: str = "") -> int:
        items = self._list(field_name)
        items.append(value)
        self._changed()
        return len(items) - 1

    def update_list_item(self, field_name: str, index: int, value: str):
        items = self._list(field_name)
        self._check_index(items, index, field_name[:-1] if field_name.endswith("s") else field_name)
        items[index] = value
        self._changed()

    def remove_list_item(self, field_name: str, index: int):
        items = self._list(field_name)
        self._check_index(items, index, field_name[:-1] if field_name.endswith("s") else field_name)
        del items[index]
        self._changed()

    # --- Free text and theme ---

    def set_objective(self, text: str):
        self.resume.objective = text
        self._changed()

    def set_job_description(self, text: str):
        self.ai_state.job_description = text

    def set_theme(self, **colors: str) -> ColorTheme:
        try:
            theme = ColorTheme.model_validate({**self.theme.model_dump(), **colors})
        except ValidationError as e:
            raise ResumeValidationError({
                "theme." + ".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()
            }) from e
        self.theme = theme
        self._refresh_preview()
        return theme

    # --- AI assistance ---

    def _skills_summary(self) -> Dict[str, str]:
        professional = self.resume.professional_details
        return {
            "skills": ", ".join(professional.skills),
            "experience": "; ".join(
                f"{exp.role} at {exp.company}: {'. '.join(exp.responsibilities)}" for exp in professional.experience
            ),
            "strengths": ", ".join(professional.strengths),
            "weaknesses": ", ".join(professional.weaknesses),
        }

    def resume_details_summary(self) -> str:
        professional = self.resume.professional_details
        return (
            f"Skills: {', '.join(professional.skills)}; "
            f"Experience: {', '.join(f'{exp.role} at {exp.company}' for exp in professional.experience)}; "
            f"Strengths: {', '.join(professional.strengths)}; "
            f"Education: {', '.join(f'{edu.degree} from {edu.institution}' for edu in professional.education)}."
        )

    @staticmethod
    def _require(agent, name: str):
        if agent is None:
            raise AiUnavailableError(f"GEMINI_API_KEY environment variable not set; {name} is unavailable.")
        return agent

    async def generate_objective(self) -> str:
        """
        Drafts an objective and applies it to the document.

        The objective it replaces is kept until `discard_generated_objective()`.
        """
        if self.ai_state.is_objective_loading:
            raise FlowInProgressError("Objective generation is already in progress.")
        agent = self._require(self.objective_agent, "objective generation")

        self.ai_state.is_objective_loading = True
        try:
            objective = await asyncio.to_thread(
                agent.run,
                job_analysis=self.ai_state.analysis_suggestions or None,
                **self._skills_summary(),
            )
        except Exception as e:
            logging.error(f"Error generating objective: {e}")
            self.notify("Error", "Failed to generate objective.", "destructive")
            if isinstance(e, AiFlowError):
                raise
            raise AiFlowError(f"Objective generation failed: {e}") from e
        finally:
            self.ai_state.is_objective_loading = False

        if not self.ai_state.generated_objective:
            self._objective_before_ai = self.resume.objective
        self.ai_state.generated_objective = objective
        self.resume.objective = objective
        self._changed()
        self.notify("Objective Generated", "AI has crafted a resume objective for you.")
        return objective

    def discard_generated_objective(self):
        """Restores the objective that was in place before the AI draft."""
        if not self.ai_state.generated_objective:
            return
        if self.resume.objective == self.ai_state.generated_objective:
            self.resume.objective = self._objective_before_ai or ""
        self.ai_state.generated_objective = ""
        self._objective_before_ai = None
        self._changed()

    async def analyze_job_description(self) -> str:
        if not self.ai_state.job_description.strip():
            self.notify("Job Description Empty", "Please paste a job description to analyze.", "destructive")
            raise EmptyInputError("Please paste a job description to analyze.")
        if self.ai_state.is_analysis_loading:
            raise FlowInProgressError("Job description analysis is already in progress.")
        agent = self._require(self.analysis_agent, "job description analysis")

        self.ai_state.is_analysis_loading = True
        try:
            suggestions = await asyncio.to_thread(
                agent.run, self.ai_state.job_description, self.resume_details_summary()
            )
        except Exception as e:
            logging.error(f"Error analyzing job description: {e}")
            self.notify("Error", "Failed to analyze job description.", "destructive")
            if isinstance(e, AiFlowError):
                raise
            raise AiFlowError(f"Job description analysis failed: {e}") from e
        finally:
            self.ai_state.is_analysis_loading = False

        self.ai_state.analysis_suggestions = suggestions
        self.notify("Analysis Complete", "AI has provided suggestions based on the job description.")
        return suggestions

    async def enhance_responsibility(self, entry_id: str, index: int) -> List[str]:
        """Asks for rewrites of one responsibility and keeps them pending until accepted or discarded."""
        entry = self._experience(entry_id)
        self._check_index(entry.responsibilities, index, "responsibility")
        original = entry.responsibilities[index]
        if not original.strip():
            self.notify("Responsibility Empty", "Write a responsibility before asking for suggestions.",
                        "destructive")
            raise EmptyInputError("Write a responsibility before asking for suggestions.")
        key = (entry_id, index)
        if key in self.enhancing:
            raise FlowInProgressError("This responsibility is already being enhanced.")
        agent = self._require(self.enhancement_agent, "responsibility enhancement")

        self.enhancing.add(key)
        try:
            suggestions = await asyncio.to_thread(
                agent.run, original, entry.role or None, self.ai_state.analysis_suggestions or None
            )
        except Exception as e:
            logging.error(f"Error enhancing responsibility: {e}")
            self.notify("Error", "Failed to enhance responsibility.", "destructive")
            if isinstance(e, AiFlowError):
                raise
            raise AiFlowError(f"Responsibility enhancement failed: {e}") from e
        finally:
            self.enhancing.discard(key)

        self.pending_enhancements[key] = suggestions
        self.notify("Suggestions Ready", f"AI has suggested {len(suggestions)} rewrite(s).")
        return suggestions

    def accept_enhancement(self, entry_id: str, index: int, choice: int) -> str:
        suggestions = self.pending_enhancements.get((entry_id, index))
        if not suggestions:
            raise EntryNotFoundError("No pending suggestions for this responsibility.")
        self._check_index(suggestions, choice, "suggestion")
        text = suggestions[choice]
        del self.pending_enhancements[(entry_id, index)]
        self.update_responsibility(entry_id, index, text)
        return text

    def discard_enhancement(self, entry_id: str, index: int):
        if self.pending_enhancements.pop((entry_id, index), None) is None:
            raise EntryNotFoundError("No pending suggestions for this responsibility.")

    # --- Validation and export ---

    def validate(self) -> Dict[str, str]:
        self.field_errors = validate_resume(self.resume)
        return dict(self.field_errors)

    async def export_pdf(self) -> ExportedDocument:
        """
        Validates the resume and exports the mounted preview as a PDF.

        Raises:
            FlowInProgressError: While an objective or analysis call is in flight.
            ResumeValidationError: With per-field messages; entered data is kept.
            PdfExportError: If the capture or PDF generation fails.
        """
        if self.ai_state.is_objective_loading or self.ai_state.is_analysis_loading:
            raise FlowInProgressError("Wait for the AI assistant to finish before exporting.")
        errors = self.validate()
        if errors:
            raise ResumeValidationError(errors)

        self.ai_state.is_objective_loading = True
        self.ai_state.is_analysis_loading = True
        try:
            document = await asyncio.to_thread(self.exporter.export, self.resume)
        except PdfExportError as e:
            logging.error(f"Error generating PDF: {e}")
            self.notify("PDF Generation Failed", str(e), "destructive")
            raise
        finally:
            self.ai_state.is_objective_loading = False
            self.ai_state.is_analysis_loading = False

        self.notify("PDF Generated", "Your resume has been downloaded.")
        return document

    def snapshot(self) -> Dict[str, object]:
        """JSON-ready view of the session for the web client."""
        return {
            "resume": self.resume.model_dump(),
            "ai_state": self.ai_state.model_dump(),
            "theme": self.theme.model_dump(),
            "field_errors": dict(self.field_errors),
            "pending_enhancements": [
                {"experience_id": entry_id, "index": index, "suggestions": suggestions}
                for (entry_id, index), suggestions in self.pending_enhancements.items()
            ],
        }
