"""
Core module for Resumaker.

This package contains the non-agent components that form the backbone of the
application: the document model, the Gemini API client, preview rendering,
the PDF exporter and the form controller.
"""

from .errors import (
    AiFlowError,
    AiUnavailableError,
    EmptyInputError,
    EntryNotFoundError,
    FlowInProgressError,
    PdfExportError,
    ResumakerError,
    ResumeValidationError,
)
from .form_controller import ResumeFormController
from .gemini_client import GeminiClient
from .pdf_exporter import ExportedDocument, PdfExporter
from .preview_renderer import render_preview
from .resume_models import ColorTheme, ResumeData

__all__ = [
    "AiFlowError",
    "AiUnavailableError",
    "ColorTheme",
    "EmptyInputError",
    "EntryNotFoundError",
    "ExportedDocument",
    "FlowInProgressError",
    "GeminiClient",
    "PdfExportError",
    "PdfExporter",
    "ResumakerError",
    "ResumeData",
    "ResumeFormController",
    "ResumeValidationError",
    "render_preview",
]
