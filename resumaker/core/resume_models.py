"""
Document model for a resume being edited in one session.

All models start out empty: the form is filled in incrementally, so required
fields are only enforced by `core.validation` at export time.
"""
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


def new_entry_id() -> str:
    """Session-local identifier used to key list entries. Not a durable key."""
    return uuid.uuid4().hex


class PersonalDetails(BaseModel):
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    linkedin: str = ""
    # Raw upload; kept out of serialized payloads, the preview string carries the image.
    photo: Optional[bytes] = Field(default=None, exclude=True)
    photo_preview: Optional[str] = None


class EducationEntry(BaseModel):
    id: str = Field(default_factory=new_entry_id)
    institution: str = ""
    degree: str = ""
    graduation_year: str = ""
    details: Optional[str] = None


class ExperienceEntry(BaseModel):
    id: str = Field(default_factory=new_entry_id)
    company: str = ""
    role: str = ""
    duration: str = ""
    responsibilities: List[str] = Field(default_factory=list)


class ProfessionalDetails(BaseModel):
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)


class ResumeData(BaseModel):
    personal_details: PersonalDetails = Field(default_factory=PersonalDetails)
    professional_details: ProfessionalDetails = Field(default_factory=ProfessionalDetails)
    objective: str = ""


class AiAnalysisState(BaseModel):
    """Transient AI state shown next to the form. Never part of the exported document."""

    job_description: str = ""
    generated_objective: str = ""
    analysis_suggestions: str = ""
    is_objective_loading: bool = False
    is_analysis_loading: bool = False


class ColorTheme(BaseModel):
    left_column_bg_color: str = Field(default="#30475E", pattern=HEX_COLOR)
    left_column_text_color: str = Field(default="#FFFFFF", pattern=HEX_COLOR)
    skill_tag_bg_color: str = Field(default="#39A2DB", pattern=HEX_COLOR)
    skill_tag_text_color: str = Field(default="#FFFFFF", pattern=HEX_COLOR)


class Notification(BaseModel):
    """A toast-style message for the user."""

    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


# Flat string lists of ProfessionalDetails that the form edits item by item.
LIST_FIELDS = ("skills", "strengths", "weaknesses", "achievements")
