"""
Field-level validation of a resume before it may be exported.

The editable models in `resume_models` accept anything so the form can hold
half-filled entries; this module runs the same data through a strict schema
and reports one message per dotted field path.
"""
import re
from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, HttpUrl, TypeAdapter, ValidationError
from pydantic_core import PydanticCustomError

from .resume_models import ResumeData

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_http_url = TypeAdapter(HttpUrl)


def _required(message: str):
    def check(value: str) -> str:
        if not value or not value.strip():
            raise PydanticCustomError("required", message)
        return value
    return AfterValidator(check)


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value or ""):
        raise PydanticCustomError("email", "Invalid email address")
    return value


def _check_optional_url(value: str) -> str:
    if not value:
        return value
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise PydanticCustomError("url", "Invalid LinkedIn URL")
    return value


def _check_responsibilities(value: List[str]) -> List[str]:
    if not value:
        raise PydanticCustomError("too_short", "At least one responsibility is required")
    return value


class _PersonalDetailsSchema(BaseModel):
    name: Annotated[str, _required("Name is required")]
    address: Annotated[str, _required("Address is required")]
    phone: Annotated[str, _required("Phone is required")]
    email: Annotated[str, AfterValidator(_check_email)]
    linkedin: Annotated[str, AfterValidator(_check_optional_url)] = ""


class _EducationEntrySchema(BaseModel):
    id: str
    institution: Annotated[str, _required("Institution is required")]
    degree: Annotated[str, _required("Degree is required")]
    graduation_year: Annotated[str, _required("Graduation year is required")]
    details: Optional[str] = None


class _ExperienceEntrySchema(BaseModel):
    id: str
    company: Annotated[str, _required("Company is required")]
    role: Annotated[str, _required("Role is required")]
    duration: Annotated[str, _required("Duration is required")]
    responsibilities: Annotated[
        List[Annotated[str, _required("Responsibility cannot be empty")]],
        AfterValidator(_check_responsibilities),
    ]


class _ProfessionalDetailsSchema(BaseModel):
    experience: List[_ExperienceEntrySchema]
    education: List[_EducationEntrySchema]
    skills: List[Annotated[str, _required("Skill cannot be empty")]]
    strengths: List[Annotated[str, _required("Strength cannot be empty")]]
    weaknesses: List[Annotated[str, _required("Weakness cannot be empty")]]
    achievements: List[Annotated[str, _required("Achievement cannot be empty")]]


class _ResumeSchema(BaseModel):
    personal_details: _PersonalDetailsSchema
    professional_details: _ProfessionalDetailsSchema
    objective: Optional[str] = None


def validate_resume(resume: ResumeData) -> Dict[str, str]:
    """
    Validates a resume against the export schema.

    Args:
        resume: The resume as currently edited.

    Returns:
        A mapping of dotted field path (e.g. "professional_details.skills.2")
        to message. Empty when the resume is valid.
    """
    try:
        _ResumeSchema.model_validate(resume.model_dump())
    except ValidationError as e:
        errors = {}
        for error in e.errors():
            path = ".".join(str(part) for part in error["loc"])
            errors.setdefault(path, error["msg"])
        return errors
    return {}
