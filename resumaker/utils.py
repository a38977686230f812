import logging
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from .core.errors import AiFlowError

ReplyModel = TypeVar("ReplyModel", bound=BaseModel)


def clean_json_reply(response_text: str) -> str:
    """Strips the markdown code fences models often wrap around JSON."""
    return (response_text or "").strip().replace("```json", "").replace("```", "").strip()


def parse_model_reply(response_text: str, schema: Type[ReplyModel]) -> ReplyModel:
    """
    Validates a model reply against its declared shape.

    Raises:
        AiFlowError: If the reply is empty, not JSON, or does not match `schema`.
    """
    clean_response = clean_json_reply(response_text)
    if not clean_response:
        raise AiFlowError("The AI service returned an empty response.")
    try:
        return schema.model_validate_json(clean_response)
    except ValidationError as e:
        logging.error(f"Failed to validate the AI response as {schema.__name__}: {e}")
        raise AiFlowError(f"The AI service returned a malformed response: {e.error_count()} error(s).") from e
