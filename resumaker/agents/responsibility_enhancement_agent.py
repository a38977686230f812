import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from ..core.errors import AiFlowError
from ..utils import parse_model_reply

MAX_SUGGESTIONS = 3


class EnhancementReply(BaseModel):
    suggested_responsibilities: List[str] = Field(
        default_factory=list,
        description="An array of 2-3 AI-enhanced responsibility suggestions.",
    )


class FallbackReply(BaseModel):
    suggestion: str = ""


class ResponsibilityEnhancementAgent:
    """
    Rewrites a single resume bullet point into 2-3 stronger variants.

    The agent never returns an empty list: when the model's reply has no usable
    suggestion it makes one simplified request, and if that also comes back
    empty it hands back the original text.
    """

    def __init__(self, gemini_client):
        self.llm = gemini_client
        self.last_response = ""
        self.last_prompt = ""

    def _create_prompt(self, original: str, role: Optional[str] = None,
                       job_analysis_context: Optional[str] = None) -> str:
        context = ""
        if role:
            context += f"\n        Job Role Context: {role}\n"
        if job_analysis_context:
            context += f"\n        Job Description Analysis Context: {job_analysis_context}\n"

        return f"""
        You are an expert resume writer. Your task is to enhance the given resume responsibility/bullet point.
        Make it more action-oriented, impactful, and quantifiable if possible.
        If a job role is provided, tailor the language to that role.
        If job analysis context is provided, try to incorporate relevant keywords or align the tone with the job description.
        Provide 2-3 varied and improved suggestions.

        Original Responsibility: {original}
        {context}
        Rewrite the original responsibility into 2-3 improved versions, returned as a JSON object
        with a `suggested_responsibilities` array of strings.
        """

    def _create_fallback_prompt(self, original: str) -> str:
        return (
            "Rewrite the following resume responsibility to be more action-oriented and impactful. "
            f"Respond with a JSON object with a single `suggestion` string: {original}"
        )

    def _ask(self, prompt: str, schema):
        self.last_prompt = prompt
        try:
            response_text = self.llm.generate_json(prompt, schema)
        except Exception as e:
            raise AiFlowError(f"Responsibility enhancement failed: {e}") from e
        self.last_response = response_text
        try:
            return parse_model_reply(response_text, schema)
        except AiFlowError as e:
            logging.warning(f"Discarding unusable enhancement reply: {e}")
            return None

    def run(self, original: str, role: Optional[str] = None,
            job_analysis_context: Optional[str] = None) -> List[str]:
        """
        Args:
            original: The responsibility text to improve.
            role: The job role it belongs to, for context.
            job_analysis_context: Suggestions from a job description analysis, if any.

        Returns:
            Between one and three suggestions; `[original]` when the model gave none.

        Raises:
            AiFlowError: If a model call itself fails.
        """
        reply = self._ask(self._create_prompt(original, role, job_analysis_context), EnhancementReply)
        suggestions = []
        if reply is not None:
            suggestions = [s.strip() for s in reply.suggested_responsibilities if s and s.strip()]
        if suggestions:
            logging.info(f"Generated {len(suggestions)} responsibility suggestion(s).")
            return suggestions[:MAX_SUGGESTIONS]

        logging.warning("No suggestions in the primary reply; sending the simplified request.")
        fallback = self._ask(self._create_fallback_prompt(original), FallbackReply)
        if fallback is not None and fallback.suggestion.strip():
            return [fallback.suggestion.strip()]

        logging.warning("Fallback request produced nothing; returning the original responsibility.")
        return [original]
