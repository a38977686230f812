import logging

from pydantic import BaseModel, Field

from ..core.errors import AiFlowError
from ..utils import parse_model_reply


class AnalysisReply(BaseModel):
    suggestions: str = Field(description="Suggestions to improve the resume based on the job description.")


class JobDescriptionAnalysisAgent:
    """
    Compares a job description with a summary of the user's resume and returns
    free-text suggestions for improving the resume.
    """

    def __init__(self, gemini_client):
        """
        Initializes the agent with a client to communicate with the Gemini API.

        Args:
            gemini_client: An instance of a client configured to handle Gemini API calls.
        """
        self.llm = gemini_client
        self.last_response = ""
        self.last_prompt = ""

    def _create_prompt(self, job_description: str, resume_details: str) -> str:
        return f"""
        You are a resume expert. You will analyze the job description and the user's resume details
        and provide suggestions to improve the resume.

        **Job Description:**
        ---
        {job_description}
        ---

        **Resume Details:**
        ---
        {resume_details}
        ---

        Respond with a JSON object with a single `suggestions` string.
        """

    def run(self, job_description: str, resume_details: str) -> str:
        """
        Executes the analysis for a given job description.

        Args:
            job_description: The raw text of the job description.
            resume_details: A one-paragraph summary of the resume.

        Returns:
            The suggestions text.

        Raises:
            AiFlowError: If the call fails or the reply is malformed.
        """
        prompt = self._create_prompt(job_description, resume_details)
        self.last_prompt = prompt

        try:
            response_text = self.llm.generate_json(prompt, AnalysisReply)
        except Exception as e:
            raise AiFlowError(f"Job description analysis failed: {e}") from e
        self.last_response = response_text

        reply = parse_model_reply(response_text, AnalysisReply)
        logging.info("Successfully analyzed job description.")
        return reply.suggestions
