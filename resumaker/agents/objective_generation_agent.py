import logging
from typing import Optional

from pydantic import BaseModel, Field

from ..core.errors import AiFlowError
from ..utils import parse_model_reply


class ObjectiveReply(BaseModel):
    objective: str = Field(description="A personalized resume objective.")


class ObjectiveGenerationAgent:
    """
    Writes a resume objective from the user's skills, experience, strengths and
    weaknesses, optionally targeted at a previously analyzed job description.
    """

    def __init__(self, gemini_client):
        """
        Initializes the agent with a client to communicate with the Gemini API.

        Args:
            gemini_client: An instance of a client for Gemini API calls.
        """
        self.llm = gemini_client
        self.last_response = ""
        self.last_prompt = ""

    def _create_prompt(self, skills: str, experience: str, strengths: str, weaknesses: str,
                       job_analysis: Optional[str] = None) -> str:
        if job_analysis:
            instructions = f"""
        An analysis of a specific job description has highlighted the following key requirements and suggestions for the resume:
        {job_analysis}

        Considering these specific job requirements derived from the job description, craft a highly targeted resume objective.
        This objective should act as a direct "answer" to what the job demands, clearly connecting the user's profile
        (skills: {skills}, experience: {experience}) to these key requirements. Make it concise and impactful,
        demonstrating an ideal fit for THIS particular job."""
        else:
            instructions = """
        Based on the user's skills, experience, strengths, and weaknesses, write a personalized resume objective that
        highlights their key attributes. The objective should be concise, impactful, and tailored to their general profile."""

        return f"""
        You are a resume writing expert. Your goal is to write a compelling resume objective.

        User's Skills: {skills}
        User's Experience: {experience}
        User's Strengths: {strengths}
        User's Weaknesses: {weaknesses}
        {instructions}

        Respond with a JSON object with a single `objective` string.
        """

    def run(self, skills: str, experience: str, strengths: str, weaknesses: str,
            job_analysis: Optional[str] = None) -> str:
        """
        Generates the objective.

        Args:
            skills: Comma-separated skills.
            experience: A one-line summary of each role.
            strengths: Comma-separated strengths.
            weaknesses: Comma-separated weaknesses.
            job_analysis: Suggestions from a job description analysis, if any.

        Returns:
            The objective text.

        Raises:
            AiFlowError: If the call fails or the reply is malformed. Not retried.
        """
        prompt = self._create_prompt(skills, experience, strengths, weaknesses, job_analysis)
        self.last_prompt = prompt

        try:
            response_text = self.llm.generate_json(prompt, ObjectiveReply)
        except Exception as e:
            raise AiFlowError(f"Objective generation failed: {e}") from e
        self.last_response = response_text

        reply = parse_model_reply(response_text, ObjectiveReply)
        logging.info("Successfully generated resume objective.")
        return reply.objective
