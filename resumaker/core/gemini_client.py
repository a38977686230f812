import logging
from typing import Type

from google import genai
from google.genai import types
from pydantic import BaseModel
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential


class GeminiClient:
    """
    A thin client for the Google Gemini API using the Google GenAI SDK.

    Holds the API key and model configuration and sends single prompts. Calls are
    made once by default; `max_attempts` > 1 enables exponential-backoff retries.
    """

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash", max_attempts: int = 1):
        """
        Initializes and configures the Gemini client.

        Args:
            api_key: The Google AI API key.
            model_name: The specific Gemini model to use (e.g., "gemini-2.5-pro").
            max_attempts: Total attempts per call, including the first one.
        """
        if not api_key:
            raise ValueError("API key for Gemini client cannot be None or empty.")

        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name
        self.max_attempts = max(max_attempts, 1)
        logging.info(f"GeminiClient initialized with model: {self.model_name}")

    def _retrying(self) -> Retrying:
        return Retrying(
            wait=wait_exponential(multiplier=1, min=4, max=10),
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(Exception),
            before_sleep=lambda retry_state: logging.warning(
                f"Retrying Gemini API call... Attempt #{retry_state.attempt_number}"
            ),
            reraise=True,
        )

    def _generate(self, prompt: str, config: types.GenerateContentConfig) -> str:
        for attempt in self._retrying():
            with attempt:
                try:
                    logging.info("Sending prompt to Gemini API...")
                    response = self.client.models.generate_content(
                        model=self.model_name,
                        contents=prompt,
                        config=config,
                    )
                except Exception as e:
                    logging.error(f"An error occurred in GeminiClient: {e}")
                    raise

                if response.text:
                    return response.text
                logging.warning("Gemini API returned an empty or blocked response.")
                return ""

    def generate_json(self, prompt: str, schema: Type[BaseModel]) -> str:
        """
        Generates a JSON reply constrained to a pydantic schema.

        Args:
            prompt: The text prompt to send to the model.
            schema: The pydantic model the reply must follow.

        Returns:
            The raw JSON text of the reply (callers validate it), or "".
        """
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        return self._generate(prompt, config)
