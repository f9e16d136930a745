"""
Text classification through an OpenAI-compatible inference endpoint.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tabpilot.config import get_logger

logger = get_logger(__name__)

CLASSIFICATION_INSTRUCTION = (
    "You sort browser tabs into topical groups. "
    "Reply with a single JSON object that follows the format given in the request "
    "and contains nothing else."
)


class InferenceError(Exception):
    """The inference endpoint could not produce a reply."""


class InferenceClient(ABC):
    """Abstract text-generation endpoint used for classification."""

    @abstractmethod
    async def classify(self, prompt: str, json_mode: bool = True) -> str:
        """
        Send a classification prompt and return the raw reply text.

        Args:
            prompt: Natural-language instruction including the items to classify
            json_mode: Request the endpoint's structured JSON output mode

        Returns:
            Reply text (JSON when json_mode is honoured)

        Raises:
            InferenceError: If the endpoint fails
        """
        pass


class OpenAIInferenceClient(InferenceClient):
    """Inference client for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the endpoint
            model: Chat model name
            base_url: API base URL (e.g. https://api.deepseek.com); OpenAI if omitted
            timeout: Request timeout in seconds
            client: Preconfigured AsyncOpenAI client (used by tests)
        """
        self.model = model
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(timeout=timeout),
        )

    @retry(
        retry=retry_if_exception_type((openai.APIConnectionError, openai.APITimeoutError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def _complete(self, prompt: str, json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": CLASSIFICATION_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            **kwargs,
        )
        return (response.choices[0].message.content or "").strip()

    async def classify(self, prompt: str, json_mode: bool = True) -> str:
        try:
            return await self._complete(prompt, json_mode)
        except openai.OpenAIError as e:
            logger.error(f"Inference request failed: {e}")
            raise InferenceError(f"OpenAI API error: {e}") from e

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
