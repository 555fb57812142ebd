"""LLM prompt service used to answer transcribed speech.

Supports OpenAI chat completions. The echo provider returns the prompt
unchanged so the pipeline stays runnable without an API key.
"""
from __future__ import annotations

import logging

from openai import OpenAI

from voice_services.errors import AudioProcessingError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful voice assistant. Answer the user's transcribed speech concisely."


class PromptService:
    """Send transcribed text to a language model and return its reply.

    Supports:
    - OpenAI (``provider="openai"``, requires an API key)
    - Echo (``provider="echo"``)
    """

    PROVIDERS = ("echo", "openai")

    def __init__(
        self,
        provider: str = "echo",
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 500,
        client: OpenAI | None = None,
    ):
        if provider not in self.PROVIDERS:
            raise ValueError(f"Unknown AI provider {provider!r}; expected one of {self.PROVIDERS}")
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client

        if provider == "openai" and self.client is None:
            if api_key:
                self.client = OpenAI(api_key=api_key)
                logger.info("OpenAI prompt service initialized with model: %s", model)
            else:
                logger.warning("OpenAI configuration is invalid. API key is required.")

    def send_prompt(self, prompt: str) -> str:
        if prompt is None:
            raise ValueError("Prompt cannot be None")
        if not prompt.strip():
            raise AudioProcessingError("Prompt cannot be empty")

        if self.provider == "echo":
            return prompt

        if self.client is None:
            raise AudioProcessingError("OpenAI configuration is invalid. Please check API key.")

        logger.debug("Sending prompt to OpenAI: %s", prompt)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            content = response.choices[0].message.content or ""
        except Exception as exc:
            logger.error("Failed to get response from OpenAI: %s", exc, exc_info=True)
            raise AudioProcessingError(f"Failed to communicate with OpenAI: {exc}") from exc

        logger.debug("Received response from OpenAI: %s", content)
        return content
