"""Gemini-backed generation collaborator (google-genai SDK)."""

import time
from typing import Optional

from loguru import logger

from ..config import GeminiConfig
from ..errors import GenerationUnavailableError
from ..prompts import DRAFT_SYSTEM_INSTRUCTION, REVISION_SYSTEM_INSTRUCTION, build_revision_prompt
from .base import GenerationCollaborator, RevisionRequest


class GeminiCollaborator(GenerationCollaborator):
    def __init__(self, config: GeminiConfig, max_story_chars: int = 20000):
        self.config = config
        self.max_story_chars = max_story_chars

    def propose(self, request: RevisionRequest) -> str:
        prompt = build_revision_prompt(request, max_story_chars=self.max_story_chars)
        return self._call(
            REVISION_SYSTEM_INSTRUCTION,
            prompt,
            temperature=self.config.temperature,
            json_mode=True,
        )

    def draft(self, prompt: str) -> str:
        return self._call(
            DRAFT_SYSTEM_INSTRUCTION,
            prompt,
            temperature=self.config.draft_temperature,
            json_mode=False,
        )

    def _call(
        self,
        system: str,
        prompt: str,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> str:
        if not self.config.api_key:
            raise GenerationUnavailableError("No Gemini API key configured (set GEMINI_API_KEY)")

        try:
            text = self._generate(system, prompt, temperature, json_mode)
        except GenerationUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Gemini call failed: {e}")
            raise GenerationUnavailableError(f"Gemini call failed: {e}") from e

        if not text:
            raise GenerationUnavailableError("Gemini returned an empty response")
        return text

    def _generate(self, system: str, prompt: str, temperature: Optional[float], json_mode: bool) -> str:
        from google import genai
        from google.genai import types

        start = time.time()
        client = genai.Client(api_key=self.config.api_key)
        response = client.models.generate_content(
            model=self.config.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system,
                temperature=self.config.temperature if temperature is None else temperature,
                top_p=self.config.top_p,
                top_k=self.config.top_k,
                max_output_tokens=self.config.max_output_tokens,
                response_mime_type="application/json" if json_mode else "text/plain",
            ),
        )
        logger.debug(f"Gemini {self.config.model} answered in {time.time() - start:.2f}s")
        return response.text
