"""GPT backend, using the chat completions JSON-object mode."""

from __future__ import annotations

import logging

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prsift_core.providers.base import BaseReviewer

logger = logging.getLogger(__name__)


class OpenAIReviewer(BaseReviewer):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        if _OpenAI is None:
            raise ImportError("GPT reviews need the openai SDK: pip install 'prsift[openai]'")
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            response_format={"type": "json_object"},
        )
        choice = response.choices[0]
        if choice.finish_reason == "length":
            # A truncated object never parses; _parse reports it.
            logger.warning("%s response hit max_tokens=%d", self.MODEL, self.MAX_TOKENS)
        # content is None when the model refuses.
        return choice.message.content or ""
