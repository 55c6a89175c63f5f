"""Claude backend.

Every prompt prsift sends expects a single JSON object back. Claude has no
JSON response mode, so the assistant turn is pre-filled with ``{`` and the
reply is read as the rest of that object.
"""

from __future__ import annotations

from prsift_core.providers.base import BaseReviewer

_PREFILL = "{"


class AnthropicReviewer(BaseReviewer):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError("Claude reviews need the anthropic SDK: pip install 'prsift[anthropic]'")
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[
                {"role": "user", "content": user_prompt},
                {"role": "assistant", "content": _PREFILL},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text = "".join(block.text for block in response.content if isinstance(block, TextBlock)).strip()
        if not text.startswith(_PREFILL):
            text = _PREFILL + text
        return text
