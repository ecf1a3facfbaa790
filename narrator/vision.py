import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .config import Config

logger = logging.getLogger(__name__)


def build_messages(
    system_prompt: str,
    history: List[Dict[str, Any]],
    image_b64: str,
    instruction: str,
) -> List[Dict[str, Any]]:
    """System prompt, the story so far, then the new frame as a user turn."""
    return [
        {"role": "system", "content": system_prompt},
        *history,
        {
            "role": "user",
            "content": [
                {"type": "text", "text": instruction},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"},
                },
            ],
        },
    ]


class NarrationService:
    """Vision-language narrator backed by the OpenAI chat completions API."""

    def __init__(self, config: Config, client: Optional[OpenAI] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.config.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.config.openai_api_key)
        return self._client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.config.openai_api_key)

    def narrate(self, image_b64: str, history: List[Dict[str, Any]]) -> str:
        if not image_b64:
            raise ValueError("image is required")

        response = self.client.chat.completions.create(
            model=self.config.narration_model,
            messages=build_messages(
                self.config.system_prompt, history, image_b64, self.config.scene_instruction
            ),
            max_tokens=self.config.narration_max_tokens,
        )
        narration = response.choices[0].message.content
        if not narration:
            raise RuntimeError("Narration model returned no text")
        return narration.strip()
