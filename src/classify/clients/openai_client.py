"""
OpenAI-compatible chat-completions client (LM Studio, vLLM, OpenAI, ...).
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Sequence

import openai
from openai import OpenAI

from staging.errors import ClassificationError

from .base import DocumentClassifier

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "This is a document. Determine its type from the list: {labels}.\n"
    'If none of the types fits, answer "unknown".\n'
    "Answer with ONLY one word (the type name)."
)


def build_prompt(allowed_labels: Sequence[str]) -> str:
    return PROMPT_TEMPLATE.format(labels=", ".join(allowed_labels))


def build_messages(*, prompt: str, image_bytes: bytes, mime_type: str) -> list[dict[str, Any]]:
    data = base64.b64encode(image_bytes).decode("ascii")
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{data}"}},
            ],
        }
    ]


class OpenAIVisionClassifier(DocumentClassifier):
    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str,
        temperature: float = 0.1,
        timeout_s: float = 120.0,
        client: Any = None,
    ) -> None:
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.client = client or OpenAI(base_url=base_url, api_key=api_key, timeout=timeout_s, max_retries=0)

    def model_id(self) -> str:
        return self.model

    def classify(self, *, image_bytes: bytes, mime_type: str, allowed_labels: Sequence[str]) -> str:
        messages = build_messages(
            prompt=build_prompt(allowed_labels),
            image_bytes=image_bytes,
            mime_type=mime_type,
        )
        logger.debug("Requesting classification (model=%s, base_url=%s)", self.model, self.base_url)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise ClassificationError(f"VLM endpoint unreachable at {self.base_url}: {e}") from e
        except openai.APIError as e:
            raise ClassificationError(f"VLM API error: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ClassificationError(f"Malformed VLM response: {response!r}") from e
        if not isinstance(content, str):
            raise ClassificationError(f"VLM response has no text content: {response!r}")
        return content
