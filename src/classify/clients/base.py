from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence


class DocumentClassifier(ABC):
    """
    Vision inference capability: one page image in, one label text out.

    Implementations return the model's raw answer; normalization and the
    allow-list check happen in the classify stage. Failures raise
    `ClassificationError`.
    """

    @abstractmethod
    def model_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def classify(self, *, image_bytes: bytes, mime_type: str, allowed_labels: Sequence[str]) -> str:
        raise NotImplementedError
