"""
Classify stage (boundary): one representative page image -> document type.

The inference call sits behind `DocumentClassifier`; the stage owns label
normalization, the allow-list check and manifest persistence.
"""

from .clients import DocumentClassifier, OpenAIVisionClassifier
from .labels import load_allowed_labels, normalize_label
from .module import classify_document, run_classify_stage

__all__ = [
    "DocumentClassifier",
    "OpenAIVisionClassifier",
    "classify_document",
    "load_allowed_labels",
    "normalize_label",
    "run_classify_stage",
]
