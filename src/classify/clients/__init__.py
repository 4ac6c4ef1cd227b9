from .base import DocumentClassifier
from .openai_client import OpenAIVisionClassifier, build_messages, build_prompt

__all__ = ["DocumentClassifier", "OpenAIVisionClassifier", "build_messages", "build_prompt"]
