"""Integrations layer for dataset-analyst."""
from .llm_client import LLMClient, LLMResponse, LLMClientError

__all__ = ["LLMClient", "LLMResponse", "LLMClientError"]
