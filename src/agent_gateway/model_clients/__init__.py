from .base_client import BaseModelClient
from .openai.openai_client import OpenAIClient

__all__ = [
    "BaseModelClient",
    "OpenAIClient",
]
