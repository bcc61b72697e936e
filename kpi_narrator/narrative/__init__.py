from .prompt import PromptBuilder, PromptConfig, DEFAULT_TEMPLATE
from .requester import NarrativeRequester, validate_narrative
from .llm import LLMClient

__all__ = [
    "PromptBuilder",
    "PromptConfig",
    "DEFAULT_TEMPLATE",
    "NarrativeRequester",
    "validate_narrative",
    "LLMClient",
]
