import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from kpi_narrator.core.records import PromptDocument
from kpi_narrator.errors import (
    ConfigurationError,
    PromptTooLargeError,
    UnresolvedPlaceholderError,
)
from kpi_narrator.utils.logger import get_logger

log = get_logger("prompt-builder")

_TOKEN = re.compile(r"\{\{|\}\}|\{([A-Za-z_][A-Za-z0-9_]*)\}")

KNOWN_PLACEHOLDERS = ("company_name", "company_description", "analysis_period")


DEFAULT_TEMPLATE = """You are a senior business analyst at {company_name}.
{company_description}

Write the executive narrative for the monthly KPI dashboard covering {analysis_period}.

Rules:
- Use ONLY the figures in the JSON below. Do not invent numbers.
- The JSON is a list of monthly KPI snapshots, most recent month first.
- Compare {analysis_period} with the previous month and with the same month last year when present.
- Call out the two or three largest movements and what they mean for the business.
- Write two to four short paragraphs of plain prose. No bullet points, no headings.
- End every paragraph with a full sentence.

KPI history (JSON):"""


@dataclass(frozen=True)
class PromptConfig:
    template: str = DEFAULT_TEMPLATE
    company_name: str = ""
    company_description: str = ""
    separator: str = "\n\n"
    strict: bool = False
    max_prompt_chars: int = 30000
    max_prompt_tokens: Optional[int] = None
    chars_per_token: float = 4.0

    def __post_init__(self):
        if not self.template or not self.template.strip():
            raise ConfigurationError("Prompt template must not be empty")
        if self.max_prompt_chars <= 0:
            raise ConfigurationError("max_prompt_chars must be positive")
        if self.max_prompt_tokens is not None and self.max_prompt_tokens <= 0:
            raise ConfigurationError("max_prompt_tokens must be positive")
        if self.chars_per_token <= 0:
            raise ConfigurationError("chars_per_token must be positive")


def find_placeholders(template: str) -> List[str]:
    return [m.group(1) for m in _TOKEN.finditer(template) if m.group(1)]


def estimate_tokens(text: str, chars_per_token: float = 4.0) -> int:
    return math.ceil(len(text) / chars_per_token)


class PromptBuilder:
    """
    Renders the instruction template and appends the serialized history.

    Unknown `{placeholders}` are kept verbatim, or rejected in strict
    mode. The finished prompt is checked against the character and
    token budgets and is never truncated: cutting it would corrupt the
    JSON and hide the oldest periods from the model.
    """

    def __init__(self, config: Optional[PromptConfig] = None):
        self.config = config or PromptConfig()

    def render(self, analysis_period: str = "") -> str:
        values: Dict[str, str] = {
            "company_name": self.config.company_name,
            "company_description": self.config.company_description,
            "analysis_period": analysis_period,
        }
        unresolved = []

        def _sub(match: re.Match) -> str:
            token = match.group(0)
            if token == "{{":
                return "{"
            if token == "}}":
                return "}"
            name = match.group(1)
            if name in values:
                return values[name]
            unresolved.append(name)
            return token

        rendered = _TOKEN.sub(_sub, self.config.template)

        if unresolved:
            if self.config.strict:
                raise UnresolvedPlaceholderError(unresolved)
            log.warning(
                "Template placeholders left unresolved: %s",
                ", ".join(sorted(set(unresolved))),
            )

        return rendered

    def build(self, history_json: str, analysis_period: str = "") -> PromptDocument:
        if not history_json:
            raise ConfigurationError("Serialized history is empty")

        text = self.render(analysis_period) + self.config.separator + history_json
        self.check_budget(text)

        log.info(
            "Prompt built for %s: %d chars (~%d tokens)",
            analysis_period or "<unspecified>",
            len(text),
            estimate_tokens(text, self.config.chars_per_token),
        )

        return PromptDocument(
            analysis_period=analysis_period,
            text=text,
            history_json=history_json,
        )

    def check_budget(self, text: str) -> None:
        if len(text) > self.config.max_prompt_chars:
            raise PromptTooLargeError(len(text), self.config.max_prompt_chars)

        if self.config.max_prompt_tokens is not None:
            tokens = estimate_tokens(text, self.config.chars_per_token)
            if tokens > self.config.max_prompt_tokens:
                raise PromptTooLargeError(
                    tokens, self.config.max_prompt_tokens, unit="tokens"
                )
