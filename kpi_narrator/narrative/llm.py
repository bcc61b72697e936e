import os
from typing import Optional

from kpi_narrator.errors import (
    AuthOrQuotaError,
    LLMConfigurationError,
    LLMDisabledError,
    RequestError,
    TransientRequestError,
)

TRANSIENT_STATUS = (408, 409, 429, 500, 502, 503, 504)
FATAL_STATUS = (400, 401, 403, 404, 422)

QUOTA_MARKERS = ("insufficient_quota", "quota exceeded", "billing")

SYSTEM_PROMPT = (
    "You are a professional business analyst writing dashboard narratives."
)


def _status_of(exc: BaseException) -> Optional[int]:
    # openai exposes status_code, google.api_core exposes code
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(exc: BaseException) -> RequestError:
    """
    Map a provider SDK exception onto the request error taxonomy.

    Works on status codes and exception names so it needs neither
    SDK to be importable.
    """
    if isinstance(exc, RequestError):
        return exc

    message = str(exc)
    lowered = message.lower()
    name = type(exc).__name__
    status = _status_of(exc)

    if any(marker in lowered for marker in QUOTA_MARKERS):
        # per-minute quotas are rate limits and clear on their own
        if "per minute" not in lowered:
            return AuthOrQuotaError(f"{name}: {message}")

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return TransientRequestError(f"{name}: {message}")

    if name in (
        "APITimeoutError",
        "APIConnectionError",
        "DeadlineExceeded",
        "ServiceUnavailable",
        "ResourceExhausted",
        "RateLimitError",
        "InternalServerError",
    ):
        return TransientRequestError(f"{name}: {message}")

    if status in TRANSIENT_STATUS or (status is not None and status >= 500):
        return TransientRequestError(f"{name} ({status}): {message}")

    if status in FATAL_STATUS or name in (
        "AuthenticationError",
        "PermissionDeniedError",
        "Unauthenticated",
        "PermissionDenied",
    ):
        return AuthOrQuotaError(f"{name} ({status}): {message}")

    return AuthOrQuotaError(f"{name}: {message}")


class LLMClient:
    """
    Provider-agnostic text-generation client.

    Supported providers:
    - openai
    - gemini

    SDK retries are switched off; the narrative requester owns
    the retry policy.
    """

    def __init__(self, config: dict):
        self.enabled = bool(config.get("enabled", False))
        self.provider = config.get("provider", "openai")

        if self.provider == "gemini":
            self.model = config.get("model", "gemini-1.5-flash-latest")
        else:
            self.model = config.get("model", "gpt-4o-mini")

        self.timeout = float(config.get("timeout", 60))
        self.seed = config.get("seed", 0)

        if self.enabled:
            self._validate_config()

    # -------------------------------------------------
    # PUBLIC
    # -------------------------------------------------

    def generate(
        self,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        deterministic: bool = True,
    ) -> str:
        if not self.enabled:
            raise LLMDisabledError("LLM narrative is disabled")

        if not prompt or not isinstance(prompt, str):
            raise ValueError("Prompt must be a non-empty string")

        if self.provider == "openai":
            call = self._call_openai
        elif self.provider == "gemini":
            call = self._call_gemini
        else:
            raise LLMConfigurationError(
                f"Unsupported LLM provider: {self.provider}"
            )

        try:
            return call(prompt, temperature, max_output_tokens, deterministic)
        except (LLMConfigurationError, RequestError):
            raise
        except Exception as e:
            raise classify_error(e) from e

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def _validate_config(self):
        if not self.model:
            raise LLMConfigurationError("LLM model must be specified")

        if self.provider not in ("openai", "gemini"):
            raise LLMConfigurationError(
                f"Unsupported LLM provider: {self.provider}"
            )

        if self.provider == "openai":
            if not os.getenv("OPENAI_API_KEY"):
                raise LLMConfigurationError("OPENAI_API_KEY is missing")

        if self.provider == "gemini":
            if not os.getenv("GEMINI_API_KEY"):
                raise LLMConfigurationError("GEMINI_API_KEY is missing")

    # -------------------------------------------------
    # PROVIDERS
    # -------------------------------------------------

    def _call_openai(
        self, prompt, temperature, max_output_tokens, deterministic
    ) -> str:
        try:
            from openai import OpenAI
        except ImportError as e:
            raise LLMConfigurationError(
                "openai package not installed"
            ) from e

        client = OpenAI(timeout=self.timeout, max_retries=0)

        extra = {"seed": self.seed} if deterministic else {}

        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_output_tokens,
            n=1,
            **extra,
        )

        choice = response.choices[0]
        if choice.finish_reason == "length":
            # cut off by max_output_tokens; hand back what we have and
            # let response validation decide
            return (choice.message.content or "").rstrip()

        return (choice.message.content or "").strip()

    def _call_gemini(
        self, prompt, temperature, max_output_tokens, deterministic
    ) -> str:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise LLMConfigurationError(
                "google-generativeai package not installed"
            ) from e

        genai.configure(api_key=os.getenv("GEMINI_API_KEY"))

        model = genai.GenerativeModel(
            self.model, system_instruction=SYSTEM_PROMPT
        )

        generation_config = {
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
            "candidate_count": 1,
        }
        if deterministic:
            generation_config["top_k"] = 1

        response = model.generate_content(
            prompt,
            generation_config=generation_config,
            request_options={"timeout": self.timeout},
        )

        try:
            text = response.text
        except ValueError:
            # blocked or empty candidate
            text = ""

        return (text or "").strip()
