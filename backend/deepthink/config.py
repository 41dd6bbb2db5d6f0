"""Configuration for the deep-thinking assistant service."""

import os

from pydantic import BaseModel, Field

# Defaults (overridable through the environment)
ASSIST_BASE_URL = os.getenv("ASSIST_BASE_URL", "http://localhost:5000")
ESTABLISH_TIMEOUT = float(os.getenv("ASSIST_ESTABLISH_TIMEOUT", "10"))  # seconds
READ_TIMEOUT = float(os.getenv("ASSIST_READ_TIMEOUT", "120"))  # seconds
EXAMPLES_TTL_SECONDS = int(os.getenv("ASSIST_EXAMPLES_TTL", "600"))
STAGE_DELAY_MIN = float(os.getenv("ASSIST_STAGE_DELAY_MIN", "0.8"))
STAGE_DELAY_MAX = float(os.getenv("ASSIST_STAGE_DELAY_MAX", "2.0"))
IDLE_TIMEOUT_MINUTES = int(os.getenv("ASSIST_IDLE_TIMEOUT_MINUTES", "30"))
CLEANUP_INTERVAL_SECONDS = float(os.getenv("ASSIST_CLEANUP_INTERVAL", "60"))


class AssistConfig(BaseModel):
    """Settings for talking to the remote reasoning service."""

    base_url: str = ASSIST_BASE_URL
    deep_thinking_path: str = "/api/llm/deepresearch"
    chat_path: str = "/api/llm/chat"
    examples_path: str = "/api/llm/examples"

    establish_timeout: float = Field(default=ESTABLISH_TIMEOUT, gt=0)
    """Upper bound on waiting for response headers before falling back."""

    read_timeout: float = Field(default=READ_TIMEOUT, gt=0)
    """Maximum silence between two chunks of an open stream."""

    examples_ttl_seconds: int = Field(default=EXAMPLES_TTL_SECONDS, ge=0)
    stage_delay_min: float = Field(default=STAGE_DELAY_MIN, ge=0)
    stage_delay_max: float = Field(default=STAGE_DELAY_MAX, ge=0)

    @classmethod
    def from_env(cls) -> "AssistConfig":
        """Build a config from the current environment.

        Module-level defaults are captured at import time, so this re-reads
        the variables for callers that change the environment later.
        """
        return cls(
            base_url=os.getenv("ASSIST_BASE_URL", ASSIST_BASE_URL),
            establish_timeout=float(
                os.getenv("ASSIST_ESTABLISH_TIMEOUT", str(ESTABLISH_TIMEOUT))
            ),
            read_timeout=float(os.getenv("ASSIST_READ_TIMEOUT", str(READ_TIMEOUT))),
            examples_ttl_seconds=int(
                os.getenv("ASSIST_EXAMPLES_TTL", str(EXAMPLES_TTL_SECONDS))
            ),
            stage_delay_min=float(
                os.getenv("ASSIST_STAGE_DELAY_MIN", str(STAGE_DELAY_MIN))
            ),
            stage_delay_max=float(
                os.getenv("ASSIST_STAGE_DELAY_MAX", str(STAGE_DELAY_MAX))
            ),
        )

    def url(self, path: str) -> str:
        """Join the base URL with an endpoint path."""
        return f"{self.base_url.rstrip('/')}{path}"
