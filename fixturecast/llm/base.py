"""Common result type and interface of the LLM HTTP clients."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fixturecast.llm.errors import ProviderErrorKind


@dataclass
class LLMResult:
    """Result from an LLM API call."""

    status: str  # COMPLETED, ERROR, TIMEOUT
    text: str
    exec_ms: int
    model_version: str
    tokens_in: int = 0
    tokens_out: int = 0
    error: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None
    http_status: Optional[int] = None
    finish_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "COMPLETED"


class LLMClient(ABC):
    """An async text-generation client for one provider family."""

    provider: str = ""

    @abstractmethod
    async def generate(self, prompt: str, model: Optional[str] = None) -> LLMResult:
        """Send a prompt. Failures are reported on the result, never raised."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    async def close(self) -> None:
        return None
