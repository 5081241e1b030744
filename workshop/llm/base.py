from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

SIMULATE_SYSTEM = (
    "You are a terminal. You execute the program you are given and print exactly what it "
    "would write to stdout and stderr. No commentary, no markdown."
)


class AICollaborator(ABC):
    """
    The four capabilities the workshop consumes from a generative model.

    Implementations are async; every call may raise on network or API errors
    and callers are expected to catch at the call site.
    """

    name: str = "collaborator"

    @abstractmethod
    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def generate_raw_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> str:
        raise NotImplementedError

    @abstractmethod
    async def open_chat_session(self, system_instruction: str) -> Any:
        """Return an opaque session handle accepted by stream_message()."""
        raise NotImplementedError

    @abstractmethod
    def stream_message(self, session: Any, message: str) -> AsyncIterator[str]:
        raise NotImplementedError

    async def simulate_execution(self, code: str, language: str) -> str:
        prompt = (
            f"Simulate running the following {language} program and show its terminal output.\n"
            "If the program starts a server or waits for input, show the startup output and stop.\n\n"
            f"```{language}\n{code}\n```"
        )
        return await self.generate_raw_text(prompt, SIMULATE_SYSTEM, temperature=0.0)
