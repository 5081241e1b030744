from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from workshop.llm.base import AICollaborator
from workshop.utils.logger import get_logger


class BaseAgent(ABC):
    """
    Base class for all agents.
    Provides access to the AI collaborator, a logger and the agent's prompt.md.
    """

    prompt_file: Optional[str] = "prompt.md"

    def __init__(self, llm: AICollaborator) -> None:
        self.llm = llm
        self.logger = get_logger(self.__class__.__name__)
        self._system_prompt = ""

    def _load_prompt(self, anchor: str) -> str:
        """Read the prompt.md that sits next to the agent module `anchor` (its __file__)."""
        if not self.prompt_file:
            return ""
        return Path(anchor).with_name(self.prompt_file).read_text(encoding="utf-8").strip()

    @abstractmethod
    async def run(self, *args: Any, **kwargs: Any) -> Any:
        ...
