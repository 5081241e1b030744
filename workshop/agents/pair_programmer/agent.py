from __future__ import annotations

from string import Template
from typing import Any, Callable, List, Optional

from workshop.agents.shared.base_agent import BaseAgent
from workshop.chat.action_plan import ParsedReply, extract_action_plan
from workshop.core.protocol import Blueprint
from workshop.llm.base import AICollaborator


class PairProgrammerAgent(BaseAgent):
    """
    One conversational session per built project.

    - seeds the session with the project's files and the action-plan contract
    - streams the reply, handing the growing text to `on_chunk` in arrival order
    - once the stream completes, splits prose from an embedded action plan
    """

    def __init__(self, llm: AICollaborator) -> None:
        super().__init__(llm)
        self._template = Template(self._load_prompt(__file__))
        self.session: Any = None
        self.session_key: Optional[str] = None

    def build_system_instruction(self, blueprint: Optional[Blueprint], file_names: List[str]) -> str:
        return self._template.safe_substitute(
            project_name=blueprint.project_name if blueprint else "untitled",
            description=blueprint.description if blueprint else "",
            file_names=", ".join(file_names) or "(none yet)",
        )

    async def open(self, blueprint: Optional[Blueprint], file_names: List[str], session_key: str) -> None:
        self.logger.info("Opening pair-programmer session for %s", blueprint.project_name if blueprint else "untitled")
        self.session = await self.llm.open_chat_session(self.build_system_instruction(blueprint, file_names))
        self.session_key = session_key

    def close(self) -> None:
        self.session = None
        self.session_key = None

    @staticmethod
    def build_message(user_text: str, selected_file_name: Optional[str]) -> str:
        context = f"The user is currently viewing the file: {selected_file_name or 'none'}."
        return f"{context}\n\nUser question: {user_text}"

    async def run(
        self,
        user_text: str,
        selected_file_name: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> ParsedReply:
        if self.session is None:
            raise RuntimeError("Pair-programmer session is not open")

        accumulated = ""
        async for chunk in self.llm.stream_message(self.session, self.build_message(user_text, selected_file_name)):
            accumulated += chunk
            if on_chunk is not None:
                on_chunk(accumulated)

        reply = extract_action_plan(accumulated)
        if reply.error:
            self.logger.warning("Action plan ignored: %s", reply.error)
        return reply
