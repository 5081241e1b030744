"""
pytest configuration file

Shared fixtures: a scripted AI collaborator and ready-made workshop objects.
"""

import asyncio
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import pytest

from workshop.core.protocol import Blueprint
from workshop.llm.base import AICollaborator
from workshop.orchestrator.orchestrator import Orchestrator
from workshop.project_state.state_store import WorkshopStateStore
from workshop.project_state.workshop import Workshop

FILE_NAME_RE = re.compile(r"for the file: (.+?)\. File Description")

Scripted = Union[str, Exception]


class FakeCollaborator(AICollaborator):
    """Replays canned responses; `gate` (when set) holds every call until released."""

    name = "fake"

    def __init__(
        self,
        blueprint: Optional[Dict[str, Any]] = None,
        file_contents: Optional[Dict[str, Scripted]] = None,
        chat_replies: Optional[List[Union[List[str], Exception]]] = None,
        simulate_output: Scripted = "hello world\n",
    ) -> None:
        self.blueprint = blueprint
        self.file_contents = file_contents or {}
        self.chat_replies = list(chat_replies or [])
        self.simulate_output = simulate_output
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []
        self.system_instructions: List[str] = []
        self.sent_messages: List[str] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append("generate_structured")
        await self._wait()
        if isinstance(self.blueprint, Exception):
            raise self.blueprint
        return dict(self.blueprint or {})

    async def generate_raw_text(self, prompt, system_instruction=None, *, temperature=None, top_k=None, top_p=None) -> str:
        m = FILE_NAME_RE.search(prompt)
        name = m.group(1) if m else ""
        self.calls.append(f"generate_raw_text:{name}")
        await self._wait()
        value = self.file_contents.get(name, f"// {name}")
        if isinstance(value, Exception):
            raise value
        return value

    async def simulate_execution(self, code: str, language: str) -> str:
        self.calls.append(f"simulate_execution:{language}")
        await self._wait()
        if isinstance(self.simulate_output, Exception):
            raise self.simulate_output
        return self.simulate_output

    async def open_chat_session(self, system_instruction: str) -> Any:
        self.calls.append("open_chat_session")
        self.system_instructions.append(system_instruction)
        return {"system": system_instruction}

    async def stream_message(self, session: Any, message: str) -> AsyncIterator[str]:
        self.calls.append("stream_message")
        self.sent_messages.append(message)
        await self._wait()
        reply = self.chat_replies.pop(0) if self.chat_replies else []
        if isinstance(reply, Exception):
            raise reply
        for chunk in reply:
            yield chunk


@pytest.fixture
def blueprint_data() -> Dict[str, Any]:
    return {
        "projectName": "hello-page",
        "projectType": "Static Web App",
        "description": "A page that says hello.",
        "techStack": ["HTML", "CSS"],
        "files": [
            {"fileName": "index.html", "description": "Entry page"},
            {"fileName": "style.css", "description": "Styles"},
        ],
    }


@pytest.fixture
def blueprint(blueprint_data) -> Blueprint:
    return Blueprint.model_validate(blueprint_data)


@pytest.fixture
def built_workshop(blueprint) -> Workshop:
    """A workshop already in the build stage with the two-file blueprint."""
    ws = Workshop()
    ws.begin_blueprint_review(blueprint)
    ws.approve_blueprint()
    return ws


@pytest.fixture
def fake_llm(blueprint_data) -> FakeCollaborator:
    return FakeCollaborator(
        blueprint=blueprint_data,
        file_contents={
            "index.html": '<html><head><link rel="stylesheet" href="style.css"></head><body>Hi</body></html>',
            "style.css": "body { color: red; }",
        },
    )


@pytest.fixture
def store(tmp_path) -> WorkshopStateStore:
    return WorkshopStateStore(tmp_path / "state")


@pytest.fixture
def orchestrator(fake_llm, store):
    orch = Orchestrator(fake_llm, store=store)
    yield orch
    orch.close()
