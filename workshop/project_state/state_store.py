from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from workshop.chat.messages import ChatMessage
from workshop.core.protocol import Blueprint
from workshop.utils.console_sink import ConsoleMessage
from workshop.utils.file_ops import ensure_dir
from workshop.utils.logger import get_logger

STATE_NAMESPACE = "digitalWorkshop_v6"
DEFAULT_GOAL = (
    'A simple python flask API that has one route /hello that returns {"message": "hello world"}'
)


class BuildStage(str, Enum):
    IDEATION = "ideation"
    BLUEPRINT_REVIEW = "blueprint_review"
    BUILD = "build"


class OutputTab(str, Enum):
    PREVIEW = "preview"
    TERMINAL = "terminal"


class SideTab(str, Enum):
    CHAT = "chat"
    CONSOLE = "console"


def new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ProjectFile:
    file_name: str
    description: str = ""
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"fileName": self.file_name, "description": self.description, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectFile":
        return cls(
            file_name=data["fileName"],
            description=data.get("description", ""),
            content=data.get("content", ""),
        )


@dataclass
class WorkshopState:
    goal: str = DEFAULT_GOAL
    stage: BuildStage = BuildStage.IDEATION
    blueprint: Optional[Blueprint] = None
    blueprint_text: str = ""
    project_files: List[ProjectFile] = field(default_factory=list)
    selected_file_name: Optional[str] = None
    console_messages: List[ConsoleMessage] = field(default_factory=list)
    active_side_tab: SideTab = SideTab.CHAT
    is_preview_fullscreen: bool = False
    show_output_panel: bool = True
    active_output_tab: OutputTab = OutputTab.PREVIEW
    terminal_output: str = ""
    session_id: str = field(default_factory=new_session_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal": self.goal,
            "stage": self.stage.value,
            "blueprint": self.blueprint.to_json_dict() if self.blueprint else None,
            "blueprintText": self.blueprint_text,
            "projectFiles": [f.to_dict() for f in self.project_files],
            "selectedFileName": self.selected_file_name,
            "consoleMessages": [m.to_dict() for m in self.console_messages],
            "activeSideTab": self.active_side_tab.value,
            "isPreviewFullscreen": self.is_preview_fullscreen,
            "showOutputPanel": self.show_output_panel,
            "activeOutputTab": self.active_output_tab.value,
            "terminalOutput": self.terminal_output,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkshopState":
        bp = data.get("blueprint")
        return cls(
            goal=data.get("goal", DEFAULT_GOAL),
            stage=BuildStage(data.get("stage", BuildStage.IDEATION.value)),
            blueprint=Blueprint.model_validate(bp) if bp else None,
            blueprint_text=data.get("blueprintText", ""),
            project_files=[ProjectFile.from_dict(f) for f in data.get("projectFiles", [])],
            selected_file_name=data.get("selectedFileName"),
            console_messages=[ConsoleMessage.from_dict(m) for m in data.get("consoleMessages", [])],
            active_side_tab=SideTab(data.get("activeSideTab", SideTab.CHAT.value)),
            is_preview_fullscreen=bool(data.get("isPreviewFullscreen", False)),
            show_output_panel=bool(data.get("showOutputPanel", True)),
            active_output_tab=OutputTab(data.get("activeOutputTab", OutputTab.PREVIEW.value)),
            terminal_output=data.get("terminalOutput", ""),
            session_id=data.get("sessionId") or new_session_id(),
        )


class WorkshopStateStore:
    """
    Durable home of the workshop aggregate: one JSON document under a fixed
    namespace, plus one chat history file per project name.
    """

    def __init__(self, root_dir: Path, namespace: str = STATE_NAMESPACE) -> None:
        self.root_dir = ensure_dir(root_dir)
        self.namespace = namespace
        self._state_file = self.root_dir / f"{namespace}.json"
        self.logger = get_logger(self.__class__.__name__)

    @property
    def state_file(self) -> Path:
        return self._state_file

    def save(self, state: WorkshopState) -> None:
        self._state_file.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")

    def load(self) -> WorkshopState:
        if not self._state_file.exists():
            raise FileNotFoundError(f"No {self._state_file.name} in {self.root_dir}")
        return WorkshopState.from_dict(json.loads(self._state_file.read_text(encoding="utf-8")))

    def load_or_default(self) -> WorkshopState:
        try:
            return self.load()
        except FileNotFoundError:
            return WorkshopState()
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error("Error reading %s, starting fresh: %s", self._state_file, e)
            return WorkshopState()

    def clear(self) -> None:
        if self._state_file.exists():
            self._state_file.unlink()

    # ---------- chat history ----------

    def chat_file(self, project_name: Optional[str]) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", project_name or "default")
        return self.root_dir / f"digitalWorkshop_chatMessages_{safe}_v2.json"

    def save_chat(self, project_name: Optional[str], messages: List[ChatMessage]) -> None:
        path = self.chat_file(project_name)
        path.write_text(json.dumps([m.to_dict() for m in messages], indent=2), encoding="utf-8")

    def load_chat(self, project_name: Optional[str]) -> List[ChatMessage]:
        path = self.chat_file(project_name)
        if not path.exists():
            return []
        try:
            return [ChatMessage.from_dict(m) for m in json.loads(path.read_text(encoding="utf-8"))]
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error("Error reading chat history %s: %s", path, e)
            return []

    def clear_chat(self, project_name: Optional[str]) -> None:
        path = self.chat_file(project_name)
        if path.exists():
            path.unlink()
