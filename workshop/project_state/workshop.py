from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from workshop.core.protocol import ActionType, AIActionOperation, AIActionPlan, Blueprint
from workshop.errors import BlueprintParseError, StageTransitionError
from workshop.project_state.file_tree import FileTreeNode, build_file_tree
from workshop.project_state.state_store import (
    BuildStage,
    OutputTab,
    ProjectFile,
    SideTab,
    WorkshopState,
    new_session_id,
)
from workshop.utils.console_sink import ConsoleLevel, ConsoleSink
from workshop.utils.file_ops import file_extension

ENTRY_POINT = "index.html"

RUNNABLE_LANGUAGES = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "go": "go",
    "sh": "bash",
    "bash": "bash",
}


def is_entry_point(file_name: str) -> bool:
    return file_name.lower() == ENTRY_POINT


@dataclass
class OperationOutcome:
    operation: AIActionOperation
    applied: bool
    message: str


class Workshop:
    """
    Aggregate root of the Digital Workshop.

    All mutation goes through the named transitions below; callers never
    assign fields of `state` directly. After every transition:
    - file names are unique
    - `selected_file_name` is None or names an existing file
    - the stage only ever moved forward (reset() aside)
    """

    def __init__(self, state: Optional[WorkshopState] = None) -> None:
        self.state = state or WorkshopState()
        self.console = ConsoleSink(self.state.console_messages)
        self._ensure_valid_selection()

    # ---------- queries ----------

    @property
    def stage(self) -> BuildStage:
        return self.state.stage

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def files(self) -> List[ProjectFile]:
        return list(self.state.project_files)

    def file_names(self) -> List[str]:
        return [f.file_name for f in self.state.project_files]

    def get_file(self, path: str) -> Optional[ProjectFile]:
        for f in self.state.project_files:
            if f.file_name == path:
                return f
        return None

    def has_file(self, path: str) -> bool:
        return self.get_file(path) is not None

    @property
    def selected_file(self) -> Optional[ProjectFile]:
        if self.state.selected_file_name is None:
            return None
        return self.get_file(self.state.selected_file_name)

    @property
    def entry_point(self) -> Optional[ProjectFile]:
        for f in self.state.project_files:
            if is_entry_point(f.file_name):
                return f
        return None

    def file_tree(self) -> FileTreeNode:
        return build_file_tree(self.file_names())

    # ---------- stage transitions ----------

    def _require_stage(self, expected: BuildStage, action: str) -> None:
        if self.state.stage is not expected:
            raise StageTransitionError(
                f"Cannot {action} in stage '{self.state.stage.value}' (expected '{expected.value}')"
            )

    def set_goal(self, goal: str) -> None:
        self.state.goal = goal

    def begin_blueprint_review(self, blueprint: Blueprint) -> None:
        self._require_stage(BuildStage.IDEATION, "review a blueprint")
        self.state.blueprint = blueprint
        self.state.blueprint_text = blueprint.to_text()
        self.state.stage = BuildStage.BLUEPRINT_REVIEW
        self.console.info("Blueprint generated. Please review.")

    def edit_blueprint_text(self, text: str) -> None:
        self._require_stage(BuildStage.BLUEPRINT_REVIEW, "edit the blueprint")
        self.state.blueprint_text = text

    def approve_blueprint(self) -> Blueprint:
        """
        Parse the reviewed text, scaffold the project and enter the build stage.

        On a parse failure the stage and the edited text are left untouched and
        BlueprintParseError propagates for the caller to surface.
        """
        self._require_stage(BuildStage.BLUEPRINT_REVIEW, "approve the blueprint")
        try:
            blueprint = Blueprint.parse_text(self.state.blueprint_text)
        except BlueprintParseError as e:
            self.console.error(f"Invalid blueprint JSON: {e}")
            raise

        self.state.blueprint = blueprint
        self.scaffold(blueprint)
        self.state.stage = BuildStage.BUILD
        self.console.info(f'Blueprint approved. Project "{blueprint.project_name}" scaffolded.')
        if self.state.project_files:
            self.select_file(self.state.project_files[0].file_name)
        else:
            self.console.warn("Blueprint has no files; nothing to build.")
        return blueprint

    def reset(self) -> None:
        """Start over: a fresh aggregate that only keeps the goal text."""
        goal = self.state.goal
        self.state = WorkshopState(goal=goal, session_id=new_session_id())
        self.console = ConsoleSink(self.state.console_messages)

    # ---------- file store ----------

    def scaffold(self, blueprint: Blueprint) -> None:
        self.state.project_files = [
            ProjectFile(file_name=f.file_name, description=f.description, content="")
            for f in blueprint.files
        ]
        self.state.selected_file_name = None

    def set_content(self, path: str, content: str, report: bool = True) -> bool:
        ok, level, message = self._set_content(path, content)
        if report or not ok:
            self._report(ok, level, message)
        return ok

    def create_file(self, path: str, content: str = "", description: str = "") -> bool:
        return self._report(*self._create_file(path, content, description))

    def delete_file(self, path: str) -> bool:
        return self._report(*self._delete_file(path))

    def rename_file(self, path: str, new_path: str) -> bool:
        return self._report(*self._rename_file(path, new_path))

    def select_file(self, path: str) -> bool:
        if not self.has_file(path):
            self.console.warn(f"Cannot select {path}: no such file.")
            return False
        self.state.selected_file_name = path
        if file_extension(path) == "html" and self.entry_point is not None:
            self.state.active_output_tab = OutputTab.PREVIEW
        else:
            self.state.active_output_tab = OutputTab.TERMINAL
        return True

    def apply_code_to_selected(self, code: str) -> bool:
        selected = self.state.selected_file_name
        if selected is None:
            self.console.warn("No file selected; suggestion not applied.")
            return False
        ok, _, _ = self._set_content(selected, code)
        if ok:
            self.console.info(f"Applied AI suggestion to {selected}.")
        return ok

    def _set_content(self, path: str, content: str) -> Tuple[bool, ConsoleLevel, str]:
        f = self.get_file(path)
        if f is None:
            return False, "warn", f"Skipped update of {path}: file does not exist."
        f.content = content
        return True, "info", f"Updated {path}."

    def _create_file(self, path: str, content: str, description: str) -> Tuple[bool, ConsoleLevel, str]:
        if self.has_file(path):
            return False, "warn", f"Skipped creating {path}: file already exists."
        self.state.project_files.append(ProjectFile(file_name=path, description=description, content=content))
        return True, "info", f"Created {path}."

    def _delete_file(self, path: str) -> Tuple[bool, ConsoleLevel, str]:
        f = self.get_file(path)
        if f is None:
            return False, "warn", f"Skipped deleting {path}: file does not exist."
        self.state.project_files.remove(f)
        self._ensure_valid_selection()
        return True, "info", f"Deleted {path}."

    def _rename_file(self, path: str, new_path: str) -> Tuple[bool, ConsoleLevel, str]:
        f = self.get_file(path)
        if f is None:
            return False, "warn", f"Skipped renaming {path}: file does not exist."
        if new_path == path:
            return False, "warn", f"Skipped renaming {path}: name unchanged."
        if self.has_file(new_path):
            return False, "warn", f"Skipped renaming {path} to {new_path}: destination already exists."
        f.file_name = new_path
        if self.state.selected_file_name == path:
            self.state.selected_file_name = new_path
        return True, "info", f"Renamed {path} to {new_path}."

    def _ensure_valid_selection(self) -> None:
        if self.state.selected_file_name is not None and not self.has_file(self.state.selected_file_name):
            self.state.selected_file_name = None
            if self.state.project_files:
                self.select_file(self.state.project_files[0].file_name)

    def _report(self, ok: bool, level: ConsoleLevel, message: str) -> bool:
        self.console.append(message, level)
        return ok

    # ---------- action plans ----------

    def apply_plan(self, plan: AIActionPlan) -> List[OperationOutcome]:
        """
        Apply an approved plan in order. Operations whose preconditions do not
        hold are skipped with a warning; applying the same plan again is safe.
        """
        outcomes: List[OperationOutcome] = []
        for op in plan.operations:
            if op.action is ActionType.CREATE_FILE:
                ok, level, message = self._create_file(op.path, op.content or "", "Created by AI action plan.")
            elif op.action is ActionType.UPDATE_FILE:
                ok, level, message = self._set_content(op.path, op.content or "")
            elif op.action is ActionType.DELETE_FILE:
                ok, level, message = self._delete_file(op.path)
            else:
                ok, level, message = self._rename_file(op.path, op.new_path or "")
            self.console.append(message, level)
            outcomes.append(OperationOutcome(operation=op, applied=ok, message=message))

        applied = sum(1 for o in outcomes if o.applied)
        self.console.info(f"Action plan applied: {applied}/{len(outcomes)} operations changed the project.")
        return outcomes

    # ---------- view state ----------

    def set_output_tab(self, tab: OutputTab) -> bool:
        if tab is OutputTab.PREVIEW and self.entry_point is None:
            self.console.warn(f"Preview unavailable: create an `{ENTRY_POINT}` file first.")
            return False
        self.state.active_output_tab = tab
        return True

    def set_side_tab(self, tab: SideTab) -> None:
        self.state.active_side_tab = tab

    def toggle_fullscreen(self) -> bool:
        self.state.is_preview_fullscreen = not self.state.is_preview_fullscreen
        if self.state.is_preview_fullscreen:
            self.state.show_output_panel = True
        return self.state.is_preview_fullscreen

    def toggle_output_panel(self) -> bool:
        self.state.show_output_panel = not self.state.show_output_panel
        return self.state.show_output_panel

    def set_terminal_output(self, text: str) -> None:
        self.state.terminal_output = text
