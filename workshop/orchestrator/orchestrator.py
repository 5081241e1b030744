from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from workshop.agents.architect.agent import ArchitectAgent
from workshop.agents.file_engineer.agent import FileEngineerAgent
from workshop.agents.pair_programmer.agent import PairProgrammerAgent
from workshop.agents.runner.agent import RunnerAgent, run_mode
from workshop.chat.action_plan import ACTION_PLAN_TAG
from workshop.chat.messages import ChatMessage
from workshop.config import SamplingConfig
from workshop.errors import BlueprintParseError, StageTransitionError
from workshop.llm.base import AICollaborator
from workshop.preview.resolver import PreviewDocument, PreviewResolver
from workshop.project_state.state_store import BuildStage, OutputTab, WorkshopStateStore
from workshop.project_state.workshop import OperationOutcome, Workshop
from workshop.utils.file_bundle import extract_code_blocks
from workshop.utils.file_ops import file_extension
from workshop.utils.logger import get_logger

CHAT_ERROR_TEXT = "Sorry, an error occurred."
INVALID_BLUEPRINT_TEXT = "Blueprint is not valid JSON. Please fix it before proceeding."


@dataclass
class OrchestratorConfig:
    sampling: Optional[SamplingConfig] = None
    inline_preview: bool = False


class Orchestrator:
    """
    Top-level controller of the Digital Workshop.

    Pipeline:
    1) goal -> blueprint (ArchitectAgent), then user review
    2) approval -> scaffold, per-file generation (FileEngineerAgent)
    3) pair-programmer chat (PairProgrammerAgent), action plans applied on approval
    4) run/preview (RunnerAgent, PreviewResolver)

    Every external call is tagged with the aggregate's session id when it is
    dispatched; a result that comes back after reset() is dropped. Each
    logical slot (blueprint, files, chat, run) accepts one call at a time.
    """

    def __init__(
        self,
        llm: AICollaborator,
        store: Optional[WorkshopStateStore] = None,
        cfg: Optional[OrchestratorConfig] = None,
    ) -> None:
        self.cfg = cfg or OrchestratorConfig()
        self.logger = get_logger("Orchestrator")
        self.llm = llm
        self.store = store

        self.architect = ArchitectAgent(llm)
        self.engineer = FileEngineerAgent(llm, self.cfg.sampling)
        self.pair_programmer = PairProgrammerAgent(llm)
        self.runner = RunnerAgent(llm)

        self.workshop = Workshop(store.load_or_default() if store else None)
        self.chat_messages: List[ChatMessage] = (
            store.load_chat(self.project_name) if store and self.workshop.stage is BuildStage.BUILD else []
        )
        self.preview_resolver = PreviewResolver(inline=self.cfg.inline_preview)
        self.preview: PreviewDocument = self.preview_resolver.render(self.workshop.files)

        self.error: Optional[str] = None
        self.loading_message = ""
        self._in_flight: Set[Tuple[str, str]] = set()

    # ---------- helpers ----------

    @property
    def project_name(self) -> Optional[str]:
        bp = self.workshop.state.blueprint
        return bp.project_name if bp else None

    @property
    def console(self):
        return self.workshop.console

    def is_busy(self, slot: str) -> bool:
        return (self.workshop.session_id, slot) in self._in_flight

    def _acquire(self, slot: str) -> Optional[Tuple[str, str]]:
        key = (self.workshop.session_id, slot)
        if key in self._in_flight:
            self.logger.warning("Ignoring %s request: one is already in flight.", slot)
            return None
        self._in_flight.add(key)
        return key

    def _release(self, key: Tuple[str, str]) -> None:
        self._in_flight.discard(key)
        if not any(k[0] == self.workshop.session_id for k in self._in_flight):
            self.loading_message = ""

    def _is_stale(self, session_id: str, what: str) -> bool:
        if session_id != self.workshop.session_id:
            self.logger.debug("Discarding %s result from abandoned session %s", what, session_id)
            return True
        return False

    def _fail(self, message: str) -> None:
        self.error = message
        self.console.error(message)

    def _persist(self) -> None:
        if self.store is None:
            return
        self.store.save(self.workshop.state)
        if self.workshop.stage is BuildStage.BUILD:
            self.store.save_chat(self.project_name, self.chat_messages)

    def _after_mutation(self) -> None:
        self.refresh_preview()
        self._persist()

    def refresh_preview(self) -> PreviewDocument:
        self.preview = self.preview_resolver.render(self.workshop.files)
        return self.preview

    # ---------- ideation / review ----------

    def set_goal(self, goal: str) -> None:
        self.workshop.set_goal(goal)
        self._persist()

    async def generate_blueprint(self) -> bool:
        goal = self.workshop.state.goal
        if not goal.strip():
            self.error = "Describe your project goal first."
            return False
        if self.is_busy("blueprint"):
            self.logger.warning("Ignoring blueprint request: one is already in flight.")
            return False

        # A new blueprint always starts a new project.
        self.reset()
        key = self._acquire("blueprint")
        if key is None:
            return False
        session_id = key[0]
        self.error = None
        self.loading_message = "Generating project blueprint..."
        self.console.info("Starting project generation...")

        try:
            blueprint = await self.architect.run(goal)
        except Exception as e:  # noqa: BLE001
            if not self._is_stale(session_id, "blueprint"):
                self._fail(str(e) or "An unknown error occurred during blueprint generation.")
                self._persist()
            return False
        finally:
            self._release(key)

        if self._is_stale(session_id, "blueprint"):
            return False
        self.workshop.begin_blueprint_review(blueprint)
        self._persist()
        return True

    def edit_blueprint_text(self, text: str) -> None:
        self.workshop.edit_blueprint_text(text)
        self._persist()

    def approve_blueprint(self) -> bool:
        try:
            self.workshop.approve_blueprint()
        except BlueprintParseError:
            self.error = INVALID_BLUEPRINT_TEXT
            self._persist()
            return False
        except StageTransitionError as e:
            self._fail(str(e))
            return False

        self.error = None
        self.chat_messages = self.store.load_chat(self.project_name) if self.store else []
        self.pair_programmer.close()
        self._after_mutation()
        return True

    # ---------- code generation ----------

    async def _generate_into(self, file_name: str, session_id: str) -> bool:
        blueprint = self.workshop.state.blueprint
        project_file = self.workshop.get_file(file_name)
        if blueprint is None:
            self.console.error(f"Cannot generate {file_name}: no approved blueprint.")
            return False
        if project_file is None:
            self.console.warn(f"Cannot generate {file_name}: no such file.")
            return False

        # Files added after approval are described by their own entry.
        description = blueprint.file_description(file_name)
        if description is None:
            description = project_file.description

        self.loading_message = f"Generating code for {file_name}..."
        self.console.info(f"Generating code for {file_name}...")
        try:
            content = await self.engineer.run(blueprint, file_name, description)
        except Exception as e:  # noqa: BLE001
            if self._is_stale(session_id, f"code for {file_name}"):
                return False
            message = f"Error generating code for {file_name}: {e}"
            self.console.error(message)
            self.workshop.set_content(file_name, f"// {message}", report=False)
            self._after_mutation()
            return False

        if self._is_stale(session_id, f"code for {file_name}"):
            return False
        self.workshop.set_content(file_name, content, report=False)
        self.console.info(f"Code for {file_name} generated successfully.")
        self._after_mutation()
        return True

    async def generate_file(self, file_name: str) -> bool:
        if self.workshop.stage is not BuildStage.BUILD:
            self.console.warn("Approve a blueprint before generating code.")
            return False
        key = self._acquire("files")
        if key is None:
            return False
        try:
            return await self._generate_into(file_name, key[0])
        finally:
            self._release(key)

    async def generate_all_files(self) -> Dict[str, bool]:
        """
        One request per blueprint file, strictly in order. The store is updated
        after each file, and a failure only marks that file's content.
        """
        results: Dict[str, bool] = {}
        blueprint = self.workshop.state.blueprint
        if self.workshop.stage is not BuildStage.BUILD or blueprint is None:
            self.console.warn("Approve a blueprint before generating code.")
            return results
        key = self._acquire("files")
        if key is None:
            return results

        session_id = key[0]
        names = [f.file_name for f in blueprint.files]
        try:
            for idx, name in enumerate(names, start=1):
                if self._is_stale(session_id, "batch generation"):
                    break
                if not self.workshop.has_file(name):
                    self.console.warn(f"Skipping {name}: no longer part of the project.")
                    continue
                self.logger.info("Batch generation %d/%d: %s", idx, len(names), name)
                results[name] = await self._generate_into(name, session_id)
        finally:
            self._release(key)

        if not self._is_stale(session_id, "batch generation"):
            ok = sum(1 for v in results.values() if v)
            self.console.info(f"Generated {ok}/{len(results)} files.")
        return results

    # ---------- file store passthroughs ----------

    def select_file(self, path: str) -> bool:
        ok = self.workshop.select_file(path)
        self._persist()
        return ok

    def edit_file(self, path: str, content: str) -> bool:
        ok = self.workshop.set_content(path, content)
        self._after_mutation()
        return ok

    def create_file(self, path: str, content: str = "") -> bool:
        ok = self.workshop.create_file(path, content)
        self._after_mutation()
        return ok

    def delete_file(self, path: str) -> bool:
        ok = self.workshop.delete_file(path)
        self._after_mutation()
        return ok

    def rename_file(self, path: str, new_path: str) -> bool:
        ok = self.workshop.rename_file(path, new_path)
        self._after_mutation()
        return ok

    def apply_code_suggestion(self, code: str) -> bool:
        ok = self.workshop.apply_code_to_selected(code)
        self._after_mutation()
        return ok

    def apply_code_block(self, index: int, block: int = 0) -> bool:
        """Apply the `block`-th fenced code block of chat message `index` to the selected file."""
        if not -len(self.chat_messages) <= index < len(self.chat_messages):
            self.console.warn(f"No chat message at position {index}.")
            return False
        blocks = [
            b for b in extract_code_blocks(self.chat_messages[index].text) if b.language != ACTION_PLAN_TAG
        ]
        if not -len(blocks) <= block < len(blocks):
            self.console.warn("That message has no such code block.")
            return False
        return self.apply_code_suggestion(blocks[block].code)

    # ---------- run ----------

    async def run_selected_file(self) -> bool:
        selected = self.workshop.selected_file
        if selected is None:
            self.console.warn("Select a file to run.")
            return False

        mode = run_mode(selected.file_name)
        if mode == "preview":
            self.workshop.set_output_tab(OutputTab.PREVIEW)
            self.refresh_preview()
            self.console.info(f"Refreshing preview for {selected.file_name}.")
            self._persist()
            return True
        if mode == "unsupported":
            self.console.warn(
                f"Cannot run file type: .{file_extension(selected.file_name)}. "
                "Only web previews and script execution are supported."
            )
            return False

        key = self._acquire("run")
        if key is None:
            return False
        session_id = key[0]
        try:
            self.workshop.set_output_tab(OutputTab.TERMINAL)
            self.workshop.set_terminal_output("")
            self.loading_message = f"Running {selected.file_name}..."
            self.console.info(f"Simulating execution for {selected.file_name}...")
            try:
                result = await self.runner.run(selected)
            except Exception as e:  # noqa: BLE001
                if self._is_stale(session_id, "run"):
                    return False
                message = f"Failed to simulate execution: {e}"
                self.workshop.set_terminal_output(message)
                self.console.error(message)
                self._persist()
                return False
        finally:
            self._release(key)

        if self._is_stale(session_id, "run"):
            return False
        self.workshop.set_terminal_output(result.output)
        self.console.info(f"Execution of {selected.file_name} simulated.")
        self._persist()
        return True

    # ---------- pair programmer ----------

    async def send_chat_message(self, text: str) -> Optional[ChatMessage]:
        if not text.strip():
            return None
        if self.workshop.stage is not BuildStage.BUILD:
            self.console.warn("The AI pair programmer is available once the project is built.")
            return None
        key = self._acquire("chat")
        if key is None:
            return None
        session_id = key[0]

        self.chat_messages.append(ChatMessage(role="user", text=text))
        reply_msg = ChatMessage(role="model", text="")
        self.chat_messages.append(reply_msg)

        def on_chunk(accumulated: str) -> None:
            if not self._is_stale(session_id, "chat chunk"):
                reply_msg.text = accumulated

        try:
            if self.pair_programmer.session is None or self.pair_programmer.session_key != session_id:
                await self.pair_programmer.open(self.workshop.state.blueprint, self.workshop.file_names(), session_id)
            reply = await self.pair_programmer.run(text, self.workshop.state.selected_file_name, on_chunk)
        except Exception as e:  # noqa: BLE001
            if self._is_stale(session_id, "chat"):
                return None
            self.logger.error("Chat failed: %s", e)
            self.console.error(f"AI pair programmer error: {e}")
            if reply_msg.text:
                reply_msg = ChatMessage(role="model", text=CHAT_ERROR_TEXT)
                self.chat_messages.append(reply_msg)
            else:
                reply_msg.text = CHAT_ERROR_TEXT
            self._persist()
            return reply_msg
        finally:
            self._release(key)

        if self._is_stale(session_id, "chat"):
            return None

        reply_msg.text = reply.prose
        if reply.plan is not None:
            reply_msg.plan = reply.plan
            reply_msg.plan_status = "pending"
            self.console.info(f"AI proposed an action plan with {len(reply.plan.operations)} operation(s).")
        elif reply.error:
            self.console.error(f"Could not parse action plan: {reply.error}")
        self._persist()
        return reply_msg

    def _pending_plan_message(self, index: int) -> Optional[ChatMessage]:
        if not -len(self.chat_messages) <= index < len(self.chat_messages):
            self.console.warn(f"No chat message at position {index}.")
            return None
        msg = self.chat_messages[index]
        if not msg.has_pending_plan:
            self.console.warn("That message has no pending action plan.")
            return None
        return msg

    def latest_pending_plan_index(self) -> Optional[int]:
        for idx in range(len(self.chat_messages) - 1, -1, -1):
            if self.chat_messages[idx].has_pending_plan:
                return idx
        return None

    def apply_plan(self, index: int) -> List[OperationOutcome]:
        msg = self._pending_plan_message(index)
        if msg is None or msg.plan is None:
            return []
        outcomes = self.workshop.apply_plan(msg.plan)
        msg.plan_status = "applied"
        self._after_mutation()
        return outcomes

    def discard_plan(self, index: int) -> bool:
        msg = self._pending_plan_message(index)
        if msg is None:
            return False
        msg.plan_status = "discarded"
        self.console.info("Action plan discarded.")
        self._persist()
        return True

    # ---------- misc ----------

    def handle_preview_message(self, payload: Dict[str, Any]) -> None:
        self.console.forward_preview_message(payload)

    def clear_console(self) -> None:
        self.console.clear()
        self._persist()

    def reset(self) -> None:
        """Start over. Outstanding calls keep running but their results are dropped."""
        if self.store is not None and self.workshop.stage is BuildStage.BUILD:
            self.store.clear_chat(self.project_name)
        self.workshop.reset()
        self.chat_messages = []
        self.pair_programmer.close()
        self.error = None
        self.loading_message = ""
        self.refresh_preview()
        self._persist()

    def close(self) -> None:
        self.preview_resolver.close()
        self.pair_programmer.close()
