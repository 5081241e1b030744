from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from workshop.agents.shared.base_agent import BaseAgent
from workshop.project_state.state_store import ProjectFile
from workshop.project_state.workshop import RUNNABLE_LANGUAGES
from workshop.utils.file_ops import file_extension

RunMode = Literal["preview", "simulate", "unsupported"]


def run_mode(file_name: str) -> RunMode:
    ext = file_extension(file_name)
    if ext == "html":
        return "preview"
    if ext in RUNNABLE_LANGUAGES:
        return "simulate"
    return "unsupported"


@dataclass
class RunResult:
    mode: RunMode
    language: Optional[str] = None
    output: str = ""


class RunnerAgent(BaseAgent):
    """
    The build stage's "run" action for the selected file:
    - html -> the caller refreshes the preview
    - py/js/ts/go/sh/bash -> best-effort simulated execution
    - anything else is not runnable
    """

    prompt_file = None

    async def run(self, project_file: ProjectFile) -> RunResult:
        mode = run_mode(project_file.file_name)
        if mode != "simulate":
            return RunResult(mode=mode)

        language = RUNNABLE_LANGUAGES[file_extension(project_file.file_name)]
        self.logger.info("Simulating execution of %s as %s", project_file.file_name, language)
        output = await self.llm.simulate_execution(project_file.content, language)
        return RunResult(mode=mode, language=language, output=output)
