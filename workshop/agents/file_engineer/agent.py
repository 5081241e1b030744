from __future__ import annotations

from typing import Optional

from workshop.agents.shared.base_agent import BaseAgent
from workshop.config import SamplingConfig
from workshop.core.protocol import Blueprint
from workshop.errors import GenerationError
from workshop.llm.base import AICollaborator
from workshop.utils.file_bundle import strip_code_fences


class FileEngineerAgent(BaseAgent):
    """
    Generates the full content of one blueprint file.
    The model is told to return raw file content; fences are stripped anyway.
    """

    def __init__(self, llm: AICollaborator, sampling: Optional[SamplingConfig] = None) -> None:
        super().__init__(llm)
        self.sampling = sampling or SamplingConfig()
        self._system_prompt = self._load_prompt(__file__)

    def build_prompt(self, blueprint: Blueprint, file_name: str, description: str) -> str:
        other_files = ", ".join(f.file_name for f in blueprint.files if f.file_name != file_name) or "none"
        return (
            f'Project "{blueprint.project_name}" ({blueprint.project_type}): {blueprint.description}\n'
            f"Tech stack: {', '.join(blueprint.tech_stack) or 'unspecified'}\n"
            f"Other project files: {other_files}\n\n"
            "Based on the project blueprint, generate complete, production-ready code for the file: "
            f"{file_name}. File Description: {description}. "
            "IMPORTANT: Only output the raw code content for the file. Do not include any explanatory "
            "text, markdown formatting like ```, or anything that is not part of the file's content."
        )

    async def run(self, blueprint: Blueprint, file_name: str, description: Optional[str] = None) -> str:
        if description is None:
            description = blueprint.file_description(file_name)
        if description is None:
            raise GenerationError(f"File {file_name} not found in blueprint.")

        self.logger.info("Generating code for %s", file_name)
        raw = await self.llm.generate_raw_text(
            self.build_prompt(blueprint, file_name, description),
            self._system_prompt,
            temperature=self.sampling.temperature,
            top_k=self.sampling.top_k,
            top_p=self.sampling.top_p,
        )
        return strip_code_fences(raw)
