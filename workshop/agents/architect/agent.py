from __future__ import annotations

import re
from typing import Any, Dict, List

from pydantic import ValidationError

from workshop.agents.shared.base_agent import BaseAgent
from workshop.core.protocol import BLUEPRINT_SCHEMA, Blueprint
from workshop.errors import GenerationError
from workshop.llm.base import AICollaborator


class ArchitectAgent(BaseAgent):
    """
    Turns the user's goal into a project Blueprint via a schema-constrained call.

    The raw model output is normalized before validation:
    - project name reduced to a file-system-friendly slug
    - duplicate file names dropped (first occurrence wins)
    - leading "./" and "/" stripped from file names
    """

    def __init__(self, llm: AICollaborator) -> None:
        super().__init__(llm)
        self._system_prompt = self._load_prompt(__file__)

    def build_prompt(self, goal: str) -> str:
        return f'Generate a project blueprint for the following request: "{goal}".\n\n{self._system_prompt}'

    async def run(self, goal: str) -> Blueprint:
        if not goal.strip():
            raise GenerationError("A project goal is required to generate a blueprint.")

        self.logger.info("Generating blueprint for goal: %s", goal)
        raw = await self.llm.generate_structured(self.build_prompt(goal), BLUEPRINT_SCHEMA)
        if not isinstance(raw, dict):
            raise GenerationError("Blueprint response was not a JSON object.")

        try:
            blueprint = Blueprint.model_validate(self._normalize(raw))
        except ValidationError as e:
            raise GenerationError(f"Blueprint response did not match the schema: {e}") from e

        self.logger.info(
            "Blueprint %s with files=%s", blueprint.project_name, [f.file_name for f in blueprint.files]
        )
        return blueprint

    def _normalize(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(raw)
        data["projectName"] = slugify(str(data.get("projectName") or data.get("project_name") or "project"))

        files: List[Dict[str, Any]] = []
        seen = set()
        for entry in data.get("files") or []:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("fileName") or entry.get("file_name") or "").strip()
            name = re.sub(r"^(\./|/)+", "", name)
            if not name or name in seen:
                continue
            seen.add(name)
            files.append({"fileName": name, "description": str(entry.get("description") or "")})
        data["files"] = files
        return data


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9_-]+", "-", name.strip()).strip("-").lower()
    return slug or "project"
