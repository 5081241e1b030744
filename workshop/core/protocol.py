from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from workshop.errors import BlueprintParseError


class _CamelModel(BaseModel):
    # Blueprints round-trip through the user-edited JSON text in camelCase.
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BlueprintFile(_CamelModel):
    file_name: str = Field(alias="fileName")
    description: str = ""


class Blueprint(_CamelModel):
    project_name: str = Field(alias="projectName")
    project_type: str = Field(default="", alias="projectType")
    description: str = ""
    tech_stack: List[str] = Field(default_factory=list, alias="techStack")
    files: List[BlueprintFile] = Field(default_factory=list)

    @field_validator("files")
    @classmethod
    def _unique_file_names(cls, files: List[BlueprintFile]) -> List[BlueprintFile]:
        seen = set()
        for f in files:
            if f.file_name in seen:
                raise ValueError(f"Duplicate file name in blueprint: {f.file_name}")
            seen.add(f.file_name)
        return files

    @classmethod
    def parse_text(cls, text: str) -> "Blueprint":
        """Parse the JSON the user edited during review."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise BlueprintParseError(f"Blueprint is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise BlueprintParseError("Blueprint is not valid JSON: expected an object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise BlueprintParseError(f"Blueprint does not match the expected shape: {e}") from e

    def to_text(self) -> str:
        return json.dumps(self.to_json_dict(), indent=2)

    def file_description(self, file_name: str) -> Optional[str]:
        for f in self.files:
            if f.file_name == file_name:
                return f.description
        return None


BLUEPRINT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "projectName": {
            "type": "STRING",
            "description": 'A short, file-system-friendly name for the project (e.g., "my-weather-api").',
        },
        "projectType": {
            "type": "STRING",
            "description": 'The type of project (e.g., "Python Flask API", "React Web App", "Node.js Script").',
        },
        "description": {"type": "STRING", "description": "A one-sentence summary of the project."},
        "techStack": {
            "type": "ARRAY",
            "description": "A list of key technologies used.",
            "items": {"type": "STRING"},
        },
        "files": {
            "type": "ARRAY",
            "description": "The list of files to be generated for this project.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "fileName": {
                        "type": "STRING",
                        "description": 'The name of the file (e.g., "app.py", "package.json").',
                    },
                    "description": {
                        "type": "STRING",
                        "description": "A detailed description of the file's purpose and what code it should contain.",
                    },
                },
                "required": ["fileName", "description"],
            },
        },
    },
    "required": ["projectName", "projectType", "description", "files"],
}


# -------------------------
# Action plans
# -------------------------
class ActionType(str, Enum):
    CREATE_FILE = "CREATE_FILE"
    UPDATE_FILE = "UPDATE_FILE"
    DELETE_FILE = "DELETE_FILE"
    RENAME_FILE = "RENAME_FILE"


class AIActionOperation(_CamelModel):
    action: ActionType
    path: str
    content: Optional[str] = None
    new_path: Optional[str] = Field(default=None, alias="newPath")

    @model_validator(mode="after")
    def _check_required_fields(self) -> "AIActionOperation":
        if not self.path:
            raise ValueError("operation is missing 'path'")
        if self.action in (ActionType.CREATE_FILE, ActionType.UPDATE_FILE) and self.content is None:
            raise ValueError(f"{self.action.value} requires 'content'")
        if self.action is ActionType.RENAME_FILE and not self.new_path:
            raise ValueError("RENAME_FILE requires 'newPath'")
        return self


class AIActionPlan(_CamelModel):
    thought: str = ""
    operations: List[AIActionOperation] = Field(default_factory=list)
