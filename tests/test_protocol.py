"""Tests for the blueprint and action-plan models."""

import json

import pytest
from pydantic import ValidationError

from workshop.core.protocol import ActionType, AIActionOperation, AIActionPlan, Blueprint
from workshop.errors import BlueprintParseError


class TestBlueprint:
    """Blueprint parsing and serialization."""

    def test_parse_text_accepts_camel_case(self, blueprint_data):
        """The review editor's camelCase JSON parses into the model."""
        bp = Blueprint.parse_text(json.dumps(blueprint_data))
        assert bp.project_name == "hello-page"
        assert [f.file_name for f in bp.files] == ["index.html", "style.css"]
        assert bp.tech_stack == ["HTML", "CSS"]

    def test_to_text_round_trips(self, blueprint):
        """to_text() output parses back into an equal blueprint."""
        text = blueprint.to_text()
        assert '"projectName": "hello-page"' in text
        assert Blueprint.parse_text(text) == blueprint

    def test_invalid_json_raises_specific_error(self):
        """Broken JSON is reported as BlueprintParseError."""
        with pytest.raises(BlueprintParseError, match="not valid JSON"):
            Blueprint.parse_text('{"projectName": "x",')

    def test_non_object_json_is_rejected(self):
        """A JSON array is not a blueprint."""
        with pytest.raises(BlueprintParseError):
            Blueprint.parse_text("[1, 2]")

    def test_missing_project_name_is_rejected(self):
        """projectName is required."""
        with pytest.raises(BlueprintParseError):
            Blueprint.parse_text('{"files": []}')

    def test_duplicate_file_names_are_rejected(self, blueprint_data):
        """fileName values must be unique."""
        blueprint_data["files"].append({"fileName": "style.css", "description": "again"})
        with pytest.raises(BlueprintParseError):
            Blueprint.parse_text(json.dumps(blueprint_data))

    def test_file_description_lookup(self, blueprint):
        """file_description finds entries by exact name."""
        assert blueprint.file_description("style.css") == "Styles"
        assert blueprint.file_description("missing.js") is None


class TestActionOperation:
    """Per-action preconditions."""

    def test_create_requires_content(self):
        """CREATE_FILE without content is invalid."""
        with pytest.raises(ValidationError):
            AIActionOperation.model_validate({"action": "CREATE_FILE", "path": "a.js"})

    def test_update_requires_content(self):
        """UPDATE_FILE without content is invalid."""
        with pytest.raises(ValidationError):
            AIActionOperation.model_validate({"action": "UPDATE_FILE", "path": "a.js"})

    def test_rename_requires_new_path(self):
        """RENAME_FILE without newPath is invalid."""
        with pytest.raises(ValidationError):
            AIActionOperation.model_validate({"action": "RENAME_FILE", "path": "a.js"})

    def test_delete_needs_only_path(self):
        """DELETE_FILE carries just a path."""
        op = AIActionOperation.model_validate({"action": "DELETE_FILE", "path": "a.js"})
        assert op.action is ActionType.DELETE_FILE
        assert op.content is None

    def test_unknown_action_is_rejected(self):
        """Only the four file actions exist."""
        with pytest.raises(ValidationError):
            AIActionOperation.model_validate({"action": "CHMOD_FILE", "path": "a.js"})

    def test_plan_serializes_with_aliases(self):
        """Plans dump back to the camelCase wire shape."""
        plan = AIActionPlan.model_validate(
            {"thought": "t", "operations": [{"action": "RENAME_FILE", "path": "a.js", "newPath": "b.js"}]}
        )
        assert plan.to_json_dict() == {
            "thought": "t",
            "operations": [{"action": "RENAME_FILE", "path": "a.js", "newPath": "b.js"}],
        }
