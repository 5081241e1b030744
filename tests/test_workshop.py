"""Tests for the workshop aggregate: stages, the file store and plan reconciliation."""

import pytest

from workshop.core.protocol import AIActionPlan
from workshop.errors import BlueprintParseError, StageTransitionError
from workshop.project_state.state_store import BuildStage, OutputTab
from workshop.project_state.workshop import Workshop, is_entry_point


def plan_of(*operations):
    return AIActionPlan.model_validate({"thought": "t", "operations": list(operations)})


def last_message(ws):
    return ws.console.messages[0]


class TestStages:
    """Ideation -> blueprint review -> build."""

    def test_new_workshop_starts_in_ideation(self):
        """A fresh aggregate has no files and no blueprint."""
        ws = Workshop()
        assert ws.stage is BuildStage.IDEATION
        assert ws.files == []
        assert ws.state.blueprint is None

    def test_review_then_approve_scaffolds_empty_files(self, blueprint):
        """Approval creates one empty file per blueprint entry and enters build."""
        ws = Workshop()
        ws.begin_blueprint_review(blueprint)
        assert ws.stage is BuildStage.BLUEPRINT_REVIEW
        assert '"projectName": "hello-page"' in ws.state.blueprint_text

        ws.approve_blueprint()

        assert ws.stage is BuildStage.BUILD
        assert [(f.file_name, f.content) for f in ws.files] == [("index.html", ""), ("style.css", "")]
        assert ws.get_file("style.css").description == "Styles"
        assert ws.state.selected_file_name == "index.html"
        assert ws.state.active_output_tab is OutputTab.PREVIEW
        assert 'Project "hello-page" scaffolded' in last_message(ws).message

    def test_edited_text_is_what_gets_approved(self, blueprint):
        """The reviewed text, not the generated blueprint, drives scaffolding."""
        ws = Workshop()
        ws.begin_blueprint_review(blueprint)
        ws.edit_blueprint_text('{"projectName": "renamed", "files": [{"fileName": "app.py", "description": "d"}]}')
        approved = ws.approve_blueprint()
        assert approved.project_name == "renamed"
        assert ws.file_names() == ["app.py"]
        assert ws.state.active_output_tab is OutputTab.TERMINAL

    def test_invalid_text_leaves_review_untouched(self, blueprint):
        """A parse failure keeps the stage and the edited text."""
        ws = Workshop()
        ws.begin_blueprint_review(blueprint)
        ws.edit_blueprint_text("{broken")
        with pytest.raises(BlueprintParseError):
            ws.approve_blueprint()
        assert ws.stage is BuildStage.BLUEPRINT_REVIEW
        assert ws.state.blueprint_text == "{broken"
        assert ws.files == []
        assert last_message(ws).type == "error"
        assert last_message(ws).message.startswith("Invalid blueprint JSON")

    def test_blueprint_without_files_warns(self):
        """An empty file list still builds, with a warning."""
        ws = Workshop()
        ws.state.stage = BuildStage.BLUEPRINT_REVIEW
        ws.state.blueprint_text = '{"projectName": "empty", "files": []}'
        ws.approve_blueprint()
        assert ws.stage is BuildStage.BUILD
        assert ws.state.selected_file_name is None
        assert last_message(ws).type == "warn"

    def test_out_of_order_transitions_are_refused(self, blueprint, built_workshop):
        """Stages only move forward."""
        with pytest.raises(StageTransitionError):
            Workshop().approve_blueprint()
        with pytest.raises(StageTransitionError):
            Workshop().edit_blueprint_text("{}")
        with pytest.raises(StageTransitionError):
            built_workshop.begin_blueprint_review(blueprint)

    def test_reset_keeps_only_the_goal(self, built_workshop):
        """Reset clears everything except the goal and issues a new session id."""
        built_workshop.set_goal("a clock")
        old_session = built_workshop.session_id
        built_workshop.reset()
        assert built_workshop.stage is BuildStage.IDEATION
        assert built_workshop.state.goal == "a clock"
        assert built_workshop.files == []
        assert built_workshop.state.blueprint is None
        assert len(built_workshop.console) == 0
        assert built_workshop.session_id != old_session


class TestFileStore:
    """Create, update, delete, rename and selection."""

    def test_create_rejects_duplicates(self, built_workshop):
        """Paths stay unique."""
        assert built_workshop.create_file("app.js", "let a;")
        assert not built_workshop.create_file("app.js", "let b;")
        assert built_workshop.get_file("app.js").content == "let a;"
        assert built_workshop.file_names().count("app.js") == 1
        assert last_message(built_workshop).type == "warn"

    def test_set_content_on_missing_file(self, built_workshop):
        """Updating an unknown path changes nothing."""
        assert not built_workshop.set_content("nope.js", "x")
        assert not built_workshop.has_file("nope.js")

    def test_delete_selected_moves_selection(self, built_workshop):
        """Deleting the selected file selects the first remaining one."""
        assert built_workshop.state.selected_file_name == "index.html"
        assert built_workshop.delete_file("index.html")
        assert built_workshop.state.selected_file_name == "style.css"
        assert built_workshop.entry_point is None

    def test_delete_last_file_clears_selection(self, built_workshop):
        """With nothing left, nothing is selected."""
        built_workshop.delete_file("index.html")
        built_workshop.delete_file("style.css")
        assert built_workshop.state.selected_file_name is None
        assert built_workshop.selected_file is None

    def test_rename_carries_selection(self, built_workshop):
        """Renaming the selected file keeps it selected under its new name."""
        assert built_workshop.rename_file("index.html", "home.html")
        assert built_workshop.state.selected_file_name == "home.html"
        assert built_workshop.file_names() == ["home.html", "style.css"]

    def test_rename_onto_existing_path_is_rejected(self, built_workshop):
        """A rename never overwrites another file."""
        built_workshop.set_content("style.css", "body {}")
        assert not built_workshop.rename_file("index.html", "style.css")
        assert built_workshop.file_names() == ["index.html", "style.css"]
        assert built_workshop.get_file("style.css").content == "body {}"
        assert "destination already exists" in last_message(built_workshop).message

    def test_select_unknown_file(self, built_workshop):
        """Selecting a missing path is refused and leaves the selection alone."""
        assert not built_workshop.select_file("ghost.py")
        assert built_workshop.state.selected_file_name == "index.html"

    def test_select_non_html_switches_to_terminal(self, built_workshop):
        """Non-HTML files show the terminal tab."""
        built_workshop.select_file("style.css")
        assert built_workshop.state.active_output_tab is OutputTab.TERMINAL
        built_workshop.select_file("index.html")
        assert built_workshop.state.active_output_tab is OutputTab.PREVIEW

    def test_apply_code_to_selected(self, built_workshop):
        """Suggestions land in the selected file."""
        built_workshop.select_file("style.css")
        assert built_workshop.apply_code_to_selected("h1 { margin: 0; }")
        assert built_workshop.get_file("style.css").content == "h1 { margin: 0; }"
        assert last_message(built_workshop).message == "Applied AI suggestion to style.css."

    def test_preview_tab_needs_entry_point(self, built_workshop):
        """The preview tab is unavailable without index.html."""
        built_workshop.delete_file("index.html")
        assert not built_workshop.set_output_tab(OutputTab.PREVIEW)
        assert built_workshop.set_output_tab(OutputTab.TERMINAL)

    def test_entry_point_match_is_case_insensitive(self):
        """INDEX.HTML counts as the entry point."""
        assert is_entry_point("INDEX.HTML")
        assert not is_entry_point("src/index.html")

    def test_view_toggles(self, built_workshop):
        """Fullscreen and panel toggles flip and report the new value."""
        assert built_workshop.toggle_fullscreen() is True
        assert built_workshop.toggle_fullscreen() is False
        assert built_workshop.toggle_output_panel() is False

    def test_fullscreen_reopens_output_panel(self, built_workshop):
        """Entering fullscreen always shows the output panel."""
        built_workshop.toggle_output_panel()
        assert built_workshop.state.show_output_panel is False
        built_workshop.toggle_fullscreen()
        assert built_workshop.state.show_output_panel is True
        built_workshop.toggle_fullscreen()
        assert built_workshop.state.show_output_panel is True


class TestApplyPlan:
    """Reconciling an approved plan against the file store."""

    def test_operations_apply_in_order(self, built_workshop):
        """Later operations see the effect of earlier ones."""
        plan = plan_of(
            {"action": "CREATE_FILE", "path": "app.js", "content": "v1"},
            {"action": "UPDATE_FILE", "path": "app.js", "content": "v2"},
            {"action": "RENAME_FILE", "path": "app.js", "newPath": "main.js"},
            {"action": "DELETE_FILE", "path": "style.css"},
        )
        outcomes = built_workshop.apply_plan(plan)
        assert [o.applied for o in outcomes] == [True, True, True, True]
        assert built_workshop.file_names() == ["index.html", "main.js"]
        assert built_workshop.get_file("main.js").content == "v2"
        assert built_workshop.get_file("main.js").description == "Created by AI action plan."
        assert last_message(built_workshop).message == "Action plan applied: 4/4 operations changed the project."

    def test_delete_of_missing_file_is_a_warning(self, built_workshop):
        """A no-op delete is reported as a warning, not an error."""
        before = built_workshop.file_names()
        outcomes = built_workshop.apply_plan(plan_of({"action": "DELETE_FILE", "path": "ghost.js"}))
        assert not outcomes[0].applied
        assert built_workshop.file_names() == before
        types = {m.message: m.type for m in built_workshop.console.messages}
        assert types["Skipped deleting ghost.js: file does not exist."] == "warn"
        assert "error" not in types.values()

    def test_create_over_existing_is_skipped(self, built_workshop):
        """CREATE never overwrites."""
        built_workshop.set_content("index.html", "<p>keep</p>")
        outcomes = built_workshop.apply_plan(plan_of({"action": "CREATE_FILE", "path": "index.html", "content": "x"}))
        assert not outcomes[0].applied
        assert built_workshop.get_file("index.html").content == "<p>keep</p>"

    def test_rename_collision_leaves_store_unchanged(self, built_workshop):
        """RENAME onto an existing path is skipped."""
        outcomes = built_workshop.apply_plan(
            plan_of({"action": "RENAME_FILE", "path": "style.css", "newPath": "index.html"})
        )
        assert not outcomes[0].applied
        assert built_workshop.file_names() == ["index.html", "style.css"]

    def test_applying_twice_matches_applying_once(self, built_workshop):
        """A second application changes nothing further."""
        plan = plan_of(
            {"action": "CREATE_FILE", "path": "a.js", "content": "x"},
            {"action": "UPDATE_FILE", "path": "style.css", "content": "body {}"},
            {"action": "DELETE_FILE", "path": "index.html"},
        )
        built_workshop.apply_plan(plan)
        snapshot = [(f.file_name, f.content) for f in built_workshop.files]
        built_workshop.apply_plan(plan)
        assert [(f.file_name, f.content) for f in built_workshop.files] == snapshot

    def test_paths_stay_unique_after_any_plan(self, built_workshop):
        """No sequence of operations produces duplicate paths."""
        plan = plan_of(
            {"action": "CREATE_FILE", "path": "a.js", "content": "1"},
            {"action": "CREATE_FILE", "path": "a.js", "content": "2"},
            {"action": "RENAME_FILE", "path": "a.js", "newPath": "style.css"},
            {"action": "CREATE_FILE", "path": "b.js", "content": "3"},
            {"action": "RENAME_FILE", "path": "b.js", "newPath": "a.js"},
        )
        built_workshop.apply_plan(plan)
        names = built_workshop.file_names()
        assert len(names) == len(set(names))
        assert built_workshop.get_file("a.js").content == "1"
        assert built_workshop.has_file("b.js")

    def test_selection_survives_plan_that_deletes_it(self, built_workshop):
        """The selection always names an existing file."""
        built_workshop.apply_plan(plan_of({"action": "DELETE_FILE", "path": "index.html"}))
        assert built_workshop.state.selected_file_name == "style.css"
