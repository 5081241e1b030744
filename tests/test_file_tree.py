"""Tests for the file tree projection."""

from workshop.project_state.file_tree import build_file_tree, render_tree


class TestFileTree:
    def test_nested_paths(self):
        """Slash-separated paths become directories."""
        root = build_file_tree(["src/app.py", "src/utils/io.py", "README.md"])
        src = root.find("src")
        assert src is not None and src.is_dir
        assert root.find("src/utils/io.py").name == "io.py"
        assert [n.path for n in root.walk() if not n.is_dir] == ["src/utils/io.py", "src/app.py", "README.md"]

    def test_directories_sort_first(self):
        """Directories come before files, names compare case-insensitively."""
        root = build_file_tree(["b.txt", "A.txt", "lib/x.js"])
        assert [c.name for c in root.children] == ["lib", "A.txt", "b.txt"]

    def test_render(self):
        """The text rendering indents children under their directory."""
        root = build_file_tree(["index.html", "css/site.css"])
        assert render_tree(root) == "[D] css\n  [F] site.css\n[F] index.html"

    def test_empty(self):
        """No files, no children."""
        root = build_file_tree([])
        assert root.children == []
        assert render_tree(root) == ""
