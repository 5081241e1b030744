from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List


@dataclass
class FileTreeNode:
    name: str
    path: str
    is_dir: bool = False
    children: List["FileTreeNode"] = field(default_factory=list)

    def find(self, path: str) -> "FileTreeNode | None":
        if self.path == path:
            return self
        for child in self.children:
            hit = child.find(path)
            if hit is not None:
                return hit
        return None

    def walk(self) -> Iterable["FileTreeNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


def build_file_tree(file_names: Iterable[str]) -> FileTreeNode:
    """
    Project the flat list of paths into nested directories.

    The tree is a throwaway view: callers rebuild it whenever they need it
    and never write through it. Directories sort before files, both by name.
    """
    root = FileTreeNode(name="", path="", is_dir=True)
    dirs: Dict[str, FileTreeNode] = {"": root}

    for file_name in file_names:
        parts = [p for p in file_name.split("/") if p]
        if not parts:
            continue
        parent = root
        prefix = ""
        for segment in parts[:-1]:
            prefix = f"{prefix}/{segment}" if prefix else segment
            node = dirs.get(prefix)
            if node is None:
                node = FileTreeNode(name=segment, path=prefix, is_dir=True)
                dirs[prefix] = node
                parent.children.append(node)
            parent = node
        parent.children.append(FileTreeNode(name=parts[-1], path=file_name))

    for node in dirs.values():
        node.children.sort(key=lambda n: (not n.is_dir, n.name.lower()))
    return root


def render_tree(root: FileTreeNode) -> str:
    """Text rendering used by the CLI and by prompts ("[D] src", "[F] src/app.py")."""
    lines: List[str] = []

    def visit(node: FileTreeNode, depth: int) -> None:
        for child in node.children:
            marker = "[D]" if child.is_dir else "[F]"
            lines.append(f"{'  ' * depth}{marker} {child.name}")
            if child.is_dir:
                visit(child, depth + 1)

    visit(root, 0)
    return "\n".join(lines)
