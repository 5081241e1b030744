from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List


WHOLE_FENCE_RE = re.compile(r"^```(?:[\w.+-]*\n)?(.+?)```$", re.DOTALL)
CODE_BLOCK_RE = re.compile(r"```([\w.+-]*)\n(.+?)```", re.DOTALL)


@dataclass
class CodeBlock:
    language: str
    code: str


def strip_code_fences(text: str) -> str:
    """
    Generated file content is supposed to be raw, but models still wrap it
    in a markdown fence now and then:

        ```python
        print("hi")
        ```

    If the whole text is one fenced block, return the inside; otherwise
    return the text trimmed.
    """
    stripped = (text or "").strip()
    m = WHOLE_FENCE_RE.match(stripped)
    if m:
        return m.group(1).strip()
    return stripped


def extract_code_blocks(text: str) -> List[CodeBlock]:
    """All fenced blocks of a chat reply, in order of appearance."""
    return [
        CodeBlock(language=m.group(1) or "text", code=m.group(2).strip())
        for m in CODE_BLOCK_RE.finditer(text or "")
    ]


def write_file_bundle(files: Dict[str, str], out_dir: Path) -> List[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    root = out_dir.resolve()
    written: List[Path] = []
    for rel_path, content in files.items():
        # Normalize paths
        rel_path = rel_path.lstrip("/").replace("\\", "/")
        target = (out_dir / rel_path).resolve()
        if root not in target.parents:
            raise ValueError(f"Refusing to write outside {out_dir}: {rel_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
    return written
