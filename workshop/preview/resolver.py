from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from workshop.preview.references import EphemeralReferencePool, media_type_for
from workshop.project_state.state_store import ProjectFile
from workshop.project_state.workshop import ENTRY_POINT, is_entry_point
from workshop.utils.logger import get_logger

PLACEHOLDER_NOTICE = f"Create an `{ENTRY_POINT}` file to see a live preview."
PREVIEW_MESSAGE_SOURCE = "workshop-preview"

# Forwards console output and uncaught errors from the sandboxed frame to the
# host, which hands the payload to ConsoleSink.forward_preview_message.
DIAGNOSTIC_SCRIPT = """<script>
(function () {
  var SOURCE = "%(source)s";
  function fmt(args) {
    return Array.prototype.map.call(args, function (a) {
      if (a instanceof Error) { return a.stack || a.message; }
      if (typeof a === "object") { try { return JSON.stringify(a); } catch (e) { return String(a); } }
      return String(a);
    }).join(" ");
  }
  function post(type, message) {
    try { window.parent.postMessage({ source: SOURCE, type: type, message: message }, "*"); } catch (e) {}
  }
  ["log", "info", "warn", "error"].forEach(function (level) {
    var original = console[level];
    console[level] = function () {
      post(level, fmt(arguments));
      if (original) { original.apply(console, arguments); }
    };
  });
  window.addEventListener("error", function (event) {
    post("error", "Uncaught " + (event.message || "error") +
      (event.filename ? " at " + event.filename + ":" + event.lineno : ""));
  });
  window.addEventListener("unhandledrejection", function (event) {
    post("error", "Unhandled promise rejection: " + fmt([event.reason]));
  });
})();
</script>""" % {"source": PREVIEW_MESSAGE_SOURCE}

HEAD_OPEN_RE = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
HTML_OPEN_RE = re.compile(r"<html\b[^>]*>", re.IGNORECASE)


@dataclass
class PreviewDocument:
    generation: int
    html: Optional[str] = None
    placeholder: Optional[str] = None
    entry_point: Optional[str] = None
    references: Dict[str, str] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.html is not None


def _attribute_pattern(path: str) -> "re.Pattern[str]":
    # href="style.css", src='./logo.png', ... exact path, optional ./ prefix
    return re.compile(
        r"((?<![\w-])(?i:href|src)\s*=\s*)([\"'])(?:\./)?" + re.escape(path) + r"\2"
    )


def rewrite_references(html: str, references: Dict[str, str]) -> str:
    for path, url in references.items():
        html = _attribute_pattern(path).sub(lambda m, url=url: f"{m.group(1)}{m.group(2)}{url}{m.group(2)}", html)
    return html


def inject_diagnostics(html: str, script: str = DIAGNOSTIC_SCRIPT) -> str:
    for pattern in (HEAD_OPEN_RE, HTML_OPEN_RE):
        m = pattern.search(html)
        if m:
            return html[: m.end()] + "\n" + script + html[m.end():]
    return script + "\n" + html


class PreviewResolver:
    """
    Turns the project's files into one runnable document.

    - picks the entry point (case-insensitive `index.html`)
    - issues a fresh ephemeral reference for every file
    - points matching href/src attributes of the entry point at those references
    - injects the diagnostic forwarding script

    Each render() starts a new generation and revokes the previous one first;
    close() revokes whatever is still outstanding.
    """

    def __init__(self, inline: bool = False) -> None:
        self.inline = inline
        self.generation = 0
        self._pool: Optional[EphemeralReferencePool] = None
        self.logger = get_logger(self.__class__.__name__)

    @property
    def pool(self) -> Optional[EphemeralReferencePool]:
        return self._pool

    def _release(self) -> None:
        if self._pool is not None:
            released = self._pool.revoke_all()
            self.logger.debug("Revoked %d references of preview generation %d", released, self._pool.generation)
            self._pool = None

    def render(self, files: List[ProjectFile]) -> PreviewDocument:
        self._release()
        self.generation += 1

        entry = next((f for f in files if is_entry_point(f.file_name)), None)
        if entry is None:
            return PreviewDocument(generation=self.generation, placeholder=PLACEHOLDER_NOTICE)

        pool = EphemeralReferencePool(generation=self.generation, inline=self.inline)
        self._pool = pool
        references = {f.file_name: pool.create(f.content, media_type_for(f.file_name)) for f in files}

        html = rewrite_references(entry.content, references)
        html = inject_diagnostics(html)
        return PreviewDocument(
            generation=self.generation,
            html=html,
            entry_point=entry.file_name,
            references=references,
        )

    def close(self) -> None:
        self._release()
