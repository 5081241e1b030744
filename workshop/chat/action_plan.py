from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from workshop.core.protocol import AIActionPlan
from workshop.errors import ActionPlanParseError

ACTION_PLAN_TAG = "json_actions"

# Both fences must start a line. JSON strings keep their newlines escaped, so
# backticks inside file content never sit at the start of a line.
ACTION_BLOCK_RE = re.compile(
    r"^```" + ACTION_PLAN_TAG + r"[ \t]*\r?\n(.*?)\r?\n```[ \t]*(?=\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
ACTION_OPEN_RE = re.compile(r"^```" + ACTION_PLAN_TAG + r"\b", re.MULTILINE)


@dataclass
class ParsedReply:
    """
    A completed model reply split into what the user reads and what the
    workshop may apply. `plan is None` means the reply is prose only; `error`
    is set when a plan block was present but could not be used, in which case
    `prose` is the untouched raw text.
    """

    prose: str
    plan: Optional[AIActionPlan] = None
    error: Optional[str] = None

    @property
    def has_plan(self) -> bool:
        return self.plan is not None


def parse_action_plan(raw_json: str) -> AIActionPlan:
    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as e:
        raise ActionPlanParseError(f"Action plan is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ActionPlanParseError("Action plan must be a JSON object")
    try:
        return AIActionPlan.model_validate(data)
    except ValidationError as e:
        raise ActionPlanParseError(f"Action plan does not match the expected shape: {e}") from e


def extract_action_plan(text: str) -> ParsedReply:
    """
    Two steps:
    1) lexical: locate the one fenced block tagged `json_actions`
    2) parse: validate its body as an AIActionPlan

    Never raises; failures come back as ParsedReply.error with the raw text kept.
    """
    text = text or ""
    matches = list(ACTION_BLOCK_RE.finditer(text))

    if not matches:
        if ACTION_OPEN_RE.search(text):
            return ParsedReply(prose=text, error="Action plan block is not terminated.")
        return ParsedReply(prose=text)

    if len(matches) > 1:
        return ParsedReply(prose=text, error=f"Found {len(matches)} action plan blocks; expected one.")

    m = matches[0]
    try:
        plan = parse_action_plan(m.group(1))
    except ActionPlanParseError as e:
        return ParsedReply(prose=text, error=str(e))

    prose = text[: m.start()] + text[m.end():]
    prose = re.sub(r"\n{3,}", "\n\n", prose).strip()
    return ParsedReply(prose=prose, plan=plan)
