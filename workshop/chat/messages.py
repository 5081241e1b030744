from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from workshop.core.protocol import AIActionPlan

ChatRole = Literal["user", "model"]
PlanStatus = Literal["none", "pending", "applied", "discarded"]


@dataclass
class ChatMessage:
    role: ChatRole
    text: str
    plan: Optional[AIActionPlan] = None
    plan_status: PlanStatus = "none"

    @property
    def has_pending_plan(self) -> bool:
        return self.plan is not None and self.plan_status == "pending"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "text": self.text, "planStatus": self.plan_status}
        data["plan"] = self.plan.to_json_dict() if self.plan else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        plan = data.get("plan")
        return cls(
            role=data.get("role", "model"),
            text=data.get("text", ""),
            plan=AIActionPlan.model_validate(plan) if plan else None,
            plan_status=data.get("planStatus", "none"),
        )
