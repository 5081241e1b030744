from __future__ import annotations


class WorkshopError(Exception):
    """Base class for all workshop failures."""


class BlueprintParseError(WorkshopError, ValueError):
    pass


class ActionPlanParseError(WorkshopError, ValueError):
    pass


class StageTransitionError(WorkshopError):
    """Raised when a transition is requested from the wrong build stage."""


class GenerationError(WorkshopError):
    """An external generation call failed or returned something unusable."""


class CollaboratorUnavailable(WorkshopError):
    """No AI provider could be configured (missing key, unknown provider name)."""
