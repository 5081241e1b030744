from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

from workshop.config import WorkshopConfig
from workshop.errors import CollaboratorUnavailable, GenerationError
from workshop.llm.base import AICollaborator

logger = logging.getLogger(__name__)

LLMRole = Literal["blueprint", "code_gen", "chat", "simulate"]
ROLES: List[LLMRole] = ["blueprint", "code_gen", "chat", "simulate"]


@dataclass
class RoutedChatSession:
    provider: AICollaborator
    handle: Any


class LLMRouter(AICollaborator):
    """
    Simple multi-provider router:
    - Chooses provider chain based on role
    - Tries providers in order, falling back on exceptions

    Streaming is not retried on another provider once the session is open:
    chunks may already have reached the user.
    """

    name = "router"

    def __init__(self, providers_by_role: Dict[str, List[AICollaborator]]) -> None:
        self.providers_by_role = providers_by_role

    @classmethod
    def from_config(cls, cfg: WorkshopConfig) -> "LLMRouter":
        providers: List[AICollaborator] = []
        for provider_name in cfg.provider_chain:
            try:
                providers.append(build_provider(provider_name, cfg))
            except CollaboratorUnavailable as exc:
                logger.warning("LLMRouter: provider %s unavailable: %s", provider_name, exc)
        if not providers:
            raise CollaboratorUnavailable(f"No usable LLM provider among {cfg.provider_chain}")
        return cls({role: list(providers) for role in ROLES})

    def _chain(self, role: LLMRole) -> List[AICollaborator]:
        providers = self.providers_by_role.get(role, [])
        if not providers:
            raise CollaboratorUnavailable(f"No LLM providers configured for role: {role}")
        return providers

    async def _call(self, role: LLMRole, method: str, *args: Any, **kwargs: Any) -> Any:
        last_error: Optional[Exception] = None
        for idx, provider in enumerate(self._chain(role)):
            logger.info("LLMRouter: role=%s trying provider[%d]=%s", role, idx, provider.name)
            try:
                return await getattr(provider, method)(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "LLMRouter: provider %s for role=%s failed (%s). Trying next provider if any.",
                    provider.name,
                    role,
                    exc,
                )
        # All providers failed
        raise GenerationError(f"All LLM providers failed for role={role}: {last_error}") from last_error

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("blueprint", "generate_structured", prompt, schema)

    async def generate_raw_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> str:
        return await self._call(
            "code_gen",
            "generate_raw_text",
            prompt,
            system_instruction,
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
        )

    async def simulate_execution(self, code: str, language: str) -> str:
        return await self._call("simulate", "simulate_execution", code, language)

    async def open_chat_session(self, system_instruction: str) -> RoutedChatSession:
        last_error: Optional[Exception] = None
        for provider in self._chain("chat"):
            try:
                handle = await provider.open_chat_session(system_instruction)
                return RoutedChatSession(provider=provider, handle=handle)
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning("LLMRouter: could not open chat on %s (%s)", provider.name, exc)
        raise GenerationError(f"Could not open a chat session: {last_error}") from last_error

    async def stream_message(self, session: RoutedChatSession, message: str) -> AsyncIterator[str]:
        async for chunk in session.provider.stream_message(session.handle, message):
            yield chunk


def build_provider(provider_name: str, cfg: WorkshopConfig) -> AICollaborator:
    # Imported lazily so a local-only setup does not need google-genai configured.
    if provider_name == "gemini":
        from workshop.llm.providers.gemini_api import GeminiProvider

        return GeminiProvider(model=cfg.gemini_model, api_key=cfg.gemini_api_key)
    if provider_name == "local":
        from workshop.llm.providers.local_llm_api import LocalLLMProvider

        return LocalLLMProvider(model=cfg.local_model, url=cfg.local_url, timeout=cfg.local_timeout_seconds)
    raise CollaboratorUnavailable(f"Unknown LLM provider: {provider_name}")
