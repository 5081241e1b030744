import json
import logging
import os
from typing import Any, AsyncIterator, Dict, Optional

from google import genai
from google.genai import types

from workshop.errors import CollaboratorUnavailable, GenerationError
from workshop.llm.base import AICollaborator

logger = logging.getLogger(__name__)

DEFAULT_CHAT_SYSTEM = "You are a helpful and creative assistant in a digital workshop."


class GeminiProvider(AICollaborator):
    """
    Gemini Developer API via Google Gen AI SDK (google-genai), async client.
    Uses GEMINI_API_KEY (API_KEY is accepted too).
    """

    def __init__(self, model: str = "gemini-2.5-flash", api_key: Optional[str] = None, name: str = "gemini"):
        api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        if not api_key:
            raise CollaboratorUnavailable("GEMINI_API_KEY environment variable not set")

        self.name = name
        self.client = genai.Client(api_key=api_key)
        self.model = model

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("GeminiProvider[%s]: structured call model=%s", self.name, self.model)
        resp = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        text = resp.text or ""
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model returned invalid JSON: {e}") from e

    async def generate_raw_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> str:
        logger.info("GeminiProvider[%s]: text call model=%s", self.name, self.model)
        resp = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                temperature=temperature,
                top_k=top_k,
                top_p=top_p,
            ),
        )
        return resp.text or ""

    async def open_chat_session(self, system_instruction: str) -> Any:
        return self.client.aio.chats.create(
            model=self.model,
            config=types.GenerateContentConfig(system_instruction=system_instruction or DEFAULT_CHAT_SYSTEM),
        )

    async def stream_message(self, session: Any, message: str) -> AsyncIterator[str]:
        stream = await session.send_message_stream(message)
        async for chunk in stream:
            text = chunk.text
            if text:
                yield text
