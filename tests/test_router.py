"""Tests for provider routing and the local provider's schema translation."""

import pytest

from conftest import FakeCollaborator

from workshop.config import WorkshopConfig
from workshop.core.protocol import BLUEPRINT_SCHEMA
from workshop.errors import CollaboratorUnavailable, GenerationError
from workshop.llm.providers.local_llm_api import LocalChatSession, LocalLLMProvider, to_json_schema
from workshop.llm.router.llm_router import ROLES, LLMRouter, build_provider


class BrokenCollaborator(FakeCollaborator):
    name = "broken"

    async def generate_structured(self, prompt, schema):
        self.calls.append("generate_structured")
        raise ConnectionError("offline")

    async def open_chat_session(self, system_instruction):
        raise ConnectionError("offline")


def router_of(*providers):
    return LLMRouter({role: list(providers) for role in ROLES})


class TestLLMRouter:
    async def test_falls_back_to_next_provider(self, blueprint_data):
        broken = BrokenCollaborator()
        working = FakeCollaborator(blueprint=blueprint_data)
        result = await router_of(broken, working).generate_structured("p", BLUEPRINT_SCHEMA)
        assert result["projectName"] == "hello-page"
        assert broken.calls == ["generate_structured"]
        assert working.calls == ["generate_structured"]

    async def test_all_providers_failing_raises(self):
        with pytest.raises(GenerationError, match="offline"):
            await router_of(BrokenCollaborator(), BrokenCollaborator()).generate_structured("p", {})

    async def test_chat_opens_on_first_working_provider(self):
        working = FakeCollaborator(chat_replies=[["a", "b"]])
        router = router_of(BrokenCollaborator(), working)
        session = await router.open_chat_session("be helpful")
        assert session.provider is working
        chunks = [chunk async for chunk in router.stream_message(session, "hi")]
        assert chunks == ["a", "b"]
        assert working.sent_messages == ["hi"]

    async def test_simulation_goes_through_simulate_role(self):
        simulator = FakeCollaborator(simulate_output="42\n")
        router = LLMRouter({"simulate": [simulator]})
        assert await router.simulate_execution("print(42)", "python") == "42\n"
        with pytest.raises(CollaboratorUnavailable):
            await router.generate_raw_text("p")

    def test_from_config_skips_unavailable_providers(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        cfg = WorkshopConfig(provider="gemini", fallback_providers=["local"], gemini_api_key=None)
        router = LLMRouter.from_config(cfg)
        assert [p.name for p in router.providers_by_role["chat"]] == ["local"]

    def test_from_config_without_any_provider(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        with pytest.raises(CollaboratorUnavailable):
            LLMRouter.from_config(WorkshopConfig(provider="gemini", gemini_api_key=None))

    def test_unknown_provider_name(self):
        with pytest.raises(CollaboratorUnavailable):
            build_provider("mystery", WorkshopConfig())


class TestLocalProvider:
    def test_schema_types_are_lowercased(self):
        schema = to_json_schema(BLUEPRINT_SCHEMA)
        assert schema["type"] == "object"
        assert schema["properties"]["files"]["items"]["type"] == "object"
        assert schema["properties"]["techStack"]["items"] == {"type": "string"}
        assert schema["required"] == BLUEPRINT_SCHEMA["required"]

    def test_chat_history_starts_with_system_instruction(self):
        session = LocalChatSession(system_instruction="sys")
        session.messages.append({"role": "user", "content": "hi"})
        assert session.history() == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]

    async def test_generate_raw_text_posts_to_ollama(self, monkeypatch):
        captured = {}

        class Response:
            def raise_for_status(self):
                pass

            def json(self):
                return {"message": {"role": "assistant", "content": "print(1)"}, "done": True}

        def fake_post(url, json=None, timeout=None, **kwargs):
            captured.update(url=url, payload=json)
            return Response()

        monkeypatch.setattr("workshop.llm.providers.local_llm_api.requests.post", fake_post)
        provider = LocalLLMProvider(model="m", url="http://ollama/api/chat")
        out = await provider.generate_raw_text("write code", "sys", temperature=0.1, top_k=1)

        assert out == "print(1)"
        assert captured["url"] == "http://ollama/api/chat"
        assert captured["payload"]["messages"][0] == {"role": "system", "content": "sys"}
        assert captured["payload"]["options"] == {"temperature": 0.1, "top_k": 1}
        assert captured["payload"]["stream"] is False

    async def test_unexpected_response_shape(self, monkeypatch):
        class Response:
            def raise_for_status(self):
                pass

            def json(self):
                return {"error": "model not found"}

        monkeypatch.setattr(
            "workshop.llm.providers.local_llm_api.requests.post", lambda *a, **kw: Response()
        )
        with pytest.raises(GenerationError):
            await LocalLLMProvider(model="m", url="http://ollama").generate_raw_text("p")
