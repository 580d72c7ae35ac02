import pytest

import llm
from errors import UpstreamError


class _Response:
    def __init__(self, text):
        self.text = text


def _install_fake_model(monkeypatch, behaviour):
    created = []

    class FakeModel:
        def __init__(self, model_name, system_instruction=None, generation_config=None):
            self.model_name = model_name
            self.system_instruction = system_instruction
            self.generation_config = generation_config
            self.requests = []
            created.append(self)

        def generate_content(self, contents, request_options=None):
            self.requests.append((contents, request_options))
            return behaviour(contents)

    monkeypatch.setattr(llm.genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(llm.genai, "GenerativeModel", FakeModel)
    return created


def test_missing_api_key_fails_fast():
    client = llm.GeminiClient(None, "gemini-test", 45)
    with pytest.raises(UpstreamError):
        client.analyze_entry("t", "c", "happy")
    with pytest.raises(UpstreamError):
        client.chat_reply([("user", "hi")], "Ada")


def test_analysis_call_passes_prompt_and_timeout(monkeypatch):
    created = _install_fake_model(monkeypatch, lambda contents: _Response('{"ok": true}'))
    client = llm.GeminiClient("key", "gemini-test", 45)

    assert client.analyze_entry("Test", "I feel happy", "happy") == '{"ok": true}'

    model = created[0]
    assert model.model_name == "gemini-test"
    assert model.system_instruction == llm.ANALYSIS_SYSTEM_PROMPT
    contents, options = model.requests[0]
    assert 'Title: "Test"' in contents
    assert 'Mood: "happy"' in contents
    assert options == {"timeout": 45}


def test_timeout_becomes_upstream_error(monkeypatch):
    def boom(contents):
        raise TimeoutError("deadline exceeded")

    _install_fake_model(monkeypatch, boom)
    client = llm.GeminiClient("key", "gemini-test", 45)

    with pytest.raises(UpstreamError):
        client.analyze_entry("t", "c", "sad")


def test_empty_response_is_upstream_error(monkeypatch):
    _install_fake_model(monkeypatch, lambda contents: _Response("   "))
    client = llm.GeminiClient("key", "gemini-test", 45)

    with pytest.raises(UpstreamError):
        client.chat_reply([("user", "hi")], "Ada")


def test_chat_reply_sends_history_and_user_name(monkeypatch):
    created = _install_fake_model(monkeypatch, lambda contents: _Response("I'm here for you."))
    client = llm.GeminiClient("key", "gemini-test", 45)

    reply = client.chat_reply([("assistant", "Welcome"), ("user", "Rough day"), ("assistant", "Tell me"), ("user", "Ok")], "Ada")

    assert reply == "I'm here for you."
    model = created[0]
    assert "The user's name is Ada" in model.system_instruction
    contents, _ = model.requests[0]
    assert [c["role"] for c in contents] == ["user", "model", "user"]


def test_build_chat_contents_skips_leading_assistant_messages():
    contents = llm.build_chat_contents([("assistant", "Welcome"), ("user", "hi")])
    assert contents == [{"role": "user", "parts": ["hi"]}]
