"""Tests for the OpenAI and ElevenLabs wrappers with the SDK clients mocked out."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from narrator.config import SCENE_INSTRUCTION, SYSTEM_PROMPT, Config
from narrator.speech import MP3_OUTPUT_FORMAT, SpeechService
from narrator.vision import NarrationService, build_messages


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_build_messages_order():
    history = [{"role": "assistant", "content": "Long ago, Affan woke."}]
    messages = build_messages("SYSTEM", history, "aGVybw==", "Describe it")

    assert messages[0] == {"role": "system", "content": "SYSTEM"}
    assert messages[1] == history[0]
    user = messages[2]
    assert user["role"] == "user"
    assert user["content"][0] == {"type": "text", "text": "Describe it"}
    assert user["content"][1]["image_url"]["url"] == "data:image/jpeg;base64,aGVybw=="


def test_narrate_calls_chat_completions():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(" The hills rose. ")
    service = NarrationService(Config(), client=client)

    assert service.narrate("aGVybw==", []) == "The hills rose."

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["max_tokens"] == 300
    assert kwargs["messages"][0]["content"] == SYSTEM_PROMPT
    assert kwargs["messages"][-1]["content"][0]["text"] == SCENE_INSTRUCTION


def test_narrate_without_text_raises():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(None)
    with pytest.raises(RuntimeError):
        NarrationService(Config(), client=client).narrate("aGVybw==", [])


def test_narration_needs_api_key():
    service = NarrationService(Config(openai_api_key=None))
    assert not service.configured
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        service.narrate("aGVybw==", [])


def test_synthesize_joins_stream():
    client = MagicMock()
    client.text_to_speech.convert.return_value = iter([b"ID3", b"abc", b"def"])
    service = SpeechService(Config(elevenlabs_voice_id="voice-1"), client=client)

    assert service.configured
    assert service.synthesize("Affan stood ready.") == b"ID3abcdef"

    kwargs = client.text_to_speech.convert.call_args.kwargs
    assert kwargs["voice_id"] == "voice-1"
    assert kwargs["model_id"] == "eleven_monolingual_v1"
    assert kwargs["output_format"] == MP3_OUTPUT_FORMAT
    assert kwargs["text"] == "Affan stood ready."


def test_synthesize_needs_voice():
    service = SpeechService(Config(elevenlabs_voice_id=None), client=MagicMock())
    assert not service.configured
    with pytest.raises(RuntimeError, match="ELEVENLABS_VOICE_ID"):
        service.synthesize("hello")


def test_synthesize_rejects_empty_text():
    service = SpeechService(Config(elevenlabs_voice_id="voice-1"), client=MagicMock())
    with pytest.raises(ValueError):
        service.synthesize("")
