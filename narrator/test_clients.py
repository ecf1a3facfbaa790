import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from narrator.clients import NarrationClient, SpeechClient, fetch_music
from narrator.errors import RemoteNarrationError, RemoteSpeechError

NARRATION = "The hills rose, and Affan stood ready."


def _response(status, body=None, content=b""):
    response = requests.Response()
    response.status_code = status
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = content
    return response


def _http(response=None, error=None):
    http = MagicMock(spec=requests.Session)
    if error is not None:
        http.post.side_effect = error
    else:
        http.post.return_value = response
    return http


def test_narrate_posts_image_and_history():
    http = _http(_response(200, {"narration": NARRATION}))
    client = NarrationClient("http://localhost:8000/", timeout=5, http=http)
    history = [{"role": "assistant", "content": "Long ago, Affan woke."}]

    assert client.narrate("aGVybw==", history) == NARRATION

    http.post.assert_called_once_with(
        "http://localhost:8000/api/narrate",
        json={"image": "aGVybw==", "history": history},
        timeout=5,
    )


def test_narrate_error_body_raises():
    client = NarrationClient("http://x", http=_http(_response(500, {"error": "rate limited"})))
    with pytest.raises(RemoteNarrationError, match="rate limited"):
        client.narrate("img", [])


def test_narrate_error_without_body_uses_status():
    client = NarrationClient("http://x", http=_http(_response(502, content=b"<html>bad gateway</html>")))
    with pytest.raises(RemoteNarrationError, match="HTTP 502"):
        client.narrate("img", [])


def test_narrate_error_field_on_success_status_raises():
    client = NarrationClient("http://x", http=_http(_response(200, {"error": "no faces"})))
    with pytest.raises(RemoteNarrationError, match="no faces"):
        client.narrate("img", [])


def test_narrate_empty_text_raises():
    client = NarrationClient("http://x", http=_http(_response(200, {"narration": "  "})))
    with pytest.raises(RemoteNarrationError):
        client.narrate("img", [])


def test_narrate_network_failure_raises():
    client = NarrationClient("http://x", http=_http(error=requests.ConnectionError("refused")))
    with pytest.raises(RemoteNarrationError, match="refused"):
        client.narrate("img", [])


def test_speak_returns_whole_body():
    http = _http(_response(200, content=b"ID3" + b"\x00" * 64))
    client = SpeechClient("http://localhost:8000", http=http)

    assert client.speak(NARRATION) == b"ID3" + b"\x00" * 64
    http.post.assert_called_once_with(
        "http://localhost:8000/api/speak", json={"text": NARRATION}, timeout=None
    )


def test_speak_error_body_raises():
    client = SpeechClient("http://x", http=_http(_response(500, {"error": "voice not found"})))
    with pytest.raises(RemoteSpeechError, match="voice not found"):
        client.speak(NARRATION)


def test_speak_empty_audio_raises():
    client = SpeechClient("http://x", http=_http(_response(200, content=b"")))
    with pytest.raises(RemoteSpeechError):
        client.speak(NARRATION)


def test_speak_timeout_raises():
    client = SpeechClient("http://x", timeout=1, http=_http(error=requests.Timeout("slow")))
    with pytest.raises(RemoteSpeechError):
        client.speak(NARRATION)


def test_fetch_music_present():
    with patch("narrator.clients.requests.get", return_value=_response(200, content=b"ID3music")) as get:
        assert fetch_music("http://localhost:8000") == b"ID3music"
    get.assert_called_once_with("http://localhost:8000/hero.mp3", timeout=10.0)


def test_fetch_music_absent():
    with patch("narrator.clients.requests.get", return_value=_response(404, content=b"Not Found")):
        assert fetch_music("http://localhost:8000") is None


def test_fetch_music_server_down():
    with patch("narrator.clients.requests.get", side_effect=requests.ConnectionError("refused")):
        assert fetch_music("http://localhost:8000") is None
