import pytest

from narrator.config import Config
from narrator.server import create_app

NARRATION = "The hills rose, and Affan stood ready."


class StubNarration:
    configured = True

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def narrate(self, image_b64, history):
        self.calls.append((image_b64, history))
        if self.error:
            raise self.error
        return NARRATION


class StubSpeech:
    configured = False

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def synthesize(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return b"ID3\x03fake-mp3"


@pytest.fixture
def public_dir(tmp_path):
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_text("<h1>Hero Narrator</h1>")
    (public / "app.js").write_text("console.log('hero');")
    (public / "style.css").write_text("body {}")
    (public / "notes.txt").write_text("notes")
    (tmp_path / "secret.txt").write_text("do not serve")
    return public


def _client(public_dir, narration=None, speech=None, music_path=None):
    config = Config(public_dir=public_dir, music_path=music_path or public_dir.parent / "hero.mp3")
    app = create_app(config, narration or StubNarration(), speech or StubSpeech())
    app.config["TESTING"] = True
    return app.test_client()


def test_narrate_returns_text_and_forwards_history(public_dir):
    narration = StubNarration()
    client = _client(public_dir, narration=narration)
    history = [{"role": "assistant", "content": "Long ago, Affan woke."}]

    response = client.post("/api/narrate", json={"image": "aGVybw==", "history": history})

    assert response.status_code == 200
    assert response.get_json() == {"narration": NARRATION}
    assert narration.calls == [("aGVybw==", history)]


def test_narrate_defaults_to_empty_history(public_dir):
    narration = StubNarration()
    client = _client(public_dir, narration=narration)
    client.post("/api/narrate", json={"image": "aGVybw=="})
    assert narration.calls[0][1] == []


def test_narrate_failure_is_json_error(public_dir):
    client = _client(public_dir, narration=StubNarration(error=RuntimeError("rate limited")))

    response = client.post("/api/narrate", json={"image": "aGVybw==", "history": []})

    assert response.status_code == 500
    assert response.get_json() == {"error": "rate limited"}


@pytest.mark.parametrize("body", [None, {}, {"history": []}, {"image": "x", "history": "nope"}])
def test_narrate_rejects_bad_bodies(public_dir, body):
    client = _client(public_dir)
    response = client.post("/api/narrate", json=body) if body is not None else client.post("/api/narrate")
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_speak_returns_mpeg(public_dir):
    speech = StubSpeech()
    client = _client(public_dir, speech=speech)

    response = client.post("/api/speak", json={"text": NARRATION})

    assert response.status_code == 200
    assert response.mimetype == "audio/mpeg"
    assert response.data == b"ID3\x03fake-mp3"
    assert speech.calls == [NARRATION]


def test_speak_failure_is_json_error(public_dir):
    client = _client(public_dir, speech=StubSpeech(error=RuntimeError("voice not found")))
    response = client.post("/api/speak", json={"text": NARRATION})
    assert response.status_code == 500
    assert response.get_json() == {"error": "voice not found"}


def test_speak_requires_text(public_dir):
    client = _client(public_dir)
    response = client.post("/api/speak", json={"text": "  "})
    assert response.status_code == 400


def test_health_reports_configured_services(public_dir):
    client = _client(public_dir)
    assert client.get("/api/health").get_json() == {
        "status": "healthy",
        "narration": True,
        "speech": False,
    }


@pytest.mark.parametrize("path", ["/", "/index.html"])
def test_root_page(public_dir, path):
    response = _client(public_dir).get(path)
    assert response.status_code == 200
    assert response.mimetype == "text/html"
    assert b"Hero Narrator" in response.data


@pytest.mark.parametrize("path,mimetype", [
    ("/app.js", "application/javascript"),
    ("/style.css", "text/css"),
    ("/notes.txt", "text/plain"),
])
def test_static_content_types(public_dir, path, mimetype):
    response = _client(public_dir).get(path)
    assert response.status_code == 200
    assert response.mimetype == mimetype


def test_unknown_path_is_not_found(public_dir):
    response = _client(public_dir).get("/missing.js")
    assert response.status_code == 404
    assert response.data == b"Not Found"


def test_path_traversal_is_not_found(public_dir):
    response = _client(public_dir).get("/../secret.txt")
    assert response.status_code == 404


def test_music_served_when_present(public_dir):
    music = public_dir.parent / "hero.mp3"
    music.write_bytes(b"ID3music")
    response = _client(public_dir, music_path=music).get("/hero.mp3")
    assert response.status_code == 200
    assert response.mimetype == "audio/mpeg"
    assert response.data == b"ID3music"


def test_missing_music_is_not_an_error(public_dir):
    response = _client(public_dir).get("/hero.mp3")
    assert response.status_code == 404
