'''
Narration server for the hero-film webcam
1) POST /api/narrate: describe a webcam snapshot as an epic film narrator
2) POST /api/speak: turn the narration into speech
3) Serve the landing page, its assets and the background track
'''

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, Response, jsonify, request, send_file
from werkzeug.security import safe_join

from .config import Config, load_config
from .speech import SpeechService
from .vision import NarrationService

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "js": "application/javascript",
    "css": "text/css",
    "html": "text/html",
}


def _content_type(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return CONTENT_TYPES.get(ext, "text/plain")


def create_app(
    config: Optional[Config] = None,
    narration_service: Optional[NarrationService] = None,
    speech_service: Optional[SpeechService] = None,
) -> Flask:
    config = config or load_config()
    narration_service = narration_service or NarrationService(config)
    speech_service = speech_service or SpeechService(config)

    app = Flask(__name__, static_folder=None)
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # 16MB, a 500px JPEG is far smaller

    # ==================== API ENDPOINTS ====================

    @app.route("/api/narrate", methods=["POST"])
    def narrate():
        """
        Narrate a webcam snapshot.

        Expected JSON:
        {
          "image": "<base64 jpeg>",
          "history": [{"role": "assistant", "content": "..."}, ...]
        }

        Returns:
        {"narration": "The hills rose, and Affan stood ready."}
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data.get("image"):
            return jsonify({"error": "image is required"}), 400

        history = data.get("history") or []
        if not isinstance(history, list):
            return jsonify({"error": "history must be a list"}), 400

        try:
            narration = narration_service.narrate(data["image"], history)
        except Exception as e:
            logger.error("Narration error: %s", e)
            return jsonify({"error": str(e)}), 500

        return jsonify({"narration": narration})

    @app.route("/api/speak", methods=["POST"])
    def speak():
        """
        Synthesize speech for a line of narration.

        Expected JSON:
        {"text": "The hills rose, and Affan stood ready."}

        Returns the audio body as audio/mpeg.
        """
        data = request.get_json(silent=True)
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            return jsonify({"error": "text is required"}), 400

        try:
            audio = speech_service.synthesize(text)
        except Exception as e:
            logger.error("Text-to-speech error: %s", e)
            return jsonify({"error": str(e)}), 500

        return Response(audio, mimetype="audio/mpeg")

    @app.route("/api/health", methods=["GET"])
    def health_check():
        """Check if the API is running and which services have credentials."""
        return jsonify({
            "status": "healthy",
            "narration": narration_service.configured,
            "speech": speech_service.configured,
        })

    # ==================== STATIC FILES ====================

    def serve_public(path: str):
        target = safe_join(str(config.public_dir), path)
        if target is None or not Path(target).is_file():
            return Response("Not Found", status=404, mimetype="text/plain")
        return send_file(target, mimetype=_content_type(path))

    @app.route("/", methods=["GET"])
    def index():
        return serve_public("index.html")

    @app.route("/<path:path>", methods=["GET", "POST"])
    def static_files(path):
        # the background track lives next to the project, not in public/
        if path == "hero.mp3" and Path(config.music_path).is_file():
            return send_file(config.music_path, mimetype="audio/mpeg")
        return serve_public(path)

    return app


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    config = load_config()
    app = create_app(config)
    print("Starting Hero Narrator server...")
    print(f"Public folder: {config.public_dir}")
    print("API Endpoints:")
    print("  POST /api/narrate - Narrate a webcam snapshot")
    print("  POST /api/speak   - Text to speech (audio/mpeg)")
    print("  GET  /api/health  - Health check")
    print(f"Server running at http://localhost:{config.port}")
    app.run(host=config.host, port=config.port)


if __name__ == "__main__":
    main()
