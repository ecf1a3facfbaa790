import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

SYSTEM_PROMPT = """You are the narrator of a hero film. The name of the character is Affan. Narrate the characters as if you were narrating the main characters in an epic opening sequence in a lord of the rings movie. Be sure to call them by their names.
Make it really awesome, while really making the characters feel epic. Don't repeat yourself. Make it short, max one line 10-20 words. Build on top of the story as you tell it. Don't use the word image.
As you narrate, pretend there is an epic Hans Zimmer song playing in the background.
Use words that are simple but poetic, a 4th grader should be able to understand it perfectly.
Build a back story for each of the characters as the heroes of a world they're trying to save."""

SCENE_INSTRUCTION = "Describe this scene like you're a narrator in a movie"


@dataclass(frozen=True)
class Config:
    # Credentials
    openai_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: Optional[str] = None

    # Remote collaborators
    narration_model: str = "gpt-4o"
    narration_max_tokens: int = 300
    tts_model_id: str = "eleven_monolingual_v1"
    system_prompt: str = SYSTEM_PROMPT
    scene_instruction: str = SCENE_INSTRUCTION

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    public_dir: Path = field(default_factory=lambda: PROJECT_ROOT / "public")
    music_path: Path = field(default_factory=lambda: PROJECT_ROOT / "hero.mp3")

    # Client
    server_url: str = "http://localhost:8000"
    request_timeout: Optional[float] = None  # None = wait as long as the service takes

    # Camera
    cam_index: int = 0
    cam_width: int = 1280
    cam_height: int = 720
    face_model_path: str = "blaze_face_short_range.tflite"
    refresh_hz: float = 30.0

    # Narration cycle
    capture_width: int = 500
    jpeg_quality: int = 80
    countdown_from: int = 3
    countdown_interval: float = 1.0

    # Render
    subtitle_max_line_length: int = 50
    music_volume: float = 0.3

    # UI
    window_title: str = "Hero Narrator (SPACE=narrate, E=enhance, M=music, ESC=quit)"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


def load_config(env_file: Optional[Path] = None) -> Config:
    """Build a Config from the environment, reading ``.env`` first.

    Variables already present in the environment win over the file.
    """
    load_dotenv(dotenv_path=env_file or PROJECT_ROOT / ".env")
    defaults = Config()
    return Config(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY") or None,
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID") or None,
        narration_model=os.getenv("NARRATOR_MODEL", defaults.narration_model),
        narration_max_tokens=int(os.getenv("NARRATOR_MAX_TOKENS", defaults.narration_max_tokens)),
        tts_model_id=os.getenv("TTS_MODEL_ID", defaults.tts_model_id),
        host=os.getenv("NARRATOR_HOST", defaults.host),
        port=int(os.getenv("NARRATOR_PORT", defaults.port)),
        server_url=os.getenv("NARRATOR_SERVER_URL", defaults.server_url).rstrip("/"),
        request_timeout=_optional_float(os.getenv("NARRATOR_REQUEST_TIMEOUT")),
        cam_index=int(os.getenv("CAMERA_INDEX", defaults.cam_index)),
        face_model_path=os.getenv("FACE_MODEL_PATH", defaults.face_model_path),
    )


CFG = Config()
