from typing import Iterator, Optional

from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs

from .config import Config

MP3_OUTPUT_FORMAT = "mp3_44100_128"


def _voice_settings() -> VoiceSettings:
    return VoiceSettings(
        stability=0.5,
        similarity_boost=0.75,
        style=0.0,
        use_speaker_boost=True,
    )


class SpeechService:
    """Text-to-speech through ElevenLabs, returning mp3 bytes."""

    def __init__(self, config: Config, client: Optional[ElevenLabs] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> ElevenLabs:
        if self._client is None:
            if not self.config.elevenlabs_api_key:
                raise RuntimeError("ELEVENLABS_API_KEY is not set")
            self._client = ElevenLabs(api_key=self.config.elevenlabs_api_key)
        return self._client

    @property
    def configured(self) -> bool:
        has_key = self._client is not None or bool(self.config.elevenlabs_api_key)
        return has_key and bool(self.config.elevenlabs_voice_id)

    def _convert(self, text: str) -> Iterator[bytes]:
        if not text:
            raise ValueError("Text cannot be empty")
        if not self.config.elevenlabs_voice_id:
            raise RuntimeError("ELEVENLABS_VOICE_ID is not set")
        return self.client.text_to_speech.convert(
            voice_id=self.config.elevenlabs_voice_id,
            text=text,
            model_id=self.config.tts_model_id,
            output_format=MP3_OUTPUT_FORMAT,
            voice_settings=_voice_settings(),
        )

    def synthesize(self, text: str) -> bytes:
        # the API streams chunks; callers get the whole clip
        return b"".join(self._convert(text))
