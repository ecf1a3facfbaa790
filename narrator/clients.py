'''
HTTP clients the camera app uses to reach the narration server.

Both calls are blocking (requests); the orchestrator runs them off the event loop.
'''
import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import RemoteNarrationError, RemoteSpeechError

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class NarrationClient:
    def __init__(self, base_url: str, timeout: Optional[float] = None,
                 http: Optional[requests.Session] = None):
        self.url = f"{base_url.rstrip('/')}/api/narrate"
        self.timeout = timeout
        self._http = http or requests.Session()

    def narrate(self, image_b64: str, history: List[Dict[str, Any]]) -> str:
        try:
            response = self._http.post(
                self.url,
                json={"image": image_b64, "history": history},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteNarrationError(str(exc)) from exc

        if not response.ok:
            raise RemoteNarrationError(_error_message(response))
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteNarrationError("Narration response was not JSON") from exc
        if not isinstance(data, dict):
            raise RemoteNarrationError("Narration response was not a JSON object")
        if data.get("error"):
            raise RemoteNarrationError(str(data["error"]))
        narration = data.get("narration")
        if not isinstance(narration, str) or not narration.strip():
            raise RemoteNarrationError("Narration response had no text")
        return narration


class SpeechClient:
    def __init__(self, base_url: str, timeout: Optional[float] = None,
                 http: Optional[requests.Session] = None):
        self.url = f"{base_url.rstrip('/')}/api/speak"
        self.timeout = timeout
        self._http = http or requests.Session()

    def speak(self, text: str) -> bytes:
        """Return the full audio body; nothing is played until it is all here."""
        try:
            response = self._http.post(self.url, json={"text": text}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteSpeechError(str(exc)) from exc

        if not response.ok:
            raise RemoteSpeechError(_error_message(response))
        audio = response.content
        if not audio:
            raise RemoteSpeechError("Speech response was empty")
        return audio


def fetch_music(base_url: str, timeout: float = 10.0) -> Optional[bytes]:
    """Background track served by the narration server, or None if it has none."""
    url = f"{base_url.rstrip('/')}/hero.mp3"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Unable to fetch background music: %s", exc)
        return None
    if response.status_code != 200 or not response.content:
        logger.info("No background music at %s", url)
        return None
    return response.content
