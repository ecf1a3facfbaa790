"""Exception types for the narrator client and server."""


class NarratorError(Exception):
    """Base class for narrator failures."""


class InitializationError(NarratorError):
    """Camera or face detector could not be acquired. Fatal to the detection loop."""


class RemoteNarrationError(NarratorError):
    """The narration service failed or returned an error body."""


class RemoteSpeechError(NarratorError):
    """The speech service failed or returned an error body."""


class PlaybackError(NarratorError):
    """Audio could not be decoded or the output device refused to play it."""


class InvalidTransition(NarratorError):
    """A narration state change that the state machine does not allow."""
