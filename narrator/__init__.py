"""Hero Narrator: a graded webcam feed with face boxes and epic narrated subtitles."""

__version__ = "0.1.0"
