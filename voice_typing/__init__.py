"""Voice Typing - dictation with cloud transcription (Gemini, OpenAI, Mistral)."""

__version__ = "0.1.0"

__all__ = [
    "audio",
    "config",
    "coordinator",
    "history",
    "providers",
    "registry",
    "text_merge",
]
