"""Configuration constants for voice-typing."""

from pathlib import Path

APP_NAME = "VoiceTyping"
DATA_DIR = Path.home() / ".voice_typing"

# Audio defaults
SAMPLE_RATE = 16000
INPUT_CHANNELS = 1
CHUNK_MS = 50
AUDIO_MIME_TYPE = "audio/wav"
AUDIO_FILENAME = "audio.wav"

# Trigger timing
HOTKEY_COOLDOWN_S = 0.3  # absorbs key-repeat double triggers
KEY_VALIDATION_DEBOUNCE_S = 0.5
DEFAULT_HOTKEY = "CTRL+Y"

# Provider endpoints
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"
MISTRAL_BASE_URL = "https://api.mistral.ai/v1"

MIN_API_KEY_LENGTH = 10
TRANSCRIPTION_LANGUAGE = "de"  # sent to OpenAI only

NO_SPEECH_SENTINEL = "[NO SPEECH DETECTED]"
TRANSCRIPTION_PROMPT = (
    "Transcribe this audio recording exactly. Return ONLY the transcribed text, "
    "without any additional comments, explanations or formatting. If you do not "
    f"detect any speech, answer with: {NO_SPEECH_SENTINEL}"
)
GEMINI_GENERATION_CONFIG = {"temperature": 0.1, "maxOutputTokens": 8192}

PROVIDER_NAMES: dict[str, str] = {
    "gemini": "Google Gemini",
    "openai": "OpenAI",
    "mistral": "Mistral AI",
}

# Default catalogs as (model_id, display_name); the first entry is the default.
DEFAULT_MODELS: dict[str, list[tuple[str, str]]] = {
    "gemini": [
        ("gemini-2.0-flash", "Gemini 2.0 Flash"),
        ("gemini-2.5-flash", "Gemini 2.5 Flash"),
    ],
    "openai": [
        ("whisper-1", "Whisper"),
        ("gpt-4o-transcribe", "GPT-4o Transcribe"),
        ("gpt-4o-mini-transcribe", "GPT-4o Mini Transcribe"),
    ],
    "mistral": [
        ("voxtral-mini-latest", "Voxtral Mini (3B)"),
        ("voxtral-small-latest", "Voxtral Small (24B)"),
    ],
}

# Curated lists returned once a key is known to be valid
CURATED_MODELS: dict[str, list[tuple[str, str]]] = {
    "openai": DEFAULT_MODELS["openai"]
    + [("gpt-4o-transcribe-diarize", "GPT-4o Diarize (Speaker)")],
    "mistral": DEFAULT_MODELS["mistral"],
}

# History defaults
HISTORY_LIMIT_CHOICES = (10, 25, 50, 0)  # 0 = unlimited
DEFAULT_HISTORY_LIMIT = 25
DEFAULT_HISTORY_ENABLED = True
HISTORY_MIN_LENGTH = 5

# Status messages shown in the transcript buffer
MSG_NO_API_KEY = "Please add an API key in the settings"
MSG_MIC_DENIED = "Microphone access denied. Please grant permission."
MSG_NO_SPEECH = "No speech detected. Please try again."
MSG_INVALID_KEY = "API key invalid"
MSG_ERROR_PREFIX = "Error: "
MSG_UNKNOWN_ERROR = "Unknown error"
