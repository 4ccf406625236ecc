"""Typed data shared by the recording, provider and history layers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from voice_typing.config import DEFAULT_MODELS

logger = logging.getLogger(__name__)


class ProviderId(str, Enum):
    """The closed set of supported transcription providers."""

    GEMINI = "gemini"
    OPENAI = "openai"
    MISTRAL = "mistral"

    @classmethod
    def parse(cls, value: Any, default: "ProviderId | None" = None) -> "ProviderId":
        """Parse a stored provider id, falling back to ``default`` if given."""
        try:
            return cls(value)
        except ValueError:
            if default is not None:
                return default
            raise


class ApiKeyStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFYING = "verifying"
    VALID = "valid"
    INVALID = "invalid"

    @classmethod
    def parse(cls, value: Any) -> "ApiKeyStatus":
        # "idle"/"validating" are the names older settings files used
        legacy = {"idle": cls.UNVERIFIED, "validating": cls.VERIFYING}
        if value in legacy:
            return legacy[value]
        try:
            return cls(value)
        except ValueError:
            return cls.UNVERIFIED


class FailureReason(str, Enum):
    """Classified outcome of a failed recording or transcription."""

    PERMISSION_DENIED = "permission_denied"
    NO_CREDENTIAL = "no_credential"
    AUTH_INVALID = "auth_invalid"
    NO_SPEECH_DETECTED = "no_speech_detected"
    PROVIDER_REJECTED = "provider_rejected"
    EMPTY_RESPONSE = "empty_response"
    TRANSPORT_OR_PARSE = "transport_or_parse"
    UNKNOWN_PROVIDER = "unknown_provider"


@dataclass(frozen=True)
class Model:
    id: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.display_name}

    @classmethod
    def from_dict(cls, data: Any) -> "Model | None":
        """Build a model from its stored form, or None if the entry is malformed."""
        if not isinstance(data, dict):
            return None
        model_id = data.get("id")
        if not isinstance(model_id, str) or not model_id.strip():
            return None
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            name = model_id
        return cls(id=model_id, display_name=name)


def default_models(provider_id: ProviderId) -> list[Model]:
    """Return the built-in catalog for a provider."""
    return [Model(model_id, name) for model_id, name in DEFAULT_MODELS[provider_id.value]]


@dataclass(frozen=True)
class ProviderConfig:
    """Per-provider credentials and model selection.

    Instances are immutable; the registry replaces the whole value on every
    update, so a reader always sees a consistent snapshot.
    """

    provider_id: ProviderId
    api_key: str = ""
    api_key_status: ApiKeyStatus = ApiKeyStatus.UNVERIFIED
    selected_model: str = ""
    available_models: tuple[Model, ...] = ()
    models_loading: bool = False

    @classmethod
    def default(cls, provider_id: ProviderId, api_key: str = "") -> "ProviderConfig":
        models = tuple(default_models(provider_id))
        return cls(
            provider_id=provider_id,
            api_key=api_key,
            selected_model=models[0].id,
            available_models=models,
        )

    @classmethod
    def from_dict(cls, provider_id: ProviderId, data: Any) -> "ProviderConfig":
        """Validate a stored config, taking each field from defaults when invalid.

        Merging is per field: a missing or malformed field falls back to the
        default, a well-formed one replaces it. Transient state (``verifying``,
        ``models_loading``) is never restored.
        """
        config = cls.default(provider_id)
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Ignoring malformed config for {provider_id.value}")
            return config

        api_key = data.get("apiKey")
        if isinstance(api_key, str):
            config = replace(config, api_key=api_key.strip())

        status = ApiKeyStatus.parse(data.get("apiKeyStatus"))
        if status is ApiKeyStatus.VERIFYING:
            status = ApiKeyStatus.UNVERIFIED
        config = replace(config, api_key_status=status)

        raw_models = data.get("availableModels")
        if isinstance(raw_models, list):
            models = tuple(m for m in (Model.from_dict(item) for item in raw_models) if m)
            if models:
                config = replace(config, available_models=models)

        selected = data.get("selectedModel")
        if isinstance(selected, str):
            config = replace(config, selected_model=selected)
        return config.with_valid_selection()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the settings file. The API key is stored separately."""
        return {
            "apiKeyStatus": self.api_key_status.value,
            "selectedModel": self.selected_model,
            "availableModels": [m.to_dict() for m in self.available_models],
        }

    def model_ids(self) -> list[str]:
        return [m.id for m in self.available_models]

    def with_valid_selection(self) -> "ProviderConfig":
        """Keep ``selected_model`` inside ``available_models``."""
        if not self.available_models:
            restored = replace(self, available_models=tuple(default_models(self.provider_id)))
            return restored.with_valid_selection()
        if self.selected_model in self.model_ids():
            return self
        return replace(self, selected_model=self.available_models[0].id)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())


@dataclass(frozen=True)
class AudioArtifact:
    """A finished recording ready to be uploaded."""

    data: bytes
    mime_type: str
    duration_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.data


@dataclass(frozen=True)
class TranscriptionOutcome:
    """Structured result carried from the provider to the buffer."""

    text: str = ""
    failure: FailureReason | None = None
    detail: str = ""

    @classmethod
    def success(cls, text: str) -> "TranscriptionOutcome":
        return cls(text=text)

    @classmethod
    def no_speech(cls) -> "TranscriptionOutcome":
        return cls(failure=FailureReason.NO_SPEECH_DETECTED)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "") -> "TranscriptionOutcome":
        return cls(failure=reason, detail=detail)

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class HistoryItem:
    id: str
    text: str
    timestamp: int  # milliseconds since the epoch

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> "HistoryItem | None":
        if not isinstance(data, dict):
            return None
        text = data.get("text")
        if not isinstance(text, str):
            return None
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            timestamp = 0
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id:
            item_id = str(int(timestamp))
        return cls(id=item_id, text=text, timestamp=int(timestamp))
