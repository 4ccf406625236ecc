"""Transcription provider adapters.

Each supported provider implements the same three capabilities: probing an
API key, listing usable models and transcribing a recorded artifact. Callers
obtain an adapter through ``get_provider`` and never branch on the provider
id themselves.

Gemini is called over its REST API with ``requests``; OpenAI and Mistral both
expose an OpenAI-compatible audio endpoint and go through the ``openai`` SDK.
"""

import base64
import logging
from abc import ABC, abstractmethod

import requests
from openai import (
    APIError,
    APIStatusError,
    AuthenticationError,
    OpenAI,
    PermissionDeniedError,
)

from voice_typing.config import (
    AUDIO_FILENAME,
    CURATED_MODELS,
    GEMINI_BASE_URL,
    GEMINI_GENERATION_CONFIG,
    MISTRAL_BASE_URL,
    NO_SPEECH_SENTINEL,
    OPENAI_BASE_URL,
    TRANSCRIPTION_LANGUAGE,
    TRANSCRIPTION_PROMPT,
)
from voice_typing.models import (
    ApiKeyStatus,
    AudioArtifact,
    FailureReason,
    Model,
    ProviderId,
    TranscriptionOutcome,
    default_models,
)

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base class for classified provider failures."""

    reason = FailureReason.TRANSPORT_OR_PARSE


class AuthInvalidError(ProviderError):
    """The provider rejected the API key."""

    reason = FailureReason.AUTH_INVALID


class ProviderRejectedError(ProviderError):
    """The provider answered with an error for this request."""

    reason = FailureReason.PROVIDER_REJECTED


class EmptyResponseError(ProviderError):
    """The provider answered without any transcript text."""

    reason = FailureReason.EMPTY_RESPONSE


class TransportError(ProviderError):
    """The request failed on the network or the response could not be parsed."""

    reason = FailureReason.TRANSPORT_OR_PARSE


class UnknownProviderError(ProviderError):
    reason = FailureReason.UNKNOWN_PROVIDER


def _outcome_from_text(text: str | None) -> TranscriptionOutcome:
    if text is None or not text.strip():
        raise EmptyResponseError("Unexpected response from provider")
    if NO_SPEECH_SENTINEL in text:
        return TranscriptionOutcome.no_speech()
    return TranscriptionOutcome.success(text.strip())


class TranscriptionProvider(ABC):
    """Common interface of all transcription back ends."""

    provider_id: ProviderId

    @abstractmethod
    def validate_key(self, api_key: str) -> ApiKeyStatus:
        """Check ``api_key`` against the provider; VALID on any 2xx, INVALID otherwise."""

    @abstractmethod
    def list_models(self, api_key: str) -> list[Model]:
        """Return the models usable for transcription. Never empty."""

    @abstractmethod
    def transcribe(self, artifact: AudioArtifact, model_id: str, api_key: str) -> TranscriptionOutcome:
        """Transcribe a recording.

        Raises:
            ProviderError: Subclass matching the failure
        """

    @property
    def default_model(self) -> str:
        return default_models(self.provider_id)[0].id


class GeminiProvider(TranscriptionProvider):
    provider_id = ProviderId.GEMINI

    def __init__(self, base_url: str = GEMINI_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key}

    def validate_key(self, api_key: str) -> ApiKeyStatus:
        try:
            response = requests.get(f"{self.base_url}/models", headers=self._headers(api_key))
        except requests.RequestException as e:
            logger.warning(f"Gemini key validation failed: {e}")
            return ApiKeyStatus.INVALID
        return ApiKeyStatus.VALID if response.ok else ApiKeyStatus.INVALID

    def list_models(self, api_key: str) -> list[Model]:
        try:
            response = requests.get(f"{self.base_url}/models", headers=self._headers(api_key))
            response.raise_for_status()
            entries = response.json().get("models") or []
        except (requests.RequestException, ValueError, AttributeError) as e:
            # RequestException: network or HTTP error
            # ValueError/AttributeError: body is not the expected JSON object
            logger.warning(f"Could not fetch Gemini models: {e}")
            return default_models(self.provider_id)

        models = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name") or ""
            methods = entry.get("supportedGenerationMethods") or []
            if "generateContent" not in methods:
                continue
            if "flash" not in name and "pro" not in name:
                continue
            model_id = name.replace("models/", "")
            models.append(Model(model_id, entry.get("displayName") or model_id))
        logger.debug(f"Gemini returned {len(models)} usable models")
        return models or default_models(self.provider_id)

    def transcribe(self, artifact: AudioArtifact, model_id: str, api_key: str) -> TranscriptionOutcome:
        model = model_id or self.default_model
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": TRANSCRIPTION_PROMPT},
                        {
                            "inlineData": {
                                "mimeType": artifact.mime_type,
                                "data": base64.b64encode(artifact.data).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": GEMINI_GENERATION_CONFIG,
        }
        try:
            response = requests.post(
                f"{self.base_url}/models/{model}:generateContent",
                headers=self._headers(api_key),
                json=body,
            )
        except requests.RequestException as e:
            raise TransportError(str(e)) from e

        if response.status_code in (401, 403):
            raise AuthInvalidError(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"HTTP {response.status_code}: invalid JSON response") from e
        if not isinstance(data, dict):
            raise TransportError("Unexpected response format")

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if text is None and data.get("error"):
            error = data["error"] if isinstance(data["error"], dict) else {}
            message = error.get("message") or "Gemini API Error"
            # Gemini reports a bad key as HTTP 400 with this message
            if "api key" in message.lower() and "not valid" in message.lower():
                raise AuthInvalidError(message)
            raise ProviderRejectedError(message)
        return _outcome_from_text(text)


class OpenAICompatibleProvider(TranscriptionProvider):
    """Adapter for providers speaking the OpenAI audio transcription API."""

    base_url: str
    extra_params: dict[str, str] = {}

    def _client(self, api_key: str) -> OpenAI:
        # No automatic retries
        return OpenAI(api_key=api_key, base_url=self.base_url, max_retries=0)

    def validate_key(self, api_key: str) -> ApiKeyStatus:
        try:
            self._client(api_key).models.list()
        except APIError as e:
            logger.warning(f"{self.provider_id.value} key validation failed: {e}")
            return ApiKeyStatus.INVALID
        return ApiKeyStatus.VALID

    def list_models(self, api_key: str) -> list[Model]:
        curated = CURATED_MODELS.get(self.provider_id.value)
        if not curated:
            return default_models(self.provider_id)
        return [Model(model_id, name) for model_id, name in curated]

    def transcribe(self, artifact: AudioArtifact, model_id: str, api_key: str) -> TranscriptionOutcome:
        model = model_id or self.default_model
        try:
            result = self._client(api_key).audio.transcriptions.create(
                model=model,
                file=(AUDIO_FILENAME, artifact.data, artifact.mime_type),
                **self.extra_params,
            )
        except (AuthenticationError, PermissionDeniedError) as e:
            raise AuthInvalidError(str(e)) from e
        except APIStatusError as e:
            raise ProviderRejectedError(_error_message(e)) from e
        except APIError as e:
            # APIConnectionError, timeouts and undecodable responses
            raise TransportError(str(e)) from e

        text = result if isinstance(result, str) else getattr(result, "text", None)
        if text is None:
            # Unknown response fields are kept on the SDK model
            error = getattr(result, "error", None)
            if error:
                raise ProviderRejectedError(_envelope_message(error))
        return _outcome_from_text(text)


def _envelope_message(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or "Provider API Error")
    return str(error)


def _error_message(error: APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict):
        nested = body.get("error", body)
        if isinstance(nested, dict) and nested.get("message"):
            return _envelope_message(nested)
    return error.message or f"HTTP {error.status_code}"


class OpenAIProvider(OpenAICompatibleProvider):
    provider_id = ProviderId.OPENAI
    base_url = OPENAI_BASE_URL
    extra_params = {"language": TRANSCRIPTION_LANGUAGE}


class MistralProvider(OpenAICompatibleProvider):
    provider_id = ProviderId.MISTRAL
    base_url = MISTRAL_BASE_URL


_PROVIDERS: dict[ProviderId, type[TranscriptionProvider]] = {
    ProviderId.GEMINI: GeminiProvider,
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.MISTRAL: MistralProvider,
}


def get_provider(provider_id: ProviderId | str) -> TranscriptionProvider:
    """Return the adapter for a provider id.

    Raises:
        UnknownProviderError: If the id is not a supported provider
    """
    try:
        return _PROVIDERS[ProviderId(provider_id)]()
    except (KeyError, ValueError) as e:
        raise UnknownProviderError(f"Unknown provider: {provider_id}") from e
