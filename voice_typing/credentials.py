"""Secure storage of provider API keys in the system keyring.

Keys are kept in the platform's native credential store (Windows Credential
Manager, macOS Keychain, Secret Service on Linux) rather than in the JSON
settings file.
"""

import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from voice_typing.config import APP_NAME
from voice_typing.models import ProviderId

logger = logging.getLogger(__name__)

SERVICE_NAME = APP_NAME


class CredentialStorageError(Exception):
    """Raised when credential storage operations fail."""


def api_key_name(provider_id: ProviderId) -> str:
    """Return the keyring entry name for a provider's API key."""
    return f"api_key_{provider_id.value}"


def store_credential(key: str, value: str) -> None:
    """Store a credential in the system keyring.

    Raises:
        CredentialStorageError: If the keyring backend fails
        ValueError: If key or value is empty
    """
    if not key or not key.strip():
        raise ValueError("Credential key cannot be empty")
    if not value or not value.strip():
        raise ValueError("Credential value cannot be empty")

    try:
        keyring.set_password(SERVICE_NAME, key, value)
        logger.info(f"Stored credential: {key}")
    except KeyringError as e:
        logger.error(f"Failed to store credential {key}: {e}")
        raise CredentialStorageError(f"Failed to store credential: {e}") from e
    except Exception as e:
        # Backend initialization problems surface as arbitrary exceptions
        logger.error(f"Unexpected error storing credential {key}: {e}")
        raise CredentialStorageError(f"Unexpected error storing credential: {e}") from e


def retrieve_credential(key: str) -> str | None:
    """Retrieve a credential, or None if it is not stored.

    Raises:
        CredentialStorageError: If the keyring backend fails
        ValueError: If key is empty
    """
    if not key or not key.strip():
        raise ValueError("Credential key cannot be empty")

    try:
        value = keyring.get_password(SERVICE_NAME, key)
        if value:
            logger.debug(f"Retrieved credential: {key}")
        else:
            logger.debug(f"No credential found for: {key}")
        return value
    except KeyringError as e:
        logger.error(f"Failed to retrieve credential {key}: {e}")
        raise CredentialStorageError(f"Failed to retrieve credential: {e}") from e
    except Exception as e:
        logger.error(f"Unexpected error retrieving credential {key}: {e}")
        raise CredentialStorageError(f"Unexpected error retrieving credential: {e}") from e


def delete_credential(key: str) -> None:
    """Delete a credential. Deleting a missing credential is not an error.

    Raises:
        CredentialStorageError: If the keyring backend fails
        ValueError: If key is empty
    """
    if not key or not key.strip():
        raise ValueError("Credential key cannot be empty")

    try:
        keyring.delete_password(SERVICE_NAME, key)
        logger.info(f"Deleted credential: {key}")
    except PasswordDeleteError:
        logger.debug(f"No credential to delete: {key}")
    except KeyringError as e:
        logger.error(f"Failed to delete credential {key}: {e}")
        raise CredentialStorageError(f"Failed to delete credential: {e}") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting credential {key}: {e}")
        raise CredentialStorageError(f"Unexpected error deleting credential: {e}") from e


def migrate_from_plaintext(plaintext_value: str, key: str) -> bool:
    """Move a plaintext credential into the keyring.

    Returns:
        True if the value is now stored securely, False otherwise
    """
    if not plaintext_value or not plaintext_value.strip():
        logger.debug(f"No plaintext value to migrate for {key}")
        return False

    try:
        store_credential(key, plaintext_value)
        logger.info(f"Migrated plaintext credential to secure storage: {key}")
        return True
    except (CredentialStorageError, ValueError) as e:
        logger.warning(f"Failed to migrate credential {key}: {e}")
        return False


def load_api_key(provider_id: ProviderId) -> str:
    """Return the stored API key for a provider, or an empty string."""
    try:
        return retrieve_credential(api_key_name(provider_id)) or ""
    except (CredentialStorageError, ValueError) as e:
        logger.warning(f"Failed to load API key for {provider_id.value}: {e}")
        return ""


def save_api_key(provider_id: ProviderId, api_key: str) -> bool:
    """Store or, for an empty key, delete a provider's API key.

    Returns:
        True on success, False if the keyring could not be updated
    """
    name = api_key_name(provider_id)
    try:
        if api_key.strip():
            store_credential(name, api_key.strip())
        else:
            delete_credential(name)
        return True
    except (CredentialStorageError, ValueError) as e:
        logger.warning(f"Failed to save API key for {provider_id.value}: {e}")
        return False
