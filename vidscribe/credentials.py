"""API key storage in the operating system keychain via ``keyring``."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .exceptions import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "vidscribe.assemblyai"
DEFAULT_ACCOUNT = "apikey"


class CredentialStore:
    """Reads and writes one secret under a (service, account) pair."""

    def __init__(self, service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT):
        self.service = service
        self.account = account

    def get(self) -> Optional[str]:
        """
        Returns the stored secret, or None when nothing is stored.

        Raises:
            CredentialError: If the keychain backend fails.
        """
        try:
            value = keyring.get_password(self.service, self.account)
        except KeyringError as e:
            logger.error(f"Could not read credential for {self.service}: {e}")
            raise CredentialError(f"Could not read API key from the keychain: {e}") from e
        return value or None

    def set(self, value: Optional[str]) -> None:
        """
        Stores the secret. An empty value removes it.

        Raises:
            CredentialError: If the keychain backend fails.
        """
        value = (value or "").strip()
        if not value:
            self.clear()
            return
        try:
            keyring.set_password(self.service, self.account, value)
        except KeyringError as e:
            logger.error(f"Could not store credential for {self.service}: {e}")
            raise CredentialError(f"Could not save API key to the keychain: {e}") from e
        logger.info(f"Stored API key for {self.service}")

    def clear(self) -> None:
        try:
            keyring.delete_password(self.service, self.account)
        except PasswordDeleteError:
            logger.debug(f"No stored API key for {self.service} to delete")
            return
        except KeyringError as e:
            logger.error(f"Could not delete credential for {self.service}: {e}")
            raise CredentialError(f"Could not remove API key from the keychain: {e}") from e
        logger.info(f"Removed API key for {self.service}")

    @property
    def has_credential(self) -> bool:
        return self.get() is not None
