"""
Token storage for the Journal Portal client.

This module provides the credential store the HTTP pipeline reads and writes:
two string entries, ``accessToken`` and ``refreshToken``. The persistent
implementation uses the system keyring when available and falls back to an
encrypted file; an in-memory implementation serves tests and ephemeral
sessions.
"""

import os
import json
import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Dict, Tuple

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from journal_client.endpoints import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY
from journal_shared.exceptions import TokenStorageError, ErrorCode

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Synchronous key/value store holding the session credentials."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a value; missing keys are ignored."""
        pass

    def get_access_token(self) -> Optional[str]:
        return self.get(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self.get(REFRESH_TOKEN_KEY)

    def store_tokens(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None) -> None:
        """Write whichever tokens are given; None leaves the entry untouched."""
        if access_token:
            self.set(ACCESS_TOKEN_KEY, access_token)
        if refresh_token:
            self.set(REFRESH_TOKEN_KEY, refresh_token)

    def clear(self) -> None:
        """
        Delete both credentials.

        Each entry is removed independently so a fault on one does not leave
        the other behind; the first failure is re-raised afterwards.
        """
        failure = None
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
            try:
                self.remove(key)
            except TokenStorageError as e:
                logger.error(f"Failed to remove {key}: {e}")
                if failure is None:
                    failure = e
        if failure is not None:
            raise failure

    def snapshot(self) -> Tuple[Optional[str], Optional[str]]:
        return self.get_access_token(), self.get_refresh_token()


class MemoryTokenStorage(TokenStore):
    """Process-local credential store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class SecureTokenStorage(TokenStore):
    """
    Persistent credential store.

    Uses the system keyring when available, falls back to a Fernet-encrypted
    JSON file under the user's config directory.
    """

    def __init__(
        self,
        service_name: str = "journal-portal-client",
        storage_dir: Optional[Path] = None,
        use_keyring: Optional[bool] = None
    ):
        self.service_name = service_name
        if use_keyring is None:
            use_keyring = self._check_keyring_availability()
        self.keyring_available = use_keyring
        self.storage_dir = Path(storage_dir) if storage_dir else self._get_storage_dir()
        self.storage_path = self.storage_dir / 'session_tokens.enc'
        self.key_path = self.storage_dir / 'session_tokens.key'

        self._encryption_key: Optional[bytes] = None

        logger.info(f"Token storage initialized (keyring: {self.keyring_available})")

    def _check_keyring_availability(self) -> bool:
        """Check if system keyring is available."""
        try:
            import keyring
            test_key = f"{self.service_name}_test"
            keyring.set_password(self.service_name, test_key, "test")
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)
            return result == "test"
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _get_storage_dir(self) -> Path:
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            return Path(xdg_config) / 'journal-portal'
        return Path.home() / '.config' / 'journal-portal'

    def _get_encryption_key(self) -> bytes:
        """Load the file encryption key, creating it on first use."""
        if self._encryption_key:
            return self._encryption_key

        if self.key_path.exists():
            self._encryption_key = self.key_path.read_bytes().strip()
            return self._encryption_key

        password = os.urandom(32)
        salt = os.urandom(16)
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(password))

        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.key_path.write_bytes(key)
        os.chmod(self.key_path, 0o600)

        self._encryption_key = key
        return key

    def _load_file(self) -> Dict[str, str]:
        if not self.storage_path.exists():
            return {}
        fernet = Fernet(self._get_encryption_key())
        return json.loads(fernet.decrypt(self.storage_path.read_bytes()).decode())

    def _save_file(self, values: Dict[str, str]) -> None:
        if not values:
            if self.storage_path.exists():
                self.storage_path.unlink()
            return
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        fernet = Fernet(self._get_encryption_key())
        self.storage_path.write_bytes(fernet.encrypt(json.dumps(values).encode()))
        os.chmod(self.storage_path, 0o600)

    def get(self, key: str) -> Optional[str]:
        try:
            if self.keyring_available:
                import keyring
                return keyring.get_password(self.service_name, key)
            return self._load_file().get(key)
        except (InvalidToken, ValueError) as e:
            logger.warning(f"Stored credentials are unreadable: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to read {key}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        try:
            if self.keyring_available:
                import keyring
                keyring.set_password(self.service_name, key, value)
            else:
                values = self._load_file()
                values[key] = value
                self._save_file(values)
        except Exception as e:
            logger.error(f"Failed to store {key}: {e}")
            raise TokenStorageError(f"Failed to store {key}: {e}", cause=e)

    def remove(self, key: str) -> None:
        try:
            if self.keyring_available:
                import keyring
                from keyring.errors import PasswordDeleteError
                try:
                    keyring.delete_password(self.service_name, key)
                except PasswordDeleteError:
                    pass
            else:
                values = self._load_file()
                if key in values:
                    del values[key]
                    self._save_file(values)
        except InvalidToken:
            # Unreadable file: nothing recoverable left, drop it entirely
            logger.warning("Discarding unreadable credential file")
            self.storage_path.unlink(missing_ok=True)
        except Exception as e:
            logger.error(f"Failed to remove {key}: {e}")
            raise TokenStorageError(f"Failed to remove {key}: {e}",
                                    error_code=ErrorCode.STORAGE_WRITE_FAILED, cause=e)


def create_token_storage(backend: str = "secure", **kwargs) -> TokenStore:
    """
    Build the token store named by configuration.

    Args:
        backend: ``memory`` or ``secure``
        **kwargs: Passed to the storage constructor

    Returns:
        TokenStore instance
    """
    if backend == "memory":
        return MemoryTokenStorage(**kwargs)
    if backend == "secure":
        return SecureTokenStorage(**kwargs)
    raise ValueError(f"Unknown token storage backend: {backend}")
