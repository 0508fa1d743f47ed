"""
Storage of calendar-provider access tokens, per user.

Tokens go to the system keyring; when no usable keyring backend exists the
store falls back to a plaintext JSON file readable only by the owner.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "agendaguard"


class CredentialStore:
    """
    Saves, loads and deletes access tokens keyed by user id.
    """

    def __init__(self, fallback_file: Path, use_keyring: bool = True):
        """
        Initialize the credential store.

        Args:
            fallback_file: Plaintext file used when the keyring is unavailable
            use_keyring: Set to False to always use the fallback file
        """
        self.fallback_file = Path(fallback_file).expanduser()
        self._keyring_supported = use_keyring
        self._insecure_storage_warning: Optional[str] = None
        if not use_keyring:
            self._set_insecure_storage_warning("Keyring disabled; using plaintext file storage.")

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when tokens fall back to plaintext storage."""
        return self._insecure_storage_warning

    def load(self, user_id: str) -> Optional[str]:
        """Return the stored token of a user, or None."""
        if self._keyring_supported:
            try:
                token = keyring.get_password(KEYRING_SERVICE_NAME, user_id)
            except KeyringError as exc:
                self._handle_keyring_failure(f"reading credentials failed: {exc}")
            else:
                if token is not None:
                    return token

        return self._read_file().get(user_id)

    def save(self, user_id: str, token: str) -> None:
        """Store a user's token, replacing any previous one."""
        if self._keyring_supported:
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, user_id, token)
                return
            except KeyringError as exc:
                self._handle_keyring_failure(f"writing credentials failed: {exc}")

        tokens = self._read_file()
        tokens[user_id] = token
        self._write_file(tokens)

    def delete(self, user_id: str) -> None:
        """Forget a user's token in every backend."""
        if self._keyring_supported:
            try:
                keyring.delete_password(KEYRING_SERVICE_NAME, user_id)
            except PasswordDeleteError:
                pass  # nothing stored
            except KeyringError as exc:
                logger.warning("Could not remove credentials from keyring: %s", exc)

        tokens = self._read_file()
        if tokens.pop(user_id, None) is not None:
            self._write_file(tokens)

    def _read_file(self) -> Dict[str, str]:
        if not self.fallback_file.exists():
            return {}
        try:
            with open(self.fallback_file, "r", encoding="utf-8") as file_handle:
                data = json.load(file_handle)
        except (OSError, ValueError) as exc:
            logger.warning("Could not load credential file %s: %s", self.fallback_file, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_file(self, tokens: Dict[str, str]) -> None:
        try:
            self.fallback_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.fallback_file, "w", encoding="utf-8") as file_handle:
                json.dump(tokens, file_handle)
            self.fallback_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save credentials to %s: %s", self.fallback_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext file.",
                reason,
            )
        self._keyring_supported = False
        self._set_insecure_storage_warning(
            f"Secure credential storage unavailable ({reason}). "
            f"Falling back to plaintext file at {self.fallback_file}."
        )

    def _set_insecure_storage_warning(self, message: str) -> None:
        if self._insecure_storage_warning:
            return
        self._insecure_storage_warning = message
