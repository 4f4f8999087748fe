from __future__ import annotations

from unittest import mock

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from vidscribe.credentials import CredentialStore
from vidscribe.exceptions import CredentialError


@pytest.fixture
def fake_keyring():
    with mock.patch("vidscribe.credentials.keyring") as patched:
        yield patched


def test_get_returns_stored_secret(fake_keyring) -> None:
    fake_keyring.get_password.return_value = "abc123"

    assert CredentialStore("svc", "acct").get() == "abc123"
    fake_keyring.get_password.assert_called_once_with("svc", "acct")


def test_get_missing_secret(fake_keyring) -> None:
    fake_keyring.get_password.return_value = None
    store = CredentialStore()

    assert store.get() is None
    assert not store.has_credential


def test_set_stores_trimmed_value(fake_keyring) -> None:
    CredentialStore("svc", "acct").set("  abc123 ")

    fake_keyring.set_password.assert_called_once_with("svc", "acct", "abc123")


def test_empty_value_deletes(fake_keyring) -> None:
    CredentialStore("svc", "acct").set("")

    fake_keyring.delete_password.assert_called_once_with("svc", "acct")
    fake_keyring.set_password.assert_not_called()


def test_deleting_absent_secret_is_not_an_error(fake_keyring) -> None:
    fake_keyring.delete_password.side_effect = PasswordDeleteError("not found")

    CredentialStore().clear()


def test_backend_failures_become_credential_errors(fake_keyring) -> None:
    fake_keyring.get_password.side_effect = KeyringError("locked")
    fake_keyring.set_password.side_effect = KeyringError("locked")
    store = CredentialStore()

    with pytest.raises(CredentialError):
        store.get()
    with pytest.raises(CredentialError):
        store.set("abc")
