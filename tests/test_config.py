from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from byobucket.config import Settings
from byobucket.core.crypto import SecretCipher


def test_fernet_keys_from_env_comma_separated(monkeypatch: pytest.MonkeyPatch) -> None:
    new, old = Fernet.generate_key().decode(), Fernet.generate_key().decode()
    monkeypatch.setenv("FERNET_KEYS", f"{new}, {old}")

    loaded = Settings(_env_file=None)

    assert loaded.fernet_keys == [new, old]
    SecretCipher(loaded.fernet_keys)


def test_fernet_keys_from_env_single_key(monkeypatch: pytest.MonkeyPatch) -> None:
    key = Fernet.generate_key().decode()
    monkeypatch.setenv("FERNET_KEYS", key)

    assert Settings(_env_file=None).fernet_keys == [key]


def test_fernet_keys_default_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FERNET_KEYS", raising=False)

    assert Settings(_env_file=None).fernet_keys == []
