"""Tests for credential precedence, caching and keychain storage."""

import threading
import time

import keyring
import pytest
from keyring.errors import PasswordDeleteError

from conftest import CountingProvider, MemorySecretStore
from filebridge.core.credentials import (
    SOURCE_PROVIDER,
    SOURCE_SECRET_STORE,
    CachedCredentialsProvider,
    Credentials,
    CredentialStore,
    KeyringSecretStore,
    split_identity,
)


class BlockingProvider(CountingProvider):
    """Provider that holds every caller until released."""

    def __init__(self, creds: Credentials):
        super().__init__(creds)
        self.entered = threading.Event()
        self.release = threading.Event()

    def get(self, host, share, rel_path):
        self.calls += 1
        self.entered.set()
        self.release.wait(5)
        return self.creds


class TestCredentials:
    """Test the Credentials value type."""

    def test_password_hidden_from_repr(self):
        creds = Credentials(username="alice", password="hunter2")
        assert "hunter2" not in repr(creds)
        assert "alice" in repr(creds)

    def test_qualified_username(self):
        assert Credentials(domain="CORP", username="alice").qualified_username() == "CORP\\alice"
        assert Credentials(username="alice").qualified_username() == "alice"

    def test_is_empty(self):
        assert Credentials().is_empty()
        assert not Credentials(password="x").is_empty()

    def test_split_identity(self):
        assert split_identity("CORP\\alice") == ("CORP", "alice")
        assert split_identity("CORP;alice") == ("CORP", "alice")
        assert split_identity("alice") == ("", "alice")


class TestPrecedence:
    """Test memory, secret store, provider ordering."""

    def test_memory_hit_skips_other_tiers(
        self, credential_store: CredentialStore, provider: CountingProvider, secret_store: MemorySecretStore
    ):
        credential_store.put("server", "share", Credentials(username="bob", password="pw"))
        creds = credential_store.get("server", "share")
        assert creds.username == "bob"
        assert provider.calls == 0
        assert secret_store.get_calls == 0

    def test_secret_store_hit_seeds_memory(
        self, credential_store: CredentialStore, provider: CountingProvider, secret_store: MemorySecretStore
    ):
        secret_store.entries[("server", "share")] = ("CORP", "carol", "pw")
        creds = credential_store.get("server", "share")
        assert (creds.domain, creds.username, creds.password) == ("CORP", "carol", "pw")
        assert provider.calls == 0
        assert credential_store.get_cached("server", "share") == creds
        assert credential_store.source_of("server", "share") == SOURCE_SECRET_STORE

        credential_store.get("server", "share")
        assert secret_store.get_calls == 1

    def test_provider_called_once_per_share(self, credential_store: CredentialStore, provider: CountingProvider):
        first = credential_store.get("server", "share", "dir")
        second = credential_store.get("server", "share", "dir")
        assert first.username == "alice"
        assert second == first
        assert provider.calls == 1
        assert credential_store.source_of("server", "share") == SOURCE_PROVIDER

    def test_keys_are_case_insensitive(self, credential_store: CredentialStore):
        credential_store.put("SERVER", "Share", Credentials(username="bob", password="pw"))
        assert credential_store.get_cached("server", "share").username == "bob"

    def test_provider_error_gives_empty(self, secret_store: MemorySecretStore):
        store = CredentialStore(CountingProvider(error=RuntimeError("cancelled")), secret_store)
        assert store.get("server", "share").is_empty()
        assert store.get_cached("server", "share") is None

    def test_no_tiers(self):
        assert CredentialStore().get("server", "share").is_empty()

    def test_without_prompt_provider_is_skipped(
        self, credential_store: CredentialStore, provider: CountingProvider, secret_store: MemorySecretStore
    ):
        assert credential_store.get("server", "share", prompt=False).is_empty()
        assert provider.calls == 0

        secret_store.entries[("server", "share")] = ("", "carol", "pw")
        assert credential_store.get("server", "share", prompt=False).username == "carol"
        assert provider.calls == 0



class TestClear:
    """Test recovery after authentication failures."""

    def test_clear_reprompts_without_touching_secret_store(
        self, credential_store: CredentialStore, provider: CountingProvider, secret_store: MemorySecretStore
    ):
        credential_store.get("server", "share")
        credential_store.clear("server", "share")
        assert credential_store.get_cached("server", "share") is None
        assert secret_store.deleted == []

        credential_store.get("server", "share")
        assert provider.calls == 2

    def test_keychain_entry_gets_one_retry(
        self, credential_store: CredentialStore, provider: CountingProvider, secret_store: MemorySecretStore
    ):
        secret_store.entries[("server", "share")] = ("", "carol", "stale")

        credential_store.get("server", "share")
        credential_store.clear("server", "share")
        assert credential_store.get("server", "share").username == "carol"
        assert provider.calls == 0

        credential_store.clear("server", "share")
        assert credential_store.get("server", "share").username == "alice"
        assert provider.calls == 1
        assert ("server", "share") in secret_store.entries

    def test_persist_reenables_keychain(
        self, credential_store: CredentialStore, secret_store: MemorySecretStore
    ):
        secret_store.entries[("server", "share")] = ("", "carol", "stale")
        for _ in range(2):
            credential_store.get("server", "share")
            credential_store.clear("server", "share")

        assert credential_store.persist("server", "share", Credentials(username="dave", password="fresh"))
        assert secret_store.entries[("server", "share")] == ("", "dave", "fresh")
        assert credential_store.get("server", "share").username == "dave"

    def test_forget_deletes_from_secret_store(
        self, credential_store: CredentialStore, secret_store: MemorySecretStore
    ):
        secret_store.entries[("server", "share")] = ("", "carol", "pw")
        credential_store.get("server", "share")
        credential_store.forget("server", "share")
        assert credential_store.get_cached("server", "share") is None
        assert secret_store.deleted == [("server", "share")]

    def test_persist_without_secret_store(self):
        assert not CredentialStore().persist("server", "share", Credentials(username="x"))

    def test_persist_marks_memory_copy(self, secret_store: MemorySecretStore):
        provider = CountingProvider(Credentials(username="alice", password="pw", persist=True))
        store = CredentialStore(provider, secret_store)

        creds = store.get("server", "share")
        assert creds.persist
        assert store.persist("server", "share", creds)

        again = store.get("server", "share")
        assert not again.persist
        assert (again.username, again.password) == ("alice", "pw")
        assert secret_store.set_calls == 1



class TestCachedCredentialsProvider:
    """Test provider de-duplication."""

    def test_asks_once(self, provider: CountingProvider):
        cached = CachedCredentialsProvider(provider)
        cached.get("server", "share", "")
        cached.get("SERVER", "share", "other")
        assert provider.calls == 1

    def test_forget(self, provider: CountingProvider):
        cached = CachedCredentialsProvider(provider)
        cached.get("server", "share", "")
        cached.forget("server", "share")
        cached.get("server", "share", "")
        assert provider.calls == 2

    def test_no_fallback(self):
        assert CachedCredentialsProvider(None).get("server", "share", "").is_empty()

    def test_concurrent_misses_ask_once(self):
        provider = BlockingProvider(Credentials(username="alice", password="pw"))
        cached = CachedCredentialsProvider(provider)
        results = []

        def ask():
            results.append(cached.get("server", "share", ""))

        first = threading.Thread(target=ask)
        second = threading.Thread(target=ask)
        first.start()
        assert provider.entered.wait(5)
        second.start()
        time.sleep(0.05)
        provider.release.set()
        first.join(5)
        second.join(5)

        assert provider.calls == 1
        assert [r.username for r in results] == ["alice", "alice"]



@pytest.fixture
def fake_keyring(monkeypatch):
    """Replace keyring functions with a dict."""
    storage: dict[tuple[str, str], str] = {}

    def get_password(service, key):
        return storage.get((service, key))

    def set_password(service, key, value):
        storage[(service, key)] = value

    def delete_password(service, key):
        if (service, key) not in storage:
            raise PasswordDeleteError("not found")
        del storage[(service, key)]

    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return storage


class TestKeyringSecretStore:
    """Test keychain-backed storage."""

    def test_set_and_get(self, fake_keyring):
        store = KeyringSecretStore("Test.smb")
        assert store.set("server", "share", "CORP", "alice", "pw")
        assert fake_keyring[("Test.smb", "server|share")] == "pw"
        assert fake_keyring[("Test.smb", "server|share_username")] == "CORP\\alice"
        assert store.get("server", "share") == ("CORP", "alice", "pw", True)

    def test_missing(self, fake_keyring):
        assert KeyringSecretStore().get("server", "share") == ("", "", "", False)

    def test_delete(self, fake_keyring):
        store = KeyringSecretStore()
        store.set("server", "share", "", "alice", "pw")
        assert store.delete("server", "share")
        assert not store.delete("server", "share")

    def test_keys_are_lowercased(self, fake_keyring):
        assert KeyringSecretStore.make_key("SRV", "Share") == "srv|share"

        store = KeyringSecretStore("Test.smb")
        store.set("SERVER", "Share", "", "alice", "pw")
        assert ("Test.smb", "server|share") in fake_keyring
        assert store.get("server", "SHARE") == ("", "alice", "pw", True)

