"""Tests for CredentialStore reads and backup-protected writes."""

import json
import os
from unittest.mock import patch

import pytest

from tether.auth.store import CredentialStore
from tether.utils.errors import CredentialError, FileAccessError

from conftest import write_credentials


@pytest.fixture
def cred_path(tmp_path):
    return tmp_path / ".credentials.json"


class TestLoad:
    def test_missing_file(self, cred_path):
        store = CredentialStore(cred_path)

        assert not store.exists()
        assert store.read_text() is None
        with pytest.raises(CredentialError):
            store.load()

    def test_empty_file(self, cred_path):
        cred_path.write_text("  \n")

        with pytest.raises(CredentialError, match="empty"):
            CredentialStore(cred_path).load_raw()

    def test_non_object(self, cred_path):
        cred_path.write_text("[1, 2]")

        with pytest.raises(CredentialError):
            CredentialStore(cred_path).load_raw()

    def test_oauth_credentials(self, cred_path):
        write_credentials(cred_path, expires_at=123, access_token="a", refresh_token="r")

        creds = CredentialStore(cred_path).load()

        assert creds.auth_method == "oauth"
        assert creds.oauth.access_token == "a"
        assert creds.oauth.refresh_token == "r"
        assert creds.oauth.expires_at == 123

    def test_api_key_takes_precedence(self, cred_path):
        write_credentials(cred_path, expires_at=123, primaryApiKey="sk-test")

        assert CredentialStore(cred_path).load().auth_method == "api_key"

    def test_no_auth(self, cred_path):
        cred_path.write_text("{}")

        assert CredentialStore(cred_path).load().auth_method is None


class TestUpdateOauth:
    def test_updates_tokens_and_keeps_other_keys(self, cred_path):
        write_credentials(cred_path, expires_at=1, organization="org-1")
        store = CredentialStore(cred_path)

        store.update_oauth("new-access", "new-refresh", 999)

        data = json.loads(cred_path.read_text())
        oauth = data["claudeAiOauth"]
        assert oauth["accessToken"] == "new-access"
        assert oauth["refreshToken"] == "new-refresh"
        assert oauth["expiresAt"] == 999
        assert oauth["scopes"] == ["user:inference"]
        assert data["organization"] == "org-1"
        assert not store.backup_path.exists()

    def test_failed_write_restores_original_bytes(self, cred_path):
        write_credentials(cred_path, expires_at=1)
        original = cred_path.read_bytes()
        store = CredentialStore(cred_path)

        with patch.object(store, "_write_atomic", side_effect=OSError("disk full")):
            with pytest.raises(FileAccessError):
                store.update_oauth("new-access", "new-refresh", 999)

        assert cred_path.read_bytes() == original
        assert not store.backup_path.exists()

    def test_failed_replace_leaves_no_temp_file(self, cred_path):
        write_credentials(cred_path, expires_at=1)
        original = cred_path.read_bytes()
        store = CredentialStore(cred_path)
        real_replace = os.replace

        def failing_replace(src, dst):
            if str(src).endswith(".tmp"):
                raise OSError("read-only")
            return real_replace(src, dst)

        with patch("tether.auth.store.os.replace", side_effect=failing_replace):
            with pytest.raises(FileAccessError):
                store.update_oauth("new-access", "new-refresh", 999)

        assert cred_path.read_bytes() == original
        assert [p.name for p in cred_path.parent.iterdir()] == [cred_path.name]

    def test_corrupted_file_is_not_touched(self, cred_path):
        cred_path.write_text("{broken")

        with pytest.raises(CredentialError):
            CredentialStore(cred_path).update_oauth("a", "r", 1)

        assert cred_path.read_text() == "{broken"
