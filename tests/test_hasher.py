"""Tests for credential hashing."""

from unittest.mock import patch

import pytest

from app.exceptions import InternalError
from app.services.hasher import CredentialHasher


class TestCredentialHasher:
    def test_verify_matches_original_secret(self, hasher: CredentialHasher):
        digest = hasher.hash("password123")
        assert digest != "password123"
        assert hasher.verify("password123", digest)

    def test_verify_rejects_other_secret(self, hasher: CredentialHasher):
        digest = hasher.hash("password123")
        assert not hasher.verify("password124", digest)

    def test_hash_is_salted(self, hasher: CredentialHasher):
        """Hashing the same secret twice gives different digests."""
        assert hasher.hash("same") != hasher.hash("same")

    def test_work_factor_is_encoded_in_digest(self):
        digest = CredentialHasher(rounds=5).hash("secret")
        assert digest.startswith("$2b$05$")

    def test_verify_malformed_digest_is_false(self, hasher: CredentialHasher):
        assert not hasher.verify("secret", "not-a-bcrypt-hash")
        assert not hasher.verify("secret", "")
        assert not hasher.verify("secret", None)

    def test_hash_failure_is_internal_error(self, hasher: CredentialHasher):
        with patch("app.services.hasher.bcrypt.hashpw", side_effect=ValueError("boom")):
            with pytest.raises(InternalError) as exc_info:
                hasher.hash("secret")
        assert exc_info.value.status_code == 500
