"""Unit tests for auth/passwords.py -- bcrypt hashing and random passwords."""

import string

import pytest

from auth.passwords import generate_random_password, hash_password, verify_password


class TestHashing:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("Passw0rd!")
        assert hashed != "Passw0rd!"
        assert hashed.startswith("$2")

    def test_hash_is_salted(self):
        assert hash_password("Passw0rd!") != hash_password("Passw0rd!")

    def test_verify_match(self):
        assert verify_password("Passw0rd!", hash_password("Passw0rd!")) is True

    def test_verify_mismatch(self):
        assert verify_password("wrong-pass", hash_password("Passw0rd!")) is False

    @pytest.mark.parametrize("bad_hash", [None, "", "not-a-bcrypt-hash", "$2b$04$short"])
    def test_verify_bad_hash_returns_false(self, bad_hash):
        """Garbage or absent hashes are a mismatch, never an exception."""
        assert verify_password("Passw0rd!", bad_hash) is False


class TestRandomPassword:
    def test_default_length(self):
        assert len(generate_random_password()) == 12

    def test_contains_every_class(self):
        for _ in range(20):
            pw = generate_random_password(8)
            assert any(c in string.ascii_uppercase for c in pw), pw
            assert any(c in string.ascii_lowercase for c in pw), pw
            assert any(c in string.digits for c in pw), pw
            assert any(not c.isalnum() for c in pw), pw

    def test_too_short_rejected(self):
        with pytest.raises(ValueError):
            generate_random_password(3)
