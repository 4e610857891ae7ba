"""Unit tests for paywall.core.security: bcrypt passwords, refresh-token digests and JWTs."""

import unittest
from datetime import timedelta

import jwt

from paywall.core.security import (
    TOKEN_TYPE_ACCESS,
    create_token,
    decode_token,
    hash_password,
    hash_token,
    token_matches,
    verify_password,
)


class TestPasswordHashing(unittest.TestCase):
    def test_hash_verifies_and_is_salted(self) -> None:
        first = hash_password("Password123!", rounds=4)
        second = hash_password("Password123!", rounds=4)
        self.assertNotEqual(first, second)
        self.assertTrue(verify_password("Password123!", first))
        self.assertFalse(verify_password("wrong", first))

    def test_malformed_hash_is_rejected_not_raised(self) -> None:
        self.assertFalse(verify_password("Password123!", "not-a-bcrypt-hash"))


class TestTokenDigest(unittest.TestCase):
    def test_digest_is_sha256_hex(self) -> None:
        digest = hash_token("abc")
        self.assertEqual(len(digest), 64)
        self.assertEqual(digest, hash_token("abc"))

    def test_token_matches(self) -> None:
        stored = hash_token("token-a")
        self.assertTrue(token_matches("token-a", stored))
        self.assertFalse(token_matches("token-b", stored))
        self.assertFalse(token_matches("token-a", None))
        self.assertFalse(token_matches("token-a", ""))

    def test_tokens_with_long_shared_prefix_differ(self) -> None:
        prefix = "x" * 200
        self.assertNotEqual(hash_token(prefix + "1"), hash_token(prefix + "2"))


class TestJwt(unittest.TestCase):
    claims = {"sub": "1", "email": "a@x.com", "full_name": "A", "role": "user"}

    def test_round_trip_adds_type_jti_and_times(self) -> None:
        token = create_token(self.claims, TOKEN_TYPE_ACCESS, "s", "HS256", timedelta(minutes=5))
        payload = decode_token(token, "s", "HS256")
        self.assertEqual(payload["sub"], "1")
        self.assertEqual(payload["type"], TOKEN_TYPE_ACCESS)
        self.assertIn("jti", payload)
        self.assertEqual(payload["exp"] - payload["iat"], 300)

    def test_same_claims_give_distinct_tokens(self) -> None:
        a = create_token(self.claims, TOKEN_TYPE_ACCESS, "s", "HS256", timedelta(minutes=5))
        b = create_token(self.claims, TOKEN_TYPE_ACCESS, "s", "HS256", timedelta(minutes=5))
        self.assertNotEqual(a, b)

    def test_wrong_secret_rejected(self) -> None:
        token = create_token(self.claims, TOKEN_TYPE_ACCESS, "s", "HS256", timedelta(minutes=5))
        with self.assertRaises(jwt.InvalidSignatureError):
            decode_token(token, "other", "HS256")

    def test_expired_rejected(self) -> None:
        token = create_token(self.claims, TOKEN_TYPE_ACCESS, "s", "HS256", timedelta(seconds=-1))
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_token(token, "s", "HS256")

    def test_missing_required_claim_rejected(self) -> None:
        token = jwt.encode({"sub": "1"}, "s", algorithm="HS256")
        with self.assertRaises(jwt.MissingRequiredClaimError):
            decode_token(token, "s", "HS256")


if __name__ == "__main__":
    unittest.main()
