"""Unit tests for the credential checksum."""

import string

import pytest

from common.auth import checksum, new_challenge, verify
from common.protocol import CHALLENGE_SIZE


@pytest.mark.unit
class TestChecksum:
    """Tests for checksum()."""

    def test_deterministic(self) -> None:
        assert checksum("tok", "abcdefghijklmnop") == checksum("tok", "abcdefghijklmnop")

    def test_secret_changes_output(self) -> None:
        assert checksum("a", "abcdefghijklmnop") != checksum("b", "abcdefghijklmnop")

    def test_challenge_changes_output(self) -> None:
        assert checksum("tok", "abcdefghijklmnop") != checksum("tok", "abcdefghijklmnoq")

    def test_order_matters(self) -> None:
        # secret || challenge, not challenge || secret
        assert checksum("ab", "cd") != checksum("cd", "ab")

    def test_digest_size(self) -> None:
        assert len(checksum("tok", "x")) == 32

    def test_verify(self) -> None:
        tag = checksum("tok", "challenge")
        assert verify("tok", "challenge", tag)
        assert not verify("other", "challenge", tag)
        assert not verify("tok", "challenge", tag[:-1])


@pytest.mark.unit
class TestChallenge:
    """Tests for challenge generation."""

    def test_length(self) -> None:
        assert len(new_challenge()) == CHALLENGE_SIZE

    def test_printable(self) -> None:
        challenge = new_challenge()
        assert all(c in string.ascii_letters + string.digits for c in challenge)

    def test_fresh(self) -> None:
        challenges = {new_challenge() for _ in range(100)}
        assert len(challenges) == 100
