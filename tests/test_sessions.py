import base64
import hashlib

import pytest

from hv.sessions import (
    InvalidTokenLedger,
    SessionTokenLedger,
    UnknownToken,
    hash_token,
)


def test_hash_token_is_base64url_sha256_of_token_and_salt():
    expected = base64.urlsafe_b64encode(hashlib.sha256(b"tokensalt").digest()).decode()
    assert hash_token("token", "salt") == expected


def test_append_new_issues_token_and_keeps_only_its_hash():
    ledger, token = SessionTokenLedger().append_new()

    assert len(token) >= 40
    assert len(ledger) == 1
    assert ledger.has_token(token)
    token_hash, salt = ledger.to_pairs()[0]
    assert token_hash == hash_token(token, salt)
    assert token not in (token_hash, salt)


def test_append_new_leaves_source_ledger_untouched():
    empty = SessionTokenLedger()
    empty.append_new()
    assert len(empty) == 0


def test_full_ledger_evicts_oldest():
    ledger = SessionTokenLedger(capacity=3)
    tokens = []
    for _ in range(4):
        ledger, token = ledger.append_new()
        tokens.append(token)

    assert len(ledger) == 3
    assert not ledger.has_token(tokens[0])
    assert all(ledger.has_token(token) for token in tokens[1:])


def test_oversized_stored_ledger_is_trimmed_on_next_login():
    ledger = SessionTokenLedger(capacity=5)
    for _ in range(5):
        ledger, _ = ledger.append_new()

    shrunk = SessionTokenLedger.from_pairs(ledger.to_pairs(), capacity=2)
    shrunk, token = shrunk.append_new()

    assert len(shrunk) == 2
    assert shrunk.has_token(token)


def test_remove_token_drops_only_matching_entry():
    ledger = SessionTokenLedger()
    ledger, first = ledger.append_new()
    ledger, second = ledger.append_new()

    ledger = ledger.remove_token(first)

    assert len(ledger) == 1
    assert not ledger.has_token(first)
    assert ledger.has_token(second)


def test_remove_unknown_token_raises():
    ledger, _ = SessionTokenLedger().append_new()
    with pytest.raises(UnknownToken):
        ledger.remove_token("never-issued")
    assert len(ledger) == 1


def test_from_pairs_round_trip():
    ledger, token = SessionTokenLedger().append_new()
    restored = SessionTokenLedger.from_pairs(ledger.to_pairs())
    assert restored == ledger
    assert restored.has_token(token)


@pytest.mark.parametrize(
    "pairs",
    [
        [["only-hash"]],
        [["hash", "salt", "extra"]],
        [[1, "salt"]],
        ["hashsalt"],
    ],
)
def test_from_pairs_rejects_malformed_entries(pairs):
    with pytest.raises(InvalidTokenLedger):
        SessionTokenLedger.from_pairs(pairs)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        SessionTokenLedger(capacity=0)
