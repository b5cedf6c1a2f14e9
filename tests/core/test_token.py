"""Tests for oddsvault.core.token - the value-transfer collaborator."""

from __future__ import annotations

import pytest

from oddsvault.core.exceptions import TransferFailed, ValidationException
from oddsvault.core.token import InMemoryToken, TokenLedger, pull, send


@pytest.fixture
def funded(token):
    token.mint("alice", 100)
    return token


class TestInMemoryToken:
    """Tests for the in-memory reference ledger."""

    def test_satisfies_protocol(self, token):
        assert isinstance(token, TokenLedger)

    def test_mint_and_balance(self, funded):
        assert funded.balance_of("alice") == 100
        assert funded.balance_of("bob") == 0
        assert funded.total_supply() == 100

    def test_mint_rejects_non_positive(self, token):
        with pytest.raises(ValidationException):
            token.mint("alice", 0)

    def test_transfer(self, funded):
        assert funded.transfer("alice", "bob", 40) is True
        assert funded.balance_of("alice") == 60
        assert funded.balance_of("bob") == 40

    def test_transfer_insufficient_balance(self, funded):
        assert funded.transfer("alice", "bob", 101) is False
        assert funded.balance_of("alice") == 100

    def test_transfer_from_consumes_allowance(self, funded):
        funded.approve("alice", "vault", 50)
        assert funded.transfer_from("vault", "alice", "vault", 30) is True
        assert funded.allowance("alice", "vault") == 20
        assert funded.transfer_from("vault", "alice", "vault", 30) is False

    def test_frozen_accounts_refuse(self, funded):
        funded.frozen.add("bob")
        assert funded.transfer("alice", "bob", 1) is False

    def test_hooks_run_after_booking(self, funded):
        seen = []
        funded.on_transfer.append(lambda s, r, a: seen.append((s, r, a, funded.balance_of(r))))
        funded.transfer("alice", "bob", 10)
        assert seen == [("alice", "bob", 10, 10)]


class TestSendAndPull:
    """Tests for the abort-on-failure helpers."""

    def test_send_skips_zero(self, token):
        send(token, "nobody", "bob", 0)
        assert token.total_supply() == 0

    def test_send_failure_raises(self, funded):
        with pytest.raises(TransferFailed) as exc_info:
            send(funded, "alice", "bob", 500)
        assert exc_info.value.amount == 500
        assert exc_info.value.recipient == "bob"

    def test_pull_without_allowance_raises(self, funded):
        with pytest.raises(TransferFailed):
            pull(funded, "event:1", "alice", "event:1", 10)

    def test_pull(self, funded):
        funded.approve("alice", "event:1", 10)
        pull(funded, "event:1", "alice", "event:1", 10)
        assert funded.balance_of("event:1") == 10


def test_token_is_transactional():
    """Token balances roll back with the operation that moved them."""
    from oddsvault.core.transactions import atomic

    token = InMemoryToken()
    token.mint("alice", 10)
    with pytest.raises(RuntimeError):
        with atomic(token):
            token.transfer("alice", "bob", 10)
            raise RuntimeError
    assert token.balance_of("alice") == 10
    assert token.balance_of("bob") == 0
