"""
test_store.py - Unit tests for RecordStore and Session

Tests:
- Read-only lookups and RecordNotFound
- Session staging, held-address enforcement, stale/duplicate detection
- Commit: log, sequence numbers, exec ids, mint index
- Rollback on exception
- Test-mode balance override
- clone() independence and verify_supply()
"""

import pytest
from dataclasses import replace

from mintledger import (
    RecordStore, MintRecord, AccountRecord, RecordChange, RecordView,
    initialize_instruction, issue_instruction,
    LedgerError, AlreadyInitialized, RecordNotFound,
)


MINT = "a" * 64
ACCOUNT = "b" * 64
STRAY = "c" * 64


def _seed(store: RecordStore, amount: int = 0) -> None:
    """Commit a mint and one account whose balance equals the supply."""
    mint = MintRecord(MINT, "treasury", 9, total_supply=amount)
    account = AccountRecord(ACCOUNT, "alice", MINT, amount=amount)
    with store.session(initialize_instruction(9, "treasury", MINT), [MINT, ACCOUNT]) as session:
        session.stage([RecordChange(MINT, None, mint), RecordChange(ACCOUNT, None, account)])


class TestLookups:

    def test_store_is_record_view(self):
        assert isinstance(RecordStore("s"), RecordView)

    def test_missing_records(self):
        store = RecordStore("s")
        with pytest.raises(RecordNotFound):
            store.get_mint(MINT)
        with pytest.raises(RecordNotFound):
            store.get_account(ACCOUNT)
        assert store.has_record(MINT) is False

    def test_wrong_kind_is_not_found(self):
        store = RecordStore("s")
        _seed(store)
        with pytest.raises(RecordNotFound, match="No mint record"):
            store.get_mint(ACCOUNT)
        with pytest.raises(RecordNotFound, match="No token account"):
            store.get_account(MINT)

    def test_accounts_for_mint(self):
        store = RecordStore("s")
        _seed(store, 5)
        assert [a.owner for a in store.accounts_for_mint(MINT)] == ["alice"]
        assert store.accounts_for_mint(STRAY) == []


class TestSessionCommit:

    def test_commit_logs_one_transaction(self):
        store = RecordStore("s")
        _seed(store)
        assert len(store.transaction_log) == 1
        tx = store.transaction_log[0]
        assert tx.sequence_number == 0
        assert tx.exec_id == "exec:s:000000000000"
        assert tx.program_name == "s"
        assert [c.address for c in tx.changes] == [MINT, ACCOUNT]

    def test_sequence_increments(self):
        store = RecordStore("s")
        _seed(store)
        mint = store.get_mint(MINT)
        with store.session(issue_instruction(MINT, ACCOUNT, "treasury", 0), [MINT]) as session:
            session.stage([RecordChange(MINT, mint, mint)])
        assert session.transaction.sequence_number == 1
        assert [tx.sequence_number for tx in store.transaction_log] == [0, 1]

    def test_session_reads_its_own_staged_writes(self):
        store = RecordStore("s")
        _seed(store)
        account = store.get_account(ACCOUNT)
        updated = replace(account, amount=7)
        with store.session(issue_instruction(MINT, ACCOUNT, "treasury", 7), [ACCOUNT]) as session:
            session.stage([RecordChange(ACCOUNT, account, updated)])
            assert session.get_account(ACCOUNT).amount == 7
            # Not yet visible outside the session
            assert store.get_account(ACCOUNT).amount == 0
        assert store.get_account(ACCOUNT).amount == 7

    def test_empty_session_commits_nothing(self):
        store = RecordStore("s")
        with store.session(initialize_instruction(9, "treasury"), [MINT]) as session:
            pass
        assert session.transaction is None
        assert store.transaction_log == []


class TestSessionRollback:

    def test_exception_discards_staged_changes(self):
        store = RecordStore("s")
        mint = MintRecord(MINT, "treasury", 9)
        with pytest.raises(RuntimeError):
            with store.session(initialize_instruction(9, "treasury", MINT), [MINT]) as session:
                session.stage([RecordChange(MINT, None, mint)])
                raise RuntimeError("boom")
        assert not store.has_record(MINT)
        assert store.transaction_log == []

    def test_locks_released_after_failure(self):
        """A failed session does not leave its addresses locked."""
        store = RecordStore("s")
        with pytest.raises(RuntimeError):
            with store.session(initialize_instruction(9, "treasury", MINT), [MINT]):
                raise RuntimeError("boom")
        assert store._lock_for(MINT).acquire(timeout=1)
        store._lock_for(MINT).release()


class TestSessionGuards:

    def test_unheld_address_rejected(self):
        store = RecordStore("s")
        _seed(store)
        with pytest.raises(LedgerError, match="not held"):
            with store.session(issue_instruction(MINT, ACCOUNT, "treasury", 1), [MINT]) as session:
                session.get_account(ACCOUNT)

    def test_creation_over_existing_record(self):
        store = RecordStore("s")
        _seed(store)
        with pytest.raises(AlreadyInitialized):
            with store.session(initialize_instruction(9, "x", MINT), [MINT]) as session:
                session.stage([RecordChange(MINT, None, MintRecord(MINT, "x", 2))])
        assert store.get_mint(MINT).authority == "treasury"

    def test_stale_change_rejected(self):
        store = RecordStore("s")
        _seed(store)
        account = store.get_account(ACCOUNT)
        stale = replace(account, amount=99)
        with pytest.raises(LedgerError, match="Stale"):
            with store.session(issue_instruction(MINT, ACCOUNT, "treasury", 1), [ACCOUNT]) as session:
                session.stage([RecordChange(ACCOUNT, stale, replace(account, amount=100))])

    def test_bad_change_stages_nothing(self):
        """Validation of a batch happens before any of it is staged."""
        store = RecordStore("s")
        _seed(store)
        mint = store.get_mint(MINT)
        with store.session(issue_instruction(MINT, ACCOUNT, "treasury", 1), [MINT]) as session:
            with pytest.raises(LedgerError):
                session.stage([
                    RecordChange(MINT, mint, replace(mint, total_supply=1)),
                    RecordChange(STRAY, None, MintRecord(STRAY, "x", 0)),
                ])
            assert session.staged == ()


class TestTestMode:

    def test_set_account_amount_requires_test_mode(self):
        store = RecordStore("s")
        _seed(store)
        with pytest.raises(LedgerError, match="disabled in production mode"):
            store.set_account_amount(ACCOUNT, 10)

    def test_set_account_amount(self):
        store = RecordStore("s", test_mode=True)
        _seed(store)
        store.set_account_amount(ACCOUNT, 10)
        assert store.get_account(ACCOUNT).amount == 10
        assert len(store.transaction_log) == 1

    def test_set_account_amount_missing_account(self):
        store = RecordStore("s", test_mode=True)
        with pytest.raises(RecordNotFound):
            store.set_account_amount(ACCOUNT, 10)


class TestAudit:

    def test_verify_supply_valid(self):
        store = RecordStore("s")
        _seed(store, 40)
        result = store.verify_supply()
        assert result['valid']
        assert result['supplies'] == {MINT: 40}
        assert result['discrepancies'] == []

    def test_verify_supply_detects_drift(self):
        store = RecordStore("s", test_mode=True)
        _seed(store, 40)
        store.set_account_amount(ACCOUNT, 45)
        result = store.verify_supply()
        assert not result['valid']
        assert result['discrepancies'] == [
            {'mint': MINT, 'recorded': 40, 'actual': 45, 'difference': 5}
        ]

    def test_clone_is_independent(self):
        store = RecordStore("s", test_mode=True)
        _seed(store, 40)
        cloned = store.clone()
        cloned.set_account_amount(ACCOUNT, 1)
        assert store.get_account(ACCOUNT).amount == 40
        assert cloned.get_account(ACCOUNT).amount == 1
        assert cloned.transaction_log == store.transaction_log
        assert cloned.transaction_log is not store.transaction_log

    def test_allocate_nonce_monotonic(self):
        store = RecordStore("s")
        assert [store.allocate_nonce() for _ in range(3)] == [0, 1, 2]
        assert store.clone().allocate_nonce() == 3

    def test_advance_nonce_never_goes_back(self):
        store = RecordStore("s")
        store.advance_nonce(5)
        assert store.next_nonce == 5
        store.advance_nonce(2)
        assert store.next_nonce == 5
        assert store.allocate_nonce() == 5
        assert store.next_nonce == 6
