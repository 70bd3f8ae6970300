"""
store.py - In-memory Record Store

The RecordStore is the only module that mutates stored records, ensuring
controlled and auditable changes.

Key responsibilities:
    - Implements the RecordView protocol for read-only access by pure functions
    - Serializes writers per record address (one lock per address)
    - Commits every change of an operation atomically (all or nothing)
    - Keeps the transaction log and a mint -> accounts index
    - Provides clone() and verify_supply() for audits

Records are immutable dataclasses; a commit swaps in new record values, so a
reader never observes a half-applied operation.
"""

from __future__ import annotations
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, List, Set, Optional, Tuple, Any, Iterable, Iterator
import threading

from .core import (
    # Types
    Address, Record, MintRecord, AccountRecord, RecordChange,
    Instruction, Transaction,
    # Exceptions
    LedgerError, AlreadyInitialized, RecordNotFound,
)


class Session:
    """
    Exclusive, staged view over a fixed set of addresses.

    Created by RecordStore.session(). Reads see the session's own staged
    writes first, then the committed records. Nothing staged is visible to
    anyone else until the session exits cleanly.
    """

    def __init__(self, store: RecordStore, instruction: Instruction, addresses: Iterable[Address]):
        self._store = store
        self.instruction = instruction
        self.addresses: frozenset = frozenset(addresses)
        self._staged: Dict[Address, RecordChange] = {}
        self.transaction: Optional[Transaction] = None

    def _check_held(self, address: Address) -> None:
        if address not in self.addresses:
            raise LedgerError(f"Address {address} is not held by this session")

    def _lookup(self, address: Address) -> Optional[Record]:
        if address in self._staged:
            return self._staged[address].new
        return self._store._records.get(address)

    # RecordView

    def get_mint(self, address: Address) -> MintRecord:
        self._check_held(address)
        record = self._lookup(address)
        if not isinstance(record, MintRecord):
            raise RecordNotFound(f"No mint record at {address}")
        return record

    def get_account(self, address: Address) -> AccountRecord:
        self._check_held(address)
        record = self._lookup(address)
        if not isinstance(record, AccountRecord):
            raise RecordNotFound(f"No token account at {address}")
        return record

    def has_record(self, address: Address) -> bool:
        self._check_held(address)
        return self._lookup(address) is not None

    def stage(self, changes: Iterable[RecordChange]) -> None:
        """
        Stage record changes for commit.

        Each change's old value must match what the session currently sees
        (optimistic check). A creation over an existing record is rejected
        with AlreadyInitialized.

        Raises:
            AlreadyInitialized: If a creation targets an occupied address
            LedgerError: If an address is not held or a change is stale
        """
        changes = list(changes)
        # Validate everything first so a bad change leaves nothing staged
        for change in changes:
            self._check_held(change.address)
            current = self._lookup(change.address)
            if change.is_creation and current is not None:
                raise AlreadyInitialized(f"Record already initialized at {change.address}")
            if current != change.old:
                raise LedgerError(f"Stale record change at {change.address}")
        for change in changes:
            prior = self._staged.get(change.address)
            old = prior.old if prior is not None else change.old
            self._staged[change.address] = RecordChange(change.address, old, change.new)

    @property
    def staged(self) -> Tuple[RecordChange, ...]:
        return tuple(self._staged.values())


class RecordStore:
    """
    Keyed storage for mint and account records with an audit trail.

    Implements the RecordView protocol. All writes go through session(),
    which holds every address it touches exclusively until commit.

    Thread Safety:
        Sessions on disjoint addresses run in parallel; sessions sharing an
        address are serialized. Plain reads return the last committed value.

    Example:
        store = RecordStore("main")
        with store.session(instruction, [mint_address]) as session:
            mint = session.get_mint(mint_address)
            session.stage([RecordChange(mint_address, mint, new_mint)])
        tx = session.transaction
    """

    def __init__(self, name: str, test_mode: bool = False):
        """
        Create an empty store.

        Args:
            name: Store identifier, used in execution ids
            test_mode: Enable test mode to allow set_account_amount() calls (default: False)
        """
        self.name = name
        self._test_mode = test_mode
        self._records: Dict[Address, Record] = {}
        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0
        self._next_nonce: int = 0
        # Inverted index mapping mint -> account addresses
        self._accounts_by_mint: Dict[Address, Set[Address]] = defaultdict(set)
        # Guards the lock table, sequence/nonce counters and commit
        self._guard = threading.Lock()
        self._locks: Dict[Address, threading.Lock] = {}

    # ========================================================================
    # RecordView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    def get_mint(self, address: Address) -> MintRecord:
        """
        Get the committed mint record at address.

        Raises:
            RecordNotFound: If no mint record is stored there
        """
        record = self._records.get(address)
        if not isinstance(record, MintRecord):
            raise RecordNotFound(f"No mint record at {address}")
        return record

    def get_account(self, address: Address) -> AccountRecord:
        """
        Get the committed account record at address.

        Raises:
            RecordNotFound: If no account record is stored there
        """
        record = self._records.get(address)
        if not isinstance(record, AccountRecord):
            raise RecordNotFound(f"No token account at {address}")
        return record

    def has_record(self, address: Address) -> bool:
        """Check if any record is stored at address."""
        return address in self._records

    def list_mints(self) -> List[MintRecord]:
        """All mint records, sorted by address."""
        return sorted(
            (r for r in list(self._records.values()) if isinstance(r, MintRecord)),
            key=lambda r: r.address,
        )

    def accounts_for_mint(self, mint: Address) -> List[AccountRecord]:
        """All account records for a mint, sorted by owner."""
        addresses = list(self._accounts_by_mint.get(mint, ()))
        return sorted((self._records[a] for a in addresses), key=lambda r: (r.owner, r.address))

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify that every mint's total_supply equals the sum of its balances.

        Reads under the commit guard, so the check sees one consistent
        moment even while other threads are committing.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the invariant holds for all mints
            - 'supplies': Dict[str, int] - Recorded total supply per mint
            - 'discrepancies': List[Dict] - Details of any violation
              Each discrepancy contains: mint, recorded, actual, difference

        Example:
            result = store.verify_supply()
            assert result['valid'], f"Supply mismatch: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []

        with self._guard:
            for mint in self.list_mints():
                supplies[mint.address] = mint.total_supply
                actual = sum(a.amount for a in self.accounts_for_mint(mint.address))
                if actual != mint.total_supply:
                    discrepancies.append({
                        'mint': mint.address,
                        'recorded': mint.total_supply,
                        'actual': actual,
                        'difference': actual - mint.total_supply,
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # LOCKING AND SESSIONS (Mutating)
    # ========================================================================

    def _lock_for(self, address: Address) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = threading.Lock()
            return lock

    def allocate_nonce(self) -> int:
        """Issue the next nonce for fresh address allocation."""
        with self._guard:
            nonce = self._next_nonce
            self._next_nonce += 1
            return nonce

    @property
    def next_nonce(self) -> int:
        return self._next_nonce

    def advance_nonce(self, nonce: int) -> None:
        """Move the nonce counter forward to at least nonce (never back)."""
        with self._guard:
            self._next_nonce = max(self._next_nonce, nonce)

    @contextmanager
    def session(self, instruction: Instruction, addresses: Iterable[Address]) -> Iterator[Session]:
        """
        Open an exclusive session over addresses.

        Locks are taken in sorted order so two sessions can never wait on
        each other. On a clean exit all staged changes are committed as one
        Transaction (available as session.transaction); if the body raises,
        nothing is written and the exception propagates.
        """
        ordered = sorted(set(addresses))
        locks = [self._lock_for(address) for address in ordered]
        for lock in locks:
            lock.acquire()
        try:
            session = Session(self, instruction, ordered)
            yield session
            if session.staged:
                session.transaction = self._commit(instruction, session.staged)
        finally:
            for lock in reversed(locks):
                lock.release()

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{store_name}:{sequence:012d}
        """
        return f"exec:{self.name}:{sequence:012d}"

    def _commit(self, instruction: Instruction, changes: Tuple[RecordChange, ...]) -> Transaction:
        """Apply staged changes and append the transaction to the log."""
        with self._guard:
            sequence = self._next_sequence
            tx = Transaction(
                instruction=instruction,
                changes=changes,
                exec_id=self._generate_exec_id(sequence),
                program_name=self.name,
                sequence_number=sequence,
            )
            for change in changes:
                self._records[change.address] = change.new
                if isinstance(change.new, AccountRecord):
                    self._accounts_by_mint[change.new.mint].add(change.address)
            self.transaction_log.append(tx)
            self._next_sequence += 1
        return tx

    def set_account_amount(self, address: Address, amount: int) -> None:
        """
        Set an account's balance directly.

        WARNING: This method bypasses supply accounting and is only
        available in test mode. It is not logged, so replay() will not
        reproduce it.

        Raises:
            LedgerError: If called when test_mode is False
            RecordNotFound: If no account is stored at address
        """
        if not self._test_mode:
            raise LedgerError(
                "set_account_amount() is disabled in production mode. "
                "Use issue/transfer/burn to modify balances. "
                "Set test_mode=True when creating the program for testing."
            )
        with self._lock_for(address):
            account = self.get_account(address)
            with self._guard:
                self._records[address] = replace(account, amount=amount)

    # ========================================================================
    # AUDIT
    # ========================================================================

    def clone(self) -> RecordStore:
        """
        Create an independent copy of this store.

        Records are immutable, so sharing them is safe; containers, counters
        and locks are fresh. The copy is taken under the commit guard, so
        records and log describe the same moment.
        """
        cloned = RecordStore(self.name, test_mode=self._test_mode)
        with self._guard:
            cloned._records = dict(self._records)
            cloned.transaction_log = list(self.transaction_log)
            cloned._next_sequence = self._next_sequence
            cloned._next_nonce = self._next_nonce
            for mint, accounts in self._accounts_by_mint.items():
                cloned._accounts_by_mint[mint] = set(accounts)
        return cloned
