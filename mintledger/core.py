"""
Core types and pure functions for the token ledger.

This module provides the foundational data structures and protocols:
1. Protocols: RecordView for read-only record access
2. Immutable records: MintRecord, AccountRecord, RecordChange
3. Instructions: Instruction plus builder functions for each operation
4. Exceptions: LedgerError and the operation error taxonomy
5. Checked arithmetic: checked_add, checked_sub
6. Transaction: the executed, logged fact

All functions in this module are pure and operate on read-only views.
No function can mutate stored records directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum
import re
from typing import (
    Dict, Optional, Any, Protocol, Tuple, List, Mapping, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Namespace tag for per-owner token account addresses.
TOKEN_NAMESPACE = "token"

# Namespace tag for freshly allocated mint addresses.
MINT_NAMESPACE = "mint"

# Largest representable amount (unsigned 64-bit).
U64_MAX = 2 ** 64 - 1

# Hex characters in a record address (a SHA-256 digest).
ADDRESS_LENGTH = 64

_ADDRESS_RE = re.compile(rf"[0-9a-f]{{{ADDRESS_LENGTH}}}")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# 64-character lowercase hex digest identifying a stored record.
Address = str

# Authenticated identity (mint authority, account owner, payer).
Principal = str

# Either kind of stored record.
Record = Any


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class RecordView(Protocol):
    """
    Read-only interface to stored records.

    Operations receive a RecordView to look records up without being able
    to write them. The RecordStore and its sessions implement this protocol.
    """

    def get_mint(self, address: Address) -> 'MintRecord':
        """Return the mint record at address or raise RecordNotFound."""
        ...

    def get_account(self, address: Address) -> 'AccountRecord':
        """Return the account record at address or raise RecordNotFound."""
        ...

    def has_record(self, address: Address) -> bool:
        """Return True if any record is stored at address."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class OperationKind(Enum):
    """Entry points accepted by the token program."""
    INITIALIZE = "initialize"
    CREATE_TOKEN_ACCOUNT = "create_token_account"
    ISSUE = "issue"
    TRANSFER = "transfer"
    BURN = "burn"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""

    kind = "LedgerError"
    default_message = "Ledger error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class Unauthorized(LedgerError):
    """Raised when the signer does not match the record's required principal."""
    kind = "Unauthorized"
    default_message = "Signer is not authorized for this record"


class MintMismatch(LedgerError):
    """Raised when two records expected to share a mint do not."""
    kind = "MintMismatch"
    default_message = "Token account mint does not match the provided mint"


class InsufficientFunds(LedgerError):
    """Raised when a decrement exceeds the current balance."""
    kind = "InsufficientFunds"
    default_message = "Sender has insufficient funds"


class Overflow(LedgerError):
    """Raised when an increment would leave the representable range."""
    kind = "Overflow"
    default_message = "Arithmetic overflow"


class AlreadyInitialized(LedgerError):
    """Raised when a creation targets an address that already holds a record."""
    kind = "AlreadyInitialized"
    default_message = "Record already initialized at this address"


class RecordNotFound(LedgerError):
    """Raised when an operation needs a record that is not stored."""
    kind = "RecordNotFound"
    default_message = "Record not found"


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    """Return a + b, raising Overflow if the result exceeds limit."""
    result = a + b
    if result > limit:
        raise Overflow(f"Arithmetic overflow: {a} + {b} > {limit}")
    return result


def checked_sub(a: int, b: int) -> int:
    """Return a - b, raising Overflow if the result would be negative."""
    if b > a:
        raise Overflow(f"Arithmetic overflow: {a} - {b} < 0")
    return a - b


def is_valid_address(value: object) -> bool:
    """Check that value has the shape of a record address."""
    return isinstance(value, str) and _ADDRESS_RE.fullmatch(value) is not None


def _require_principal(value: Any, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty principal, got {value!r}")


def _require_amount(value: Any, name: str = "amount") -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    if value > U64_MAX:
        raise ValueError(f"{name} exceeds u64 range: {value}")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class MintRecord:
    """
    Per-token-type ledger header.

    Attributes:
        address: Unique identifier assigned at creation.
        authority: Principal allowed to issue new tokens. Never changes.
        decimals: Scaling exponent. Informational only, never changes.
        total_supply: Sum of all account balances for this mint.
    """
    address: Address
    authority: Principal
    decimals: int
    total_supply: int = 0

    def __post_init__(self):
        _require_principal(self.authority, "MintRecord authority")
        _require_amount(self.total_supply, "MintRecord total_supply")

    def __repr__(self) -> str:
        return f"Mint({self.address[:8]}…, supply={self.total_supply}, decimals={self.decimals})"


@dataclass(frozen=True, slots=True)
class AccountRecord:
    """
    Per-owner balance entry for one mint.

    Attributes:
        address: Derived from (owner, mint); see address.find_token_account_address.
        owner: Principal that must sign transfers and burns. Never changes.
        mint: Address of the MintRecord this balance belongs to. Never changes.
        amount: Current balance.
    """
    address: Address
    owner: Principal
    mint: Address
    amount: int = 0

    def __post_init__(self):
        _require_principal(self.owner, "AccountRecord owner")
        _require_amount(self.amount, "AccountRecord amount")

    def __repr__(self) -> str:
        return f"Account({self.owner}@{self.mint[:8]}…, amount={self.amount})"


def _record_fields(record: Optional[Record]) -> Dict[str, Any]:
    if record is None:
        return {}
    return {f.name: getattr(record, f.name) for f in fields(record)}


@dataclass(frozen=True, slots=True)
class RecordChange:
    """
    Before/after snapshot of one stored record.

    Attributes:
        address: Address of the record being written
        old: Record before the change (None for a creation)
        new: Record after the change
    """
    address: Address
    old: Optional[Record]
    new: Record

    def __post_init__(self):
        if self.new is None:
            raise ValueError("RecordChange must have a new record")
        if self.new.address != self.address:
            raise ValueError(
                f"RecordChange address {self.address} does not match record {self.new.address}"
            )
        if self.old is not None and type(self.old) is not type(self.new):
            raise ValueError("RecordChange cannot change the record kind")

    @property
    def is_creation(self) -> bool:
        return self.old is None

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new record.

        Returns:
            Dict mapping field name to (old_value, new_value) tuples.
            For a creation every field of the new record is reported.
        """
        old = _record_fields(self.old)
        new = _record_fields(self.new)
        return {
            key: (old.get(key), new[key])
            for key in new
            if old.get(key) != new[key]
        }


# ============================================================================
# INSTRUCTIONS
# ============================================================================

# Parameters each operation kind must carry.
_REQUIRED_PARAMS: Dict[OperationKind, Tuple[str, ...]] = {
    OperationKind.INITIALIZE: ("decimals",),
    OperationKind.CREATE_TOKEN_ACCOUNT: ("mint", "owner"),
    OperationKind.ISSUE: ("mint", "account", "amount"),
    OperationKind.TRANSFER: ("source", "dest", "amount"),
    OperationKind.BURN: ("mint", "account", "amount"),
}

_ADDRESS_PARAMS = ("mint", "account", "source", "dest")


@dataclass(frozen=True, slots=True)
class Instruction:
    """
    A request submitted to the token program - represents INTENT.

    Attributes:
        kind: Which operation to run.
        signer: Principal the host has already authenticated for this request.
        params: Operation parameters (addresses, amount, decimals).

    Validation of shape happens here, before the request reaches any record:
    a malformed instruction raises ValueError and is never executed.
    """
    kind: OperationKind
    signer: Principal
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.kind, OperationKind):
            raise ValueError(f"Unknown operation kind: {self.kind!r}")
        _require_principal(self.signer, "Instruction signer")
        missing = [p for p in _REQUIRED_PARAMS[self.kind] if p not in self.params]
        if missing:
            raise ValueError(f"{self.kind.value} missing parameters: {', '.join(missing)}")
        object.__setattr__(self, 'params', dict(self.params))
        for name in _ADDRESS_PARAMS:
            if name in self.params and not is_valid_address(self.params[name]):
                raise ValueError(
                    f"{name} must be a {ADDRESS_LENGTH}-character lowercase hex address, "
                    f"got {self.params[name]!r}"
                )
        if "amount" in self.params:
            _require_amount(self.params["amount"])
        if self.kind == OperationKind.INITIALIZE:
            self._validate_initialize()
        if self.kind == OperationKind.CREATE_TOKEN_ACCOUNT:
            _require_principal(self.params["owner"], "owner")

    def _validate_initialize(self) -> None:
        # A mint is placed either by a caller-chosen key or by an allocated nonce
        decimals = self.params["decimals"]
        if isinstance(decimals, bool) or not isinstance(decimals, int):
            raise ValueError(f"decimals must be int, got {type(decimals).__name__}")
        if "mint_key" in self.params and "nonce" in self.params:
            raise ValueError("initialize takes either mint_key or nonce, not both")
        if "mint_key" in self.params and not is_valid_address(self.params["mint_key"]):
            raise ValueError(
                f"mint_key must be a {ADDRESS_LENGTH}-character lowercase hex key, "
                f"got {self.params['mint_key']!r}"
            )
        if "nonce" in self.params:
            nonce = self.params["nonce"]
            if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
                raise ValueError(f"nonce must be a non-negative int, got {nonce!r}")

    def addresses(self) -> Tuple[Address, ...]:
        """Addresses of existing records this instruction reads or writes."""
        p = self.params
        if self.kind == OperationKind.INITIALIZE:
            return ()
        if self.kind == OperationKind.CREATE_TOKEN_ACCOUNT:
            return (p["mint"],)
        if self.kind == OperationKind.TRANSFER:
            return (p["source"], p["dest"])
        return (p["mint"], p["account"])

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in sorted(self.params.items()))
        return f"Instruction({self.kind.value} by {self.signer}: {args})"


def initialize_instruction(
    decimals: int,
    authority: Principal,
    mint_key: Optional[Address] = None,
    nonce: Optional[int] = None,
) -> Instruction:
    """
    Build an instruction creating a mint owned by authority.

    With mint_key the mint lives at mint_address_for_key(mint_key); with
    nonce at allocate_mint_address(authority, nonce). With neither, the
    registry allocates the next nonce and logs it in the instruction.
    """
    params: Dict[str, Any] = {"decimals": decimals}
    if mint_key is not None:
        params["mint_key"] = mint_key
    if nonce is not None:
        params["nonce"] = nonce
    return Instruction(OperationKind.INITIALIZE, authority, params)


def create_token_account_instruction(
    mint: Address,
    owner: Principal,
    payer: Optional[Principal] = None,
) -> Instruction:
    """Build an instruction creating owner's account for mint, signed by payer."""
    return Instruction(
        OperationKind.CREATE_TOKEN_ACCOUNT,
        payer or owner,
        {"mint": mint, "owner": owner},
    )


def issue_instruction(
    mint: Address, account: Address, authority: Principal, amount: int
) -> Instruction:
    """Build an instruction issuing amount new tokens into account."""
    return Instruction(
        OperationKind.ISSUE, authority,
        {"mint": mint, "account": account, "amount": amount},
    )


def transfer_instruction(
    source: Address, dest: Address, owner: Principal, amount: int
) -> Instruction:
    """Build an instruction moving amount from source to dest."""
    return Instruction(
        OperationKind.TRANSFER, owner,
        {"source": source, "dest": dest, "amount": amount},
    )


def burn_instruction(
    mint: Address, account: Address, owner: Principal, amount: int
) -> Instruction:
    """Build an instruction destroying amount tokens held in account."""
    return Instruction(
        OperationKind.BURN, owner,
        {"mint": mint, "account": account, "amount": amount},
    )


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of committed changes - represents FACT.

    Attributes:
        instruction: The request that produced this transaction
        changes: Every record written, with before/after snapshots
        exec_id: Unique execution identifier (program + sequence)
        program_name: Name of the program that executed this
        sequence_number: Monotonic sequence within the program (for ordering)
    """
    instruction: Instruction
    changes: Tuple[RecordChange, ...]
    exec_id: str
    program_name: str
    sequence_number: int

    def __post_init__(self):
        if not self.changes:
            raise ValueError("Transaction must have at least one record change")

    def new_record(self, address: Address) -> Record:
        """Return the committed record written at address."""
        for change in self.changes:
            if change.address == address:
                return change.new
        raise KeyError(address)

    def created(self) -> List[Record]:
        """Records this transaction created."""
        return [c.new for c in self.changes if c.is_creation]

    def __repr__(self) -> str:
        return (
            f"Transaction({self.exec_id}: {self.instruction.kind.value}, "
            f"{len(self.changes)} changes)"
        )
