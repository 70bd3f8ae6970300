"""
mintledger - Fungible Token Ledger

A minimal token accounting engine: mint creation, per-owner account
provisioning, issuance, transfer and burn, each guarded by signer checks and
checked arithmetic.

Usage:
    from mintledger import TokenProgram

    program = TokenProgram("main")
    mint = program.initialize(9, "treasury")

    alice = program.create_token_account(mint.address, "alice")
    bob = program.create_token_account(mint.address, "bob")

    # Issue via the mint authority
    program.issue(mint.address, alice.address, "treasury", 1000)

    # Transfer, signed by the source account's owner
    program.transfer(alice.address, bob.address, "alice", 300)

    # Burn, signed by the account owner
    program.burn(mint.address, bob.address, "bob", 100)

    assert program.verify_supply()['valid']
"""

# Core types
from .core import (
    Address,
    Principal,
    RecordView,
    OperationKind,
    MintRecord,
    AccountRecord,
    RecordChange,
    Instruction,
    Transaction,
    initialize_instruction,
    create_token_account_instruction,
    issue_instruction,
    transfer_instruction,
    burn_instruction,
    checked_add,
    checked_sub,
    LedgerError,
    Unauthorized,
    MintMismatch,
    InsufficientFunds,
    Overflow,
    AlreadyInitialized,
    RecordNotFound,
    TOKEN_NAMESPACE,
    MINT_NAMESPACE,
    U64_MAX,
    ADDRESS_LENGTH,
)

# Addressing
from .address import (
    derive_address,
    find_token_account_address,
    allocate_mint_address,
    mint_address_for_key,
    is_valid_address,
)

# Authorization
from .auth import AuthorizationChecker, Authenticator

# Storage
from .store import RecordStore, Session

# Mint registry
from .registry import MintRegistry, compute_initialize

# Ledger operations
from .operations import (
    compute_create_token_account,
    compute_issue,
    compute_transfer,
    compute_burn,
)

# Program
from .program import TokenProgram, DEFAULT_HANDLERS, describe


__all__ = [
    # Core
    'Address', 'Principal', 'RecordView', 'OperationKind',
    'MintRecord', 'AccountRecord', 'RecordChange', 'Instruction', 'Transaction',
    'initialize_instruction', 'create_token_account_instruction',
    'issue_instruction', 'transfer_instruction', 'burn_instruction',
    'checked_add', 'checked_sub',
    'LedgerError', 'Unauthorized', 'MintMismatch', 'InsufficientFunds',
    'Overflow', 'AlreadyInitialized', 'RecordNotFound',
    'TOKEN_NAMESPACE', 'MINT_NAMESPACE', 'U64_MAX', 'ADDRESS_LENGTH',
    # Addressing
    'derive_address', 'find_token_account_address', 'allocate_mint_address',
    'mint_address_for_key', 'is_valid_address',
    # Authorization
    'AuthorizationChecker', 'Authenticator',
    # Storage
    'RecordStore', 'Session',
    # Registry
    'MintRegistry', 'compute_initialize',
    # Operations
    'compute_create_token_account', 'compute_issue', 'compute_transfer', 'compute_burn',
    # Program
    'TokenProgram', 'DEFAULT_HANDLERS', 'describe',
]

__version__ = '1.0.0'
