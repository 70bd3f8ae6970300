"""
operations.py - Ledger state transitions

Pure functions implementing account creation, issue, transfer and burn:
1. compute_create_token_account() - Provision owner's account for a mint
2. compute_issue() - Mint authority issues new supply into an account
3. compute_transfer() - Account owner moves balance to another account
4. compute_burn() - Account owner destroys part of their balance

Each function takes explicit records (or a RecordView), runs every
precondition before building any result, and returns the RecordChanges to
commit. They never write anything: the first failed precondition raises and
the caller's session discards the operation.

Precondition order is part of the contract: when several checks fail, the
error raised is the earliest one listed in the function's docstring.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Tuple

from .core import (
    Address, Principal, RecordView,
    MintRecord, AccountRecord, RecordChange,
    MintMismatch, InsufficientFunds, AlreadyInitialized,
    checked_add, checked_sub, U64_MAX,
)
from .address import find_token_account_address
from .auth import AuthorizationChecker, DEFAULT_CHECKER


def compute_create_token_account(
    view: RecordView,
    mint: Address,
    owner: Principal,
) -> RecordChange:
    """
    Build the creation change for owner's token account.

    The payer who funds the account is not an input: it has no bearing on
    balances and is only the signer of the surrounding instruction.

    Args:
        view: Read-only record access (must hold mint and the derived address)
        mint: Address of an existing mint
        owner: Principal that will own the account

    Returns:
        RecordChange creating an AccountRecord with amount = 0

    Raises:
        RecordNotFound: If no mint is stored at mint
        AlreadyInitialized: If owner already has an account for mint
    """
    view.get_mint(mint)
    address = find_token_account_address(owner, mint)
    if view.has_record(address):
        raise AlreadyInitialized(f"Token account for {owner} already initialized at {address}")
    return RecordChange(address, None, AccountRecord(address=address, owner=owner, mint=mint, amount=0))


def compute_issue(
    mint: MintRecord,
    account: AccountRecord,
    signer: Principal,
    amount: int,
    checker: AuthorizationChecker = DEFAULT_CHECKER,
    max_amount: int = U64_MAX,
) -> Tuple[RecordChange, RecordChange]:
    """
    Issue amount new tokens into account.

    Preconditions, in order:
        1. signer is the mint authority, else Unauthorized
        2. account belongs to mint, else MintMismatch
        3. supply and balance stay within max_amount, else Overflow

    Returns:
        (mint change, account change)
    """
    checker.require(mint.authority, signer, "mint authority")
    if account.mint != mint.address:
        raise MintMismatch()
    new_supply = checked_add(mint.total_supply, amount, max_amount)
    new_amount = checked_add(account.amount, amount, max_amount)

    return (
        RecordChange(mint.address, mint, replace(mint, total_supply=new_supply)),
        RecordChange(account.address, account, replace(account, amount=new_amount)),
    )


def compute_transfer(
    source: AccountRecord,
    dest: AccountRecord,
    signer: Principal,
    amount: int,
    checker: AuthorizationChecker = DEFAULT_CHECKER,
    max_amount: int = U64_MAX,
) -> Tuple[RecordChange, ...]:
    """
    Move amount from source to dest. Total supply is untouched.

    Preconditions, in order:
        1. signer is the source owner, else Unauthorized
        2. source and dest share a mint, else MintMismatch
        3. source holds at least amount, else InsufficientFunds
        4. dest balance stays within max_amount, else Overflow

    A transfer to the same account passes checks 1-3 and leaves the
    balance as it was; it yields a single unchanged record.

    Returns:
        (source change, dest change), or (source change,) for a self-transfer
    """
    checker.require(source.owner, signer, "account owner")
    if source.mint != dest.mint:
        raise MintMismatch("Source and destination accounts belong to different mints")
    if source.amount < amount:
        raise InsufficientFunds(
            f"Sender has insufficient funds: balance {source.amount} < {amount}"
        )

    if source.address == dest.address:
        return (RecordChange(source.address, source, source),)

    new_dest_amount = checked_add(dest.amount, amount, max_amount)
    new_source_amount = checked_sub(source.amount, amount)

    return (
        RecordChange(source.address, source, replace(source, amount=new_source_amount)),
        RecordChange(dest.address, dest, replace(dest, amount=new_dest_amount)),
    )


def compute_burn(
    mint: MintRecord,
    account: AccountRecord,
    signer: Principal,
    amount: int,
    checker: AuthorizationChecker = DEFAULT_CHECKER,
) -> Tuple[RecordChange, RecordChange]:
    """
    Destroy amount tokens held in account.

    Preconditions, in order:
        1. signer is the account owner, else Unauthorized
        2. account belongs to mint, else MintMismatch
        3. account holds at least amount, else InsufficientFunds

    Returns:
        (mint change, account change)
    """
    checker.require(account.owner, signer, "account owner")
    if account.mint != mint.address:
        raise MintMismatch()
    if account.amount < amount:
        raise InsufficientFunds(
            f"Sender has insufficient funds: balance {account.amount} < {amount}"
        )

    new_amount = checked_sub(account.amount, amount)
    # Cannot underflow while supply equals the sum of balances
    new_supply = checked_sub(mint.total_supply, amount)

    return (
        RecordChange(mint.address, mint, replace(mint, total_supply=new_supply)),
        RecordChange(account.address, account, replace(account, amount=new_amount)),
    )
