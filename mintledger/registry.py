"""
registry.py - Mint Registry

Creates and owns mint records. The registry is the source of truth for a
mint's total supply and decimals; issue and burn change supply through
record changes committed by the store, never by writing here directly.

1. compute_initialize() - Pure function building the creation change
2. MintRegistry.initialize() - Resolves the mint address and commits the mint
3. MintRegistry.get() / total_supply() / list_mints() - Read-only queries
"""

from __future__ import annotations
from typing import List

from .core import (
    Address, Principal, Instruction, OperationKind, Transaction,
    MintRecord, RecordChange, RecordView, AlreadyInitialized,
    initialize_instruction,
)
from .address import allocate_mint_address, mint_address_for_key
from .store import RecordStore


def compute_initialize(
    view: RecordView,
    address: Address,
    authority: Principal,
    decimals: int,
) -> RecordChange:
    """
    Build the creation change for a new mint.

    Args:
        view: Read-only record access (must hold address)
        address: Address the mint will live at
        authority: Principal allowed to issue; stored permanently
        decimals: Scaling exponent, stored verbatim

    Returns:
        RecordChange creating a MintRecord with total_supply = 0

    Raises:
        AlreadyInitialized: If a record already exists at address
    """
    if view.has_record(address):
        raise AlreadyInitialized(f"Mint already initialized at {address}")
    record = MintRecord(address=address, authority=authority, decimals=decimals, total_supply=0)
    return RecordChange(address, None, record)


class MintRegistry:
    """
    Mint creation and lookup over a RecordStore.

    Example:
        registry = MintRegistry(store)
        tx = registry.initialize(initialize_instruction(9, "alice"))
        mint = tx.created()[0]
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def initialize(self, instruction: Instruction) -> Transaction:
        """
        Create a mint for the instruction's signer.

        The mint address comes from the instruction's mint_key or nonce.
        With neither, the next nonce is allocated from the store and written
        into the logged instruction, so replaying the log lands every mint
        on the address it was first given.

        Returns:
            The committed Transaction (its single change creates the mint)

        Raises:
            AlreadyInitialized: If the resolved address is already occupied
        """
        if instruction.kind != OperationKind.INITIALIZE:
            raise ValueError(f"Expected initialize instruction, got {instruction.kind.value}")
        authority = instruction.signer
        params = instruction.params
        if "mint_key" in params:
            address = mint_address_for_key(params["mint_key"])
        elif "nonce" in params:
            address = allocate_mint_address(authority, params["nonce"])
        else:
            nonce = self.store.allocate_nonce()
            # An explicit nonce in an earlier instruction may have taken this one
            while self.store.has_record(allocate_mint_address(authority, nonce)):
                nonce = self.store.allocate_nonce()
            address = allocate_mint_address(authority, nonce)
            instruction = initialize_instruction(params["decimals"], authority, nonce=nonce)

        with self.store.session(instruction, [address]) as session:
            session.stage([
                compute_initialize(session, address, authority, params["decimals"])
            ])
        return session.transaction

    def get(self, mint: Address) -> MintRecord:
        """Return the mint record or raise RecordNotFound."""
        return self.store.get_mint(mint)

    def total_supply(self, mint: Address) -> int:
        return self.store.get_mint(mint).total_supply

    def list_mints(self) -> List[MintRecord]:
        return self.store.list_mints()
