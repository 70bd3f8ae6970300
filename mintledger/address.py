"""
address.py - Deterministic record addressing

Every stored record lives at an address computed from stable inputs:
1. derive_address() - content-derived address for (namespace, owner, mint)
2. find_token_account_address() - the per-owner token account for a mint
3. allocate_mint_address() - fresh mint address from (authority, nonce)
4. mint_address_for_key() - mint address for a caller-chosen mint key

Addresses are SHA-256 digests over length-prefixed UTF-8 parts. Length
prefixing keeps the encoding injective: ("ab", "c") and ("a", "bc") hash
different byte strings, and hashes over a different number of parts never
share a preimage.

Mint addresses are always hashed under MINT_NAMESPACE and account addresses
under TOKEN_NAMESPACE, so the two kinds of record can never collide.
"""

from __future__ import annotations
import hashlib

from .core import (
    Address, Principal, TOKEN_NAMESPACE, MINT_NAMESPACE,
    ADDRESS_LENGTH, is_valid_address,
)


def _hash_parts(*parts: str) -> Address:
    digest = hashlib.sha256()
    for part in parts:
        if not isinstance(part, str):
            raise ValueError(f"Address seed must be str, got {type(part).__name__}")
        encoded = part.encode("utf-8")
        digest.update(len(encoded).to_bytes(4, "big"))
        digest.update(encoded)
    return digest.hexdigest()


def derive_address(namespace: str, owner: Principal, mint: Address) -> Address:
    """
    Compute the storage address for (namespace, owner, mint).

    Pure and deterministic: the same inputs always give the same address,
    and distinct (owner, mint) pairs under a namespace give distinct ones.

    Args:
        namespace: Tag separating address families (e.g. "token")
        owner: Principal owning the record
        mint: Address of the mint the record belongs to

    Returns:
        64-character lowercase hex address

    Raises:
        ValueError: If any input is empty
    """
    if not namespace:
        raise ValueError("namespace cannot be empty")
    if not owner:
        raise ValueError("owner cannot be empty")
    if not mint:
        raise ValueError("mint cannot be empty")
    return _hash_parts(namespace, owner, mint)


def find_token_account_address(owner: Principal, mint: Address) -> Address:
    """Address of owner's token account for mint."""
    return derive_address(TOKEN_NAMESPACE, owner, mint)


def allocate_mint_address(authority: Principal, nonce: int) -> Address:
    """
    Fresh mint address for authority.

    The nonce is issued by the record store, so successive calls never
    repeat and a replay of the same history allocates the same addresses.
    """
    if nonce < 0:
        raise ValueError(f"nonce must be non-negative, got {nonce}")
    return _hash_parts(MINT_NAMESPACE, authority, str(nonce))


def mint_address_for_key(mint_key: Address) -> Address:
    """
    Mint address for a caller-chosen mint key.

    The key plays the part of a mint keypair's public key: the same key
    always yields the same mint, and the result lies in the mint address
    family, never on a token account address.

    Raises:
        ValueError: If mint_key is not a 64-character lowercase hex string
    """
    if not is_valid_address(mint_key):
        raise ValueError(f"mint key must be {ADDRESS_LENGTH} lowercase hex characters, got {mint_key!r}")
    return _hash_parts(MINT_NAMESPACE, mint_key)
