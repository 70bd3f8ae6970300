"""
conftest.py - Shared pytest fixtures for token ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Programs (empty, with a mint, with funded accounts)
- A FakeView for the pure operation functions
"""

import pytest

from mintledger import TokenProgram, MintRecord, AccountRecord

from tests.fake_view import FakeView


AUTHORITY = "treasury"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def program():
    """Fresh program with no records."""
    return TokenProgram("test", verbose=False, test_mode=True)


@pytest.fixture
def mint(program) -> MintRecord:
    """A 9-decimal mint whose authority is 'treasury'."""
    return program.initialize(9, AUTHORITY)


@pytest.fixture
def alice(program, mint) -> AccountRecord:
    """Alice's empty account for the fixture mint."""
    return program.create_token_account(mint.address, "alice")


@pytest.fixture
def bob(program, mint) -> AccountRecord:
    """Bob's empty account for the fixture mint."""
    return program.create_token_account(mint.address, "bob")


@pytest.fixture
def funded(program, mint, alice, bob):
    """Alice holds 1000 issued tokens; bob holds none."""
    program.issue(mint.address, alice.address, AUTHORITY, 1000)
    return program, mint, alice, bob


@pytest.fixture
def other_mint(program) -> MintRecord:
    """A second mint with a different authority."""
    return program.initialize(6, "other_authority")


@pytest.fixture
def empty_view():
    """FakeView holding no records."""
    return FakeView()
