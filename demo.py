#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Token Ledger Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation     - The empty program, a mint, token accounts
  4-6:  Core Mechanics - Issue, transfer, burn
  7-8:  Safety         - Rejections leave everything untouched
  9-10: Audit          - Supply verification, the log and replay

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from mintledger import (
    TokenProgram, LedgerError, find_token_account_address,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    authority: str = "treasury"
    decimals: int = 9
    initial_issue: int = 1000
    transfer_amount: int = 300
    burn_amount: int = 100


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_balances(program: TokenProgram, mint: str, owners):
    for owner in owners:
        print(f"  {owner:<10} {program.balance(owner, mint):>8}")
    print(f"  {'supply':<10} {program.get_mint(mint).total_supply:>8}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_program():
    step_header(1, "The Empty Program",
        "A program starts with no mints, no accounts and an empty log.")

    print(">>> program = TokenProgram('tutorial')")
    program = TokenProgram("tutorial", verbose=True)
    print(f"Transaction log: {len(program.transaction_log)} entries")
    return program


def step_02_initialize(program: TokenProgram):
    step_header(2, "Create a Mint",
        "A mint records the authority, the decimals and the total supply.")

    print(f">>> mint = program.initialize({CONFIG.decimals}, '{CONFIG.authority}')")
    mint = program.initialize(CONFIG.decimals, CONFIG.authority)

    section_header("Mint Info")
    for key, value in program.mint_info(mint.address).items():
        print(f"  {key:<13} {value}")
    return mint


def step_03_accounts(program: TokenProgram, mint):
    step_header(3, "Token Accounts",
        "Each owner gets one account per mint, at an address derived from both.")

    alice = program.create_token_account(mint.address, "alice")
    program.create_token_account(mint.address, "bob", payer=CONFIG.authority)

    section_header("Deterministic Addresses")
    print(f"  alice's account:  {alice.address}")
    print(f"  derived again:    {find_token_account_address('alice', mint.address)}")

    section_header("A Second Account for alice?")
    try:
        program.create_token_account(mint.address, "alice")
    except LedgerError as e:
        print(f"  Rejected as expected ({e.kind})")


# ============================================================================
# PHASE 2: CORE MECHANICS (Steps 4-6)
# ============================================================================

def step_04_issue(program: TokenProgram, mint):
    step_header(4, "Issue",
        "Only the mint authority can create supply.")
    alice = program.find_token_account("alice", mint.address)
    program.issue(mint.address, alice, CONFIG.authority, CONFIG.initial_issue)
    show_balances(program, mint.address, ["alice", "bob"])


def step_05_transfer(program: TokenProgram, mint):
    step_header(5, "Transfer",
        "The source account's owner moves tokens; supply does not change.")
    alice = program.find_token_account("alice", mint.address)
    bob = program.find_token_account("bob", mint.address)
    program.transfer(alice, bob, "alice", CONFIG.transfer_amount)
    show_balances(program, mint.address, ["alice", "bob"])


def step_06_burn(program: TokenProgram, mint):
    step_header(6, "Burn",
        "An owner destroys tokens from their own account; supply shrinks.")
    bob = program.find_token_account("bob", mint.address)
    program.burn(mint.address, bob, "bob", CONFIG.burn_amount)
    show_balances(program, mint.address, ["alice", "bob"])


# ============================================================================
# PHASE 3: SAFETY (Steps 7-8)
# ============================================================================

def step_07_unauthorized(program: TokenProgram, mint):
    step_header(7, "Signer Checks",
        "The wrong signer is refused before anything is written.")
    alice = program.find_token_account("alice", mint.address)
    bob = program.find_token_account("bob", mint.address)
    for description, call in [
        ("bob issues", lambda: program.issue(mint.address, bob, "bob", 10)),
        ("treasury moves alice's tokens", lambda: program.transfer(alice, bob, CONFIG.authority, 10)),
        ("treasury burns bob's tokens", lambda: program.burn(mint.address, bob, CONFIG.authority, 10)),
    ]:
        print(f"\n  {description}:")
        try:
            call()
        except LedgerError:
            pass


def step_08_insufficient(program: TokenProgram, mint):
    step_header(8, "Atomicity",
        "A failed transfer changes neither side.")
    alice = program.find_token_account("alice", mint.address)
    bob = program.find_token_account("bob", mint.address)
    balance = program.balance("alice", mint.address)
    try:
        program.transfer(alice, bob, "alice", balance + 1)
    except LedgerError:
        pass
    show_balances(program, mint.address, ["alice", "bob"])


# ============================================================================
# PHASE 4: AUDIT (Steps 9-10)
# ============================================================================

def step_09_verify(program: TokenProgram):
    step_header(9, "Supply Verification",
        "Total supply always equals the sum of balances.")
    result = program.verify_supply()
    print(f"  valid:    {result['valid']}")
    print(f"  supplies: {result['supplies']}")


def step_10_replay(program: TokenProgram, mint):
    step_header(10, "Log and Replay",
        "The log alone rebuilds every record.")
    for tx in program.transaction_log:
        print(f"  {tx}")
    program.verbose = False
    replayed = program.replay()
    same = replayed.store._records == program.store._records
    print(f"\n  Replayed program matches original: {same}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       MINTLEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    program = step_01_empty_program()
    wait_for_enter()
    mint = step_02_initialize(program)
    wait_for_enter()
    step_03_accounts(program, mint)
    wait_for_enter()

    step_04_issue(program, mint)
    wait_for_enter()
    step_05_transfer(program, mint)
    wait_for_enter()
    step_06_burn(program, mint)
    wait_for_enter()

    step_07_unauthorized(program, mint)
    wait_for_enter()
    step_08_insufficient(program, mint)
    wait_for_enter()

    step_09_verify(program)
    wait_for_enter()
    step_10_replay(program, mint)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See mintledger/operations.py for the issue/transfer/burn rules
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
