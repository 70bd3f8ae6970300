"""
program.py - Token Program

Entry point that hosts submit instructions to. Each instruction is routed
to a handler function that:
1. Opens a store session over every address it touches
2. Loads the records and runs the pure operation (operations.py / registry.py)
3. Stages the resulting changes; the session commits them on exit

Handlers are plain functions in a dict keyed by OperationKind, not classes.

Also exposes the read-only queries (balance, mint info), the supply audit,
clone() and replay().
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from .core import (
    Address, Principal, Instruction, OperationKind, Transaction,
    MintRecord, AccountRecord,
    LedgerError, RecordNotFound, U64_MAX,
    initialize_instruction, create_token_account_instruction,
    issue_instruction, transfer_instruction, burn_instruction,
)
from .address import find_token_account_address
from .auth import AuthorizationChecker, DEFAULT_CHECKER
from .operations import (
    compute_create_token_account, compute_issue, compute_transfer, compute_burn,
)
from .registry import MintRegistry
from .store import RecordStore


# ============================================================================
# HANDLER FUNCTIONS
# ============================================================================

def handle_initialize(program: TokenProgram, instruction: Instruction) -> Transaction:
    """Create a mint."""
    return program.registry.initialize(instruction)


def handle_create_token_account(program: TokenProgram, instruction: Instruction) -> Transaction:
    """Provision the owner's account at its derived address."""
    mint = instruction.params["mint"]
    owner = instruction.params["owner"]
    address = find_token_account_address(owner, mint)
    with program.store.session(instruction, [mint, address]) as session:
        session.stage([compute_create_token_account(session, mint, owner)])
    return session.transaction


def handle_issue(program: TokenProgram, instruction: Instruction) -> Transaction:
    """Issue new supply into an account."""
    params = instruction.params
    with program.store.session(instruction, instruction.addresses()) as session:
        mint = session.get_mint(params["mint"])
        account = session.get_account(params["account"])
        session.stage(compute_issue(
            mint, account, instruction.signer, params["amount"],
            checker=program.checker, max_amount=program.max_amount,
        ))
    return session.transaction


def handle_transfer(program: TokenProgram, instruction: Instruction) -> Transaction:
    """Move balance between two accounts of the same mint."""
    params = instruction.params
    with program.store.session(instruction, instruction.addresses()) as session:
        source = session.get_account(params["source"])
        dest = session.get_account(params["dest"])
        session.stage(compute_transfer(
            source, dest, instruction.signer, params["amount"],
            checker=program.checker, max_amount=program.max_amount,
        ))
    return session.transaction


def handle_burn(program: TokenProgram, instruction: Instruction) -> Transaction:
    """Destroy part of an account's balance."""
    params = instruction.params
    with program.store.session(instruction, instruction.addresses()) as session:
        mint = session.get_mint(params["mint"])
        account = session.get_account(params["account"])
        session.stage(compute_burn(
            mint, account, instruction.signer, params["amount"],
            checker=program.checker,
        ))
    return session.transaction


Handler = Callable[['TokenProgram', Instruction], Transaction]

DEFAULT_HANDLERS: Dict[OperationKind, Handler] = {
    OperationKind.INITIALIZE: handle_initialize,
    OperationKind.CREATE_TOKEN_ACCOUNT: handle_create_token_account,
    OperationKind.ISSUE: handle_issue,
    OperationKind.TRANSFER: handle_transfer,
    OperationKind.BURN: handle_burn,
}


def describe(tx: Transaction) -> str:
    """One-line summary of a committed transaction."""
    ix = tx.instruction
    params = ix.params
    if ix.kind == OperationKind.INITIALIZE:
        mint = tx.changes[0].new
        return (
            f"Token mint initialized! Authority: {mint.authority}. "
            f"Decimals: {mint.decimals}. Address: {mint.address}"
        )
    if ix.kind == OperationKind.CREATE_TOKEN_ACCOUNT:
        account = tx.created()[0]
        return f"Token account created for owner: {account.owner} ({account.address})"
    if ix.kind == OperationKind.ISSUE:
        account = tx.new_record(params["account"])
        return f"Minted {params['amount']} tokens to {account.owner}"
    if ix.kind == OperationKind.TRANSFER:
        source = tx.new_record(params["source"])
        dest = tx.new_record(params["dest"])
        return f"Transferred {params['amount']} tokens from {source.owner} to {dest.owner}"
    account = tx.new_record(params["account"])
    return f"Burned {params['amount']} tokens from {account.owner}"


# ============================================================================
# PROGRAM
# ============================================================================

class TokenProgram:
    """
    Fungible-token ledger: mints, per-owner accounts, issue/transfer/burn.

    Every operation is atomic: all of its checks run before anything is
    written, and the first failed check raises its error with no effect.

    Example:
        program = TokenProgram("main")
        mint = program.initialize(9, "treasury")
        alice = program.create_token_account(mint.address, "alice")
        program.issue(mint.address, alice.address, "treasury", 1000)
        program.balance("alice", mint.address)  # 1000
    """

    def __init__(
        self,
        name: str,
        verbose: bool = True,
        test_mode: bool = False,
        max_amount: int = U64_MAX,
        checker: Optional[AuthorizationChecker] = None,
    ):
        """
        Create a program with an empty record store.

        Args:
            name: Program identifier (used in execution ids)
            verbose: Print a line per applied/rejected instruction (default: True)
            test_mode: Enable set_account_amount() (default: False)
            max_amount: Upper bound for balances and supply (default: u64 max)
            checker: Signer authorization policy (default: plain comparison)
        """
        if isinstance(max_amount, bool) or not isinstance(max_amount, int):
            raise ValueError(f"max_amount must be int, got {type(max_amount).__name__}")
        if not 0 < max_amount <= U64_MAX:
            raise ValueError(f"max_amount must be in (0, {U64_MAX}], got {max_amount}")
        self.name = name
        self.verbose = verbose
        self._test_mode = test_mode
        self.max_amount = max_amount
        self.checker = checker or DEFAULT_CHECKER
        self.store = RecordStore(name, test_mode=test_mode)
        self.registry = MintRegistry(self.store)
        self.handlers: Dict[OperationKind, Handler] = dict(DEFAULT_HANDLERS)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def execute(self, instruction: Instruction) -> Transaction:
        """
        Execute an instruction atomically.

        Returns:
            The committed Transaction

        Raises:
            LedgerError: The first failed precondition (Unauthorized,
                MintMismatch, InsufficientFunds, Overflow,
                AlreadyInitialized, RecordNotFound). Nothing is written.
        """
        handler = self.handlers[instruction.kind]
        try:
            tx = handler(self, instruction)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED {instruction.kind.value}: {e.kind}: {e}")
            raise
        if self.verbose:
            print(f"✓ {instruction.kind.value}: {describe(tx)}")
        return tx

    def initialize(
        self, decimals: int, authority: Principal, mint_key: Optional[Address] = None
    ) -> MintRecord:
        """
        Create a mint with zero supply; authority may issue into it.

        A mint_key pins the mint to mint_address_for_key(mint_key); without
        one a fresh address is allocated.
        """
        tx = self.execute(initialize_instruction(decimals, authority, mint_key))
        return tx.changes[0].new

    def create_token_account(
        self, mint: Address, owner: Principal, payer: Optional[Principal] = None
    ) -> AccountRecord:
        """Create owner's zero-balance account for mint (payer defaults to owner)."""
        tx = self.execute(create_token_account_instruction(mint, owner, payer))
        return tx.created()[0]

    def issue(self, mint: Address, account: Address, signer: Principal, amount: int) -> None:
        self.execute(issue_instruction(mint, account, signer, amount))

    def transfer(self, source: Address, dest: Address, signer: Principal, amount: int) -> None:
        self.execute(transfer_instruction(source, dest, signer, amount))

    def burn(self, mint: Address, account: Address, signer: Principal, amount: int) -> None:
        self.execute(burn_instruction(mint, account, signer, amount))

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def get_mint(self, mint: Address) -> MintRecord:
        return self.registry.get(mint)

    def get_account(self, account: Address) -> AccountRecord:
        return self.store.get_account(account)

    def find_token_account(self, owner: Principal, mint: Address) -> Address:
        """Derived address of owner's account for mint (whether or not it exists)."""
        return find_token_account_address(owner, mint)

    def balance(self, owner: Principal, mint: Address) -> int:
        """
        Balance held by owner for mint.

        Returns 0 if the owner has no account yet.

        Raises:
            RecordNotFound: If the mint does not exist
        """
        self.registry.get(mint)
        try:
            return self.store.get_account(find_token_account_address(owner, mint)).amount
        except RecordNotFound:
            return 0

    def mint_info(self, mint: Address) -> Dict[str, Any]:
        """Summary of a mint: authority, decimals, supply and holder count."""
        record = self.registry.get(mint)
        accounts = self.store.accounts_for_mint(mint)
        return {
            'address': record.address,
            'authority': record.authority,
            'decimals': record.decimals,
            'total_supply': record.total_supply,
            'accounts': len(accounts),
            'holders': sum(1 for a in accounts if a.amount > 0),
        }

    def accounts_for_mint(self, mint: Address) -> List[AccountRecord]:
        return self.store.accounts_for_mint(mint)

    @property
    def transaction_log(self) -> List[Transaction]:
        return self.store.transaction_log

    def verify_supply(self) -> Dict[str, Any]:
        """See RecordStore.verify_supply()."""
        return self.store.verify_supply()

    # ========================================================================
    # TESTING AND AUDIT
    # ========================================================================

    def set_account_amount(self, account: Address, amount: int) -> None:
        """Overwrite a balance directly (test mode only, not logged)."""
        self.store.set_account_amount(account, amount)

    def _spawn(self, name: str) -> TokenProgram:
        return TokenProgram(
            name,
            verbose=self.verbose,
            test_mode=self._test_mode,
            max_amount=self.max_amount,
            checker=self.checker,
        )

    def clone(self) -> TokenProgram:
        """
        Create an independent copy of this program.

        Modifications to the clone do not affect the original, and vice versa.
        """
        cloned = self._spawn(self.name)
        cloned.store = self.store.clone()
        cloned.registry = MintRegistry(cloned.store)
        cloned.handlers = dict(self.handlers)
        return cloned

    def replay(self) -> TokenProgram:
        """
        Create a new program by re-executing the transaction log.

        Logged initialize instructions carry the mint key or nonce that
        placed each mint, so every record lands at its original address.
        The nonce counter is carried over, so mints allocated after the
        replay get the addresses they would get here. Balances set through
        set_account_amount() are NOT replayed because they are not part of
        the log.

        Raises:
            LedgerError: If any logged instruction is rejected on replay
        """
        replayed = self._spawn(f"{self.name}_replayed")
        for tx in list(self.store.transaction_log):
            try:
                replayed.execute(tx.instruction)
            except LedgerError as e:
                raise LedgerError(f"Replay failed at {tx.exec_id}: {e}") from e
        replayed.store.advance_nonce(self.store.next_nonce)
        return replayed
