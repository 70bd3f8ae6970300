"""
Concurrency Conformance Tests

INVARIANT: Concurrent operations behave as some serial order of them.

    ∀ operations O1, O2 touching a common record:
        O1 and O2 never interleave; each sees the other's full effect or none

Writers lock every record they touch, in address order, for the whole
operation.
"""

import threading

from mintledger import TokenProgram, LedgerError, InsufficientFunds, AlreadyInitialized


AUTHORITY = "treasury"


def _run_threads(target, args_list):
    errors = []
    barrier = threading.Barrier(len(args_list))

    def worker(*args):
        barrier.wait()
        try:
            target(*args)
        except LedgerError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert not any(t.is_alive() for t in threads)
    return errors


class TestConcurrentWriters:

    def test_competing_spends_never_overdraw(self):
        """Twenty spends of 10 against a balance of 100: exactly ten succeed."""
        program = TokenProgram("race", verbose=False)
        mint = program.initialize(9, AUTHORITY)
        alice = program.create_token_account(mint.address, "alice")
        bob = program.create_token_account(mint.address, "bob")
        program.issue(mint.address, alice.address, AUTHORITY, 100)

        errors = _run_threads(
            program.transfer,
            [(alice.address, bob.address, "alice", 10)] * 20,
        )

        assert len(errors) == 10
        assert all(isinstance(e, InsufficientFunds) for e in errors)
        assert program.balance("alice", mint.address) == 0
        assert program.balance("bob", mint.address) == 100
        assert program.verify_supply()['valid']

    def test_opposite_transfers_do_not_deadlock(self):
        """A->B and B->A at once: sorted lock order prevents deadlock."""
        program = TokenProgram("cross", verbose=False)
        mint = program.initialize(9, AUTHORITY)
        alice = program.create_token_account(mint.address, "alice")
        bob = program.create_token_account(mint.address, "bob")
        program.issue(mint.address, alice.address, AUTHORITY, 1000)
        program.issue(mint.address, bob.address, AUTHORITY, 1000)

        args = []
        for _ in range(25):
            args.append((alice.address, bob.address, "alice", 1))
            args.append((bob.address, alice.address, "bob", 1))
        errors = _run_threads(program.transfer, args)

        assert errors == []
        assert program.balance("alice", mint.address) == 1000
        assert program.balance("bob", mint.address) == 1000

    def test_concurrent_issue_and_burn(self):
        program = TokenProgram("supply", verbose=False)
        mint = program.initialize(9, AUTHORITY)
        owners = [f"holder_{i}" for i in range(8)]
        accounts = [program.create_token_account(mint.address, o) for o in owners]
        for account in accounts:
            program.issue(mint.address, account.address, AUTHORITY, 50)

        def issue_then_burn(account, owner):
            program.issue(mint.address, account.address, AUTHORITY, 5)
            program.burn(mint.address, account.address, owner, 20)

        errors = _run_threads(issue_then_burn, list(zip(accounts, owners)))

        assert errors == []
        assert program.get_mint(mint.address).total_supply == 8 * 35
        assert program.verify_supply()['valid']

    def test_racing_account_creation(self):
        """Only one of several simultaneous creations for an owner wins."""
        program = TokenProgram("create", verbose=False)
        mint = program.initialize(9, AUTHORITY)

        errors = _run_threads(
            program.create_token_account,
            [(mint.address, "alice", f"payer_{i}") for i in range(10)],
        )

        assert len(errors) == 9
        assert all(isinstance(e, AlreadyInitialized) for e in errors)
        assert len(program.accounts_for_mint(mint.address)) == 1

    def test_concurrent_mints_get_distinct_addresses(self):
        program = TokenProgram("mints", verbose=False)
        errors = _run_threads(program.initialize, [(9, AUTHORITY)] * 10)
        assert errors == []
        assert len({m.address for m in program.store.list_mints()}) == 10

    def test_log_sequence_has_no_gaps(self):
        program = TokenProgram("log", verbose=False)
        mint = program.initialize(9, AUTHORITY)
        alice = program.create_token_account(mint.address, "alice")
        _run_threads(
            program.issue,
            [(mint.address, alice.address, AUTHORITY, 1)] * 16,
        )
        sequence = [tx.sequence_number for tx in program.transaction_log]
        assert sequence == list(range(len(sequence)))
        assert program.balance("alice", mint.address) == 16


class TestConsistentReads:
    """Audits taken while writers run see one committed moment."""

    def _busy_program(self):
        program = TokenProgram("audit", verbose=False)
        mint = program.initialize(9, AUTHORITY)
        alice = program.create_token_account(mint.address, "alice")
        bob = program.create_token_account(mint.address, "bob")
        program.issue(mint.address, alice.address, AUTHORITY, 1000)
        program.issue(mint.address, bob.address, AUTHORITY, 1000)
        return program, mint, alice, bob

    def _churn(self, program, mint, alice, bob, stop):
        # Every round trip returns what it took, so no balance can run dry
        def churn(first, second, first_owner, second_owner):
            while not stop.is_set():
                program.transfer(first.address, second.address, first_owner, 1)
                program.issue(mint.address, second.address, AUTHORITY, 1)
                program.burn(mint.address, second.address, second_owner, 1)
                program.transfer(second.address, first.address, second_owner, 1)

        threads = [
            threading.Thread(target=churn, args=(alice, bob, "alice", "bob")),
            threading.Thread(target=churn, args=(bob, alice, "bob", "alice")),
        ]
        for t in threads:
            t.start()
        return threads

    def _join(self, threads, stop):
        stop.set()
        for t in threads:
            t.join(timeout=30)
        assert not any(t.is_alive() for t in threads)

    def test_verify_supply_during_transfers(self):
        program, mint, alice, bob = self._busy_program()
        stop = threading.Event()
        threads = self._churn(program, mint, alice, bob, stop)
        try:
            results = [program.verify_supply() for _ in range(3000)]
        finally:
            self._join(threads, stop)

        assert all(r['valid'] for r in results), \
            next(r['discrepancies'] for r in results if not r['valid'])
        assert program.verify_supply()['valid']

    def test_clone_during_transfers(self):
        program, mint, alice, bob = self._busy_program()
        stop = threading.Event()
        threads = self._churn(program, mint, alice, bob, stop)
        try:
            clones = [program.clone() for _ in range(50)]
        finally:
            self._join(threads, stop)

        for clone in clones:
            assert clone.verify_supply()['valid']
            # Records and log of a clone describe the same moment
            assert clone.replay().store._records == clone.store._records

    def test_replay_after_concurrent_mints(self):
        program = TokenProgram("mints", verbose=False)
        errors = _run_threads(program.initialize, [(9, f"issuer_{i % 3}") for i in range(12)])
        assert errors == []
        replayed = program.replay()
        assert replayed.store._records == program.store._records
