"""
auth.py - Signer authorization

The host environment authenticates callers before a request reaches the
ledger. What remains here is the comparison between the principal a record
requires (a mint's authority, an account's owner) and the principal asserted
as signer.

An optional authenticate capability can be injected for hosts that want the
ledger to re-confirm a signer; the checker never verifies signatures itself.
"""

from __future__ import annotations
from typing import Callable, Optional

from .core import Principal, Unauthorized


# Host-provided predicate: True if the principal has been authenticated.
Authenticator = Callable[[Principal], bool]


class AuthorizationChecker:
    """
    Stateless principal comparison.

    Example:
        checker = AuthorizationChecker()
        checker.authorize("alice", "alice")    # True
        checker.require("alice", "bob", "owner")  # raises Unauthorized
    """

    def __init__(self, authenticate: Optional[Authenticator] = None):
        self.authenticate = authenticate

    def authorize(self, required: Principal, asserted: Principal) -> bool:
        """Return True if asserted may act for required."""
        if asserted != required:
            return False
        if self.authenticate is not None:
            return bool(self.authenticate(asserted))
        return True

    def require(self, required: Principal, asserted: Principal, role: str) -> None:
        """
        Raise Unauthorized unless asserted may act for required.

        Args:
            required: Principal stored on the record
            asserted: Principal that signed the request
            role: Name of the required principal, used in the error message
        """
        if not self.authorize(required, asserted):
            raise Unauthorized(f"{role} {required} must sign; signer was {asserted}")


DEFAULT_CHECKER = AuthorizationChecker()
