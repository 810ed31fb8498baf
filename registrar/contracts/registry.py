"""Deed registry signer-role contract - Beaker application.

Role-based access control for department signers (NOTARY, SURVEYOR, IVSL).
Membership is one box per (role, account):
``role:`` + role code (1 byte) + account public key (32 bytes).
The box value holds the round in which the role was granted.
"""

from beaker import Application, Authorize, unconditional_create_approval
from pyteal import (
    abi,
    And,
    Assert,
    BoxGet,
    BoxPut,
    Bytes,
    Concat,
    Expr,
    Extract,
    Global,
    Int,
    Itob,
    Log,
    Not,
    Seq,
)

ROLE_BOX_PREFIX = b"role:"
MIN_ROLE_CODE = 1
MAX_ROLE_CODE = 3

registry_app = Application(
    "DeedRegistryRoles",
    descr="Department signer roles for the land-deed registry",
).apply(unconditional_create_approval)


def _role_key(role: abi.Uint8, account: abi.Address) -> Expr:
    """Box key for a (role, account) pair."""
    return Concat(
        Bytes(ROLE_BOX_PREFIX),
        Extract(Itob(role.get()), Int(7), Int(1)),
        account.get(),
    )


@registry_app.external(authorize=Authorize.only_creator())
def add_signer(role: abi.Uint8, account: abi.Address) -> Expr:
    """Grant a signer role. Reverts on unknown role or existing grant."""
    existing = BoxGet(_role_key(role, account))
    return Seq(
        Assert(And(role.get() >= Int(MIN_ROLE_CODE), role.get() <= Int(MAX_ROLE_CODE))),
        existing,
        Assert(Not(existing.hasValue())),
        BoxPut(_role_key(role, account), Itob(Global.round())),
        Log(Concat(Bytes("SignerAdded:"), _role_key(role, account))),
    )


@registry_app.external(read_only=True)
def has_role(role: abi.Uint8, account: abi.Address, *, output: abi.Bool) -> Expr:
    """Whether ``account`` holds ``role``."""
    existing = BoxGet(_role_key(role, account))
    return Seq(
        existing,
        output.set(existing.hasValue()),
    )


def get_app() -> Application:
    """Get the registry roles Beaker application."""
    return registry_app
