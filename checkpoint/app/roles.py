"""
roles.py - Role-based access control.

Roles:
  validator - side-chain validator; commits bunches, reads, proves, verifies
  relayer   - submits withdrawal claims; reads bunches, fetches proofs, verifies
  observer  - read-only; lists bunches and locates blocks

In production, role is determined by the client TLS certificate.
In stub/dev mode, pass X-Role header.
"""
from enum import Enum
from typing import Optional
from fastapi import Header, HTTPException


class Role(str, Enum):
    VALIDATOR = "validator"
    RELAYER   = "relayer"
    OBSERVER  = "observer"


PERMISSIONS: dict[Role, set[str]] = {
    Role.VALIDATOR: {"commit_bunch", "read_bunches", "locate", "prove_block",
                     "verify_proof", "read_health"},
    Role.RELAYER:   {"read_bunches", "locate", "prove_block", "verify_proof", "read_health"},
    Role.OBSERVER:  {"read_bunches", "locate", "read_health"},
}


def resolve_role(x_role: Optional[str]) -> Role:
    try:
        return Role(x_role.lower()) if x_role else Role.OBSERVER
    except ValueError:
        return Role.OBSERVER


def require(operation: str):
    def _dep(x_role: Optional[str] = Header(default=None, alias="X-Role")) -> Role:
        role = resolve_role(x_role)
        if operation not in PERMISSIONS.get(role, set()):
            raise HTTPException(403, detail={
                "error": "access_denied", "operation": operation, "role": role,
                "allowed_roles": [r for r, p in PERMISSIONS.items() if operation in p],
            })
        return role
    return _dep
