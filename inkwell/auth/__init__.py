"""
Authentication and authorization.

- credentials: password hashing, token issuance and validation
- roles: the role hierarchy and the Role Authority
- gate: per-operation policies applied before repository calls
"""

from inkwell.auth.context import AuthContext, UserLookup
from inkwell.auth.credentials import CredentialEngine, hash_password, verify_password
from inkwell.auth.gate import POLICIES, AccessGate, Operation, Policy
from inkwell.auth.roles import ROLE_HIERARCHY, LOWEST_ROLE, Role, RoleAuthority

__all__ = [
    "AuthContext",
    "UserLookup",
    "CredentialEngine",
    "hash_password",
    "verify_password",
    "AccessGate",
    "Operation",
    "Policy",
    "POLICIES",
    "Role",
    "RoleAuthority",
    "ROLE_HIERARCHY",
    "LOWEST_ROLE",
]
