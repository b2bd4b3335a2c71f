"""
Authorization gate.

A user's effective capability set is the union of the permissions carried by
each of their roles. Matching is exact ``(module, action)`` membership: no
wildcards, no hierarchy. The set is rebuilt on every call because roles and
permissions are reference data that administrators may change between two
requests.
"""

from __future__ import annotations

from collections.abc import Iterable

from assistflow.domain.models import Permission, User


def _coerce(capability: Permission | str) -> Permission:
    if isinstance(capability, Permission):
        return capability
    return Permission.parse(capability)


class AuthorizationGate:
    """Pure permission predicate over a loaded ``User``."""

    def effective_capabilities(self, user: User) -> frozenset[Permission]:
        granted: set[Permission] = set()
        for role in user.roles:
            granted.update(role.permissions)
        return frozenset(granted)

    def authorize(self, user: User, capability: Permission | str) -> bool:
        return _coerce(capability) in self.effective_capabilities(user)

    def authorize_any(self, user: User, capabilities: Iterable[Permission | str]) -> bool:
        effective = self.effective_capabilities(user)
        return any(_coerce(capability) in effective for capability in capabilities)
