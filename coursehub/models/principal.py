from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated bearer token.

    Handed explicitly to every core operation; nothing reads the current
    learner from ambient state. ``user_id`` is opaque to this service,
    it is issued and verified by the external identity provider.
    """

    user_id: str
    roles: frozenset[str]

    @property
    def learner_id(self) -> str:
        return self.user_id

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles
