# Overview: Explicit identity attributed to every mutating operation.

from __future__ import annotations

from dataclasses import dataclass

SOURCE_SYSTEM = "system"
SOURCE_ADMIN = "admin"
SOURCE_API = "api"
VALID_SOURCES = {SOURCE_SYSTEM, SOURCE_ADMIN, SOURCE_API}


@dataclass(frozen=True)
class Actor:
    """
    Who performed an action, for ledger and audit attribution.

    Passed explicitly into every state-machine, ledger and alert operation;
    never recovered from request globals.
    """
    id: int | None
    name: str
    email: str | None = None
    source: str = SOURCE_ADMIN

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, name="system", email=None, source=SOURCE_SYSTEM)

    @classmethod
    def from_admin(cls, admin) -> "Actor":
        return cls(id=admin.id, name=admin.name, email=admin.email, source=SOURCE_ADMIN)

    @property
    def is_system(self) -> bool:
        return self.source == SOURCE_SYSTEM

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "source": self.source}
