"""
Actor -- the authenticated caller of a workflow operation.

Identity and session verification live outside the kernel.  They hand
every operation an ``Actor`` carrying the verified identity and exactly
one role.  The kernel never trusts an actor id supplied in a payload;
"requested by" and "reviewed by" are always taken from the Actor.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Roles recognised by the replenishment workflow."""

    WORKER = "worker"
    OWNER = "owner"


@dataclass(frozen=True)
class Actor:
    """An authenticated identity with a single role."""

    actor_id: UUID
    role: Role

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER

    @property
    def is_worker(self) -> bool:
        return self.role == Role.WORKER

    @classmethod
    def worker(cls, actor_id: UUID) -> Actor:
        return cls(actor_id=actor_id, role=Role.WORKER)

    @classmethod
    def owner(cls, actor_id: UUID) -> Actor:
        return cls(actor_id=actor_id, role=Role.OWNER)
