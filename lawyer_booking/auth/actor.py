import enum
from dataclasses import dataclass


class ActorRole(str, enum.Enum):
    CLIENT = 'client'
    PROFESSIONAL = 'professional'
    ADMIN = 'admin'


@dataclass(frozen=True)
class Actor:
    """An already authenticated caller, as asserted by the identity layer."""

    id: int
    role: ActorRole
