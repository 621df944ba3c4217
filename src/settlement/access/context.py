"""Caller identity attached to every engine call.

The identity service verifies credentials upstream; the engine only ever sees
the resolved ``{role, subject_id}`` pair and passes it explicitly instead of
reading ambient session state.
"""

from dataclasses import dataclass
from enum import Enum

from settlement.errors import Unauthorized


class Role(Enum):
    ADMIN = "admin"
    SELLER = "seller"
    BUYER = "buyer"


_ROLE_ALIASES = {
    "customer": Role.BUYER,
}


def parse_role(value) -> Role:
    """Resolve a role name, accepting ``customer`` as a synonym for buyer."""
    if isinstance(value, Role):
        return value
    name = (value or "").strip().lower()
    if name in _ROLE_ALIASES:
        return _ROLE_ALIASES[name]
    try:
        return Role(name)
    except ValueError:
        raise Unauthorized(f"Unrecognized role '{value}'") from None


@dataclass(frozen=True)
class CallerContext:
    role: Role
    subject_id: str

    @classmethod
    def of(cls, role, subject_id) -> "CallerContext":
        if not role or not subject_id:
            raise Unauthorized("Missing caller credential")
        return cls(role=parse_role(role), subject_id=str(subject_id))

    @classmethod
    def from_command(cls, command) -> "CallerContext":
        return cls.of(command.caller_role, command.caller_id)

    def as_command_fields(self) -> dict:
        return {"caller_role": self.role.value, "caller_id": self.subject_id}

    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def is_seller(self) -> bool:
        return self.role is Role.SELLER

    def is_buyer(self) -> bool:
        return self.role is Role.BUYER
