"""Role-based capability checks shared by the settlement services.

Each service owns its own AccessPolicy; no service trusts another service's
view of who holds a role.
"""

import logging
import threading
from enum import Enum

from claim_settlement.exceptions import Unauthorized

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Roles a caller identity can hold."""

    AUTHORITY = "authority"
    REGISTRY = "registry"
    HANDLING_SERVICE = "handling_service"
    GARAGE_SERVICE = "garage_service"


class AccessPolicy:
    """Maps each role to at most one identity.

    Slots start empty and are bound at configuration time via grant().
    """

    def __init__(self, grants: dict[Role, str] | None = None):
        self._lock = threading.Lock()
        self._holders: dict[Role, str] = {}
        for role, identity in (grants or {}).items():
            self.grant(role, identity)

    def grant(self, role: Role, identity: str) -> None:
        """Bind role to identity, replacing any previous holder."""
        if not identity or not isinstance(identity, str):
            raise ValueError(f"Identity for role {role.value} must be a non-empty string")
        with self._lock:
            previous = self._holders.get(role)
            self._holders[role] = identity
        if previous and previous != identity:
            logger.info("Role %s moved from %s to %s", role.value, previous, identity)

    def revoke(self, role: Role) -> None:
        """Clear the role slot."""
        with self._lock:
            self._holders.pop(role, None)

    def holder(self, role: Role) -> str | None:
        """Identity currently holding role, or None if the slot is empty."""
        with self._lock:
            return self._holders.get(role)

    def verify(self, caller: str, role: Role) -> bool:
        """True if caller holds role. An empty slot matches nobody."""
        expected = self.holder(role)
        return expected is not None and caller == expected

    def require(self, caller: str, role: Role, action: str = "") -> None:
        """Raise Unauthorized unless caller holds role."""
        if not self.verify(caller, role):
            raise Unauthorized(
                f"{caller!r} is not permitted to {action or 'perform this action'}",
                details={"caller": caller, "required_role": role.value},
            )
