"""Role-based module access for feature-loader.

This module defines the boundary contract the orchestrator uses to decide
whether a principal may load a feature module, plus a default
implementation based on a linear role hierarchy.

Roles (lowest to highest):
- employee
- cashier
- accountant
- manager
- admin

Usage:
    from feature_loader.core.authorization import RoleHierarchyGate, check_module_access

    result = check_module_access("cashier", "manager")
    if not result.allowed:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, runtime_checkable

from feature_loader.core.registry import ModuleDescriptor, Principal
from feature_loader.core.resilience.models import ErrorKind, ModuleLoadingError

logger = logging.getLogger(__name__)


# =============================================================================
# Role Definitions
# =============================================================================


class Role(str, Enum):
    """Defined roles, in ascending order of privilege."""

    EMPLOYEE = "employee"
    CASHIER = "cashier"
    ACCOUNTANT = "accountant"
    MANAGER = "manager"
    ADMIN = "admin"


ROLE_RANKS: Dict[str, int] = {role.value: rank for rank, role in enumerate(Role)}


# =============================================================================
# Authorization Result
# =============================================================================


@dataclass
class AuthzResult:
    """Result of a module access check.

    Attributes:
        allowed: Whether the module may be loaded
        role: The principal's role that was checked
        required_role: The minimum role the module requires
        reason: Why access was denied (None when allowed)
    """

    allowed: bool
    role: str
    required_role: str
    reason: Optional[str] = None


def check_module_access(role: str, required_role: str) -> AuthzResult:
    """Check whether ``role`` meets the ``required_role`` minimum.

    Unknown roles on either side are denied (fail-closed).
    """
    role_rank = ROLE_RANKS.get(role)
    required_rank = ROLE_RANKS.get(required_role)

    if role_rank is None:
        _log_authorization_denial(role, required_role, reason="unknown_role")
        return AuthzResult(False, role, required_role, reason="unknown_role")
    if required_rank is None:
        _log_authorization_denial(role, required_role, reason="unknown_required_role")
        return AuthzResult(False, role, required_role, reason="unknown_required_role")
    if role_rank < required_rank:
        _log_authorization_denial(role, required_role, reason="insufficient_role")
        return AuthzResult(False, role, required_role, reason="insufficient_role")

    return AuthzResult(True, role, required_role)


def _log_authorization_denial(role: str, required_role: str, reason: str) -> None:
    """Emit structured warning for authorization denials."""
    logger.warning(
        "AUTHORIZATION_DENIED: role=%s required_role=%s reason=%s",
        role,
        required_role,
        reason,
    )


# =============================================================================
# Permission Gate
# =============================================================================


@runtime_checkable
class PermissionGate(Protocol):
    """Decides whether a principal may load a module.

    Implementations must not raise for a plain denial; they return False and
    describe the denial through :meth:`create_permission_error`.
    """

    async def validate_module_access(
        self, descriptor: ModuleDescriptor, principal: Principal
    ) -> bool: ...

    def create_permission_error(
        self, descriptor: ModuleDescriptor, principal: Principal
    ) -> ModuleLoadingError: ...


class RoleHierarchyGate:
    """PermissionGate that compares roles on the fixed hierarchy."""

    async def validate_module_access(
        self, descriptor: ModuleDescriptor, principal: Principal
    ) -> bool:
        return check_module_access(principal.role, descriptor.required_role).allowed

    def create_permission_error(
        self, descriptor: ModuleDescriptor, principal: Principal
    ) -> ModuleLoadingError:
        result = check_module_access(principal.role, descriptor.required_role)
        message = (
            f"{descriptor.name} requires {_display(descriptor.required_role)} access. "
            f"Your current {_display(principal.role)} role is insufficient. "
            "Please contact your administrator for a role upgrade."
        )
        return ModuleLoadingError.create(
            ErrorKind.PERMISSION_DENIED,
            message,
            descriptor.id,
            user_role=principal.role,
            context={
                "required_role": descriptor.required_role,
                "reason": result.reason or "insufficient_role",
            },
        )


def _display(role: str) -> str:
    return role.replace("_", " ").title()
