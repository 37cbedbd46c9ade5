"""User access manager: tenant resolution and access-grant checks."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from observability_objects.config import ADMIN_ACCESS_ALL, ObservabilityConfig
from observability_objects.envelope import DEFAULT_TENANT
from observability_objects.errors import ForbiddenError

USER_TAG = "User:"
ROLE_TAG = "Role:"
BACKEND_ROLE_TAG = "BERole:"
ALL_ACCESS_ROLE = "all_access"
PRIVATE_TENANT = "__user__"


@dataclass(frozen=True)
class User:
    """An authenticated caller as resolved by the security layer."""

    name: str
    backend_roles: tuple[str, ...] = ()
    roles: tuple[str, ...] = ()
    requested_tenant: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "backend_roles", tuple(self.backend_roles))
        object.__setattr__(self, "roles", tuple(self.roles))


class UserInfoProvider(Protocol):
    """Resolves the caller of a request; None means a system caller with no restrictions."""

    def __call__(self, request: Any) -> User | None: ...


@dataclass
class UserAccessManager:
    """Decides tenant and access grants for a caller.

    A ``None`` user is an internal/system caller and is never restricted.
    """

    config: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def validate_user(self, user: User | None) -> None:
        if user is not None and user.requested_tenant == PRIVATE_TENANT and not user.name:
            raise ForbiddenError("User name must be provided for private tenant access")
        if self.config.filter_by_backend_roles:
            if user is None:
                raise ForbiddenError("Filter-by-backend-roles enabled and user info not present")
            if not user.backend_roles:
                raise ForbiddenError(
                    "User doesn't have backend roles configured. Contact administrator."
                )

    def get_user_tenant(self, user: User | None) -> str:
        if user is None or user.requested_tenant is None:
            return DEFAULT_TENANT
        return user.requested_tenant

    def get_all_access_info(self, user: User | None) -> list[str]:
        """Every grant the user holds; stamped on objects they create or update."""
        if user is None:
            return []
        return (
            [f"{USER_TAG}{user.name}"]
            + [f"{ROLE_TAG}{role}" for role in user.roles]
            + [f"{BACKEND_ROLE_TAG}{role}" for role in user.backend_roles]
        )

    def get_search_access_info(self, user: User | None) -> list[str]:
        """Grants used to filter list queries; empty means no access filtering."""
        if user is None:
            return []
        if user.requested_tenant == PRIVATE_TENANT:
            return [f"{USER_TAG}{user.name}"]
        if self._can_admin_view_all(user):
            return []
        if self.config.filter_by_backend_roles:
            return [f"{BACKEND_ROLE_TAG}{role}" for role in user.backend_roles]
        return []

    def does_user_have_access(self, user: User | None, tenant: str, access: Iterable[str]) -> bool:
        if user is None:
            return True
        if self.get_user_tenant(user) != tenant:
            return False
        if self._can_admin_view_all(user):
            return True
        grants = set(access)
        if user.requested_tenant == PRIVATE_TENANT:
            return f"{USER_TAG}{user.name}" in grants
        if self.config.filter_by_backend_roles:
            return any(f"{BACKEND_ROLE_TAG}{role}" in grants for role in user.backend_roles)
        return True

    def has_all_info_access(self, user: User | None) -> bool:
        """Whether responses may include the access lists of objects."""
        return user is None or self._is_admin(user)

    def _is_admin(self, user: User) -> bool:
        return ALL_ACCESS_ROLE in user.roles

    def _can_admin_view_all(self, user: User) -> bool:
        return self.config.admin_access == ADMIN_ACCESS_ALL and self._is_admin(user)
