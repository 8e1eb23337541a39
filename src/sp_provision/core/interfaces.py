"""sp-provision abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
every host store the provisioning layers mutate, plus lightweight
in-memory implementations suitable for testing and development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

The in-memory implementations record each mutation in ``mutations`` so
tests can assert that a failed run left the "host" untouched.
"""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from sp_provision.core.errors import PermissionDenied
from sp_provision.core.types import AccessRights, Credential, PrivilegeKind

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class IdentityStore(Protocol):
    """The host's local account database."""

    def exists(self, name: str) -> bool:
        """Return ``True`` if a local principal called *name* exists."""
        ...

    def create(self, name: str, credential: Credential) -> None:
        """Create a local account.

        Raises :class:`IdentityCreationFailure` if the host refuses.
        """
        ...

    def session_user(self) -> str:
        """Return the account name of the invoking operator."""
        ...


@runtime_checkable
class SecurityPolicy(Protocol):
    """The host's local security policy (account rights assignment)."""

    def account_rights(self, name: str) -> frozenset[PrivilegeKind]:
        """Return the supported privileges *name* currently holds."""
        ...

    def add_account_rights(
        self, name: str, privileges: frozenset[PrivilegeKind]
    ) -> None:
        """Grant *privileges* to *name*.

        Raises :class:`PrivilegeGrantFailure` on policy-engine errors.
        """
        ...


@runtime_checkable
class AccessControl(Protocol):
    """The host's filesystem ACL engine."""

    def entries(self, path: str) -> dict[str, AccessRights]:
        """Return the explicit entries on *path* this system manages."""
        ...

    def set_entry(self, path: str, name: str, rights: AccessRights) -> None:
        """Make *name*'s explicit entry on *path* exactly *rights*.

        Entries of other principals are left untouched.
        """
        ...


@runtime_checkable
class CgroupFilesystem(Protocol):
    """Directory and ownership operations on the cgroup hierarchy."""

    def ensure_directory(self, path: Path) -> bool:
        """Create *path* (and parents) if absent.

        Returns ``True`` if the directory was created by this call.
        Raises :class:`PermissionDenied` without sufficient elevation.
        """
        ...

    def chown_recursive(self, path: Path, owner: str) -> None:
        """Give *owner* ownership of *path* and everything below it."""
        ...

    def owner_of(self, path: Path) -> str | None:
        """Return the owning account of *path*, or ``None`` if absent."""
        ...


@runtime_checkable
class ConfirmationSource(Protocol):
    """Answers the yes/no question asked before the host is mutated."""

    def confirm(self, prompt: str) -> bool:
        """Return ``True`` to proceed, ``False`` to cancel."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryIdentityStore:
    """In-memory account database for testing and development."""

    def __init__(
        self,
        users: list[str] | None = None,
        *,
        session_user: str = "operator",
    ) -> None:
        self._users: dict[str, Credential | None] = {u: None for u in users or []}
        self._users.setdefault(session_user, None)
        self._session_user = session_user
        self.mutations: list[tuple[str, str]] = []

    def exists(self, name: str) -> bool:
        """Return ``True`` if *name* is known (case-insensitive, like Windows)."""
        return name.lower() in {u.lower() for u in self._users}

    def create(self, name: str, credential: Credential) -> None:
        """Add *name* to the store."""
        if self.exists(name):
            raise ValueError(f"Account already exists: {name}")
        self._users[name] = credential
        self.mutations.append(("create", name))

    def session_user(self) -> str:
        return self._session_user

    def credential_of(self, name: str) -> Credential | None:
        """Return the stored credential (test helper)."""
        return self._users.get(name)


class InMemorySecurityPolicy:
    """In-memory account-rights table for testing and development."""

    def __init__(self) -> None:
        self._rights: dict[str, set[PrivilegeKind]] = {}
        self.mutations: list[tuple[str, frozenset[PrivilegeKind]]] = []
        self.fail_with: Exception | None = None

    def account_rights(self, name: str) -> frozenset[PrivilegeKind]:
        return frozenset(self._rights.get(name.lower(), set()))

    def add_account_rights(
        self, name: str, privileges: frozenset[PrivilegeKind]
    ) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self._rights.setdefault(name.lower(), set()).update(privileges)
        self.mutations.append((name, frozenset(privileges)))


class InMemoryAccessControl:
    """In-memory ACL table for testing and development.

    Entries are keyed by path string, then by principal name.
    """

    def __init__(self) -> None:
        self._acl: dict[str, dict[str, AccessRights]] = {}
        self.mutations: list[tuple[str, str, AccessRights]] = []
        self.deny_paths: set[str] = set()

    def entries(self, path: str) -> dict[str, AccessRights]:
        return dict(self._acl.get(path, {}))

    def set_entry(self, path: str, name: str, rights: AccessRights) -> None:
        if path in self.deny_paths:
            raise PermissionDenied(
                f"Access denied while editing the ACL of {path}",
                details={"path": path},
            )
        self._acl.setdefault(path, {})[name] = rights
        self.mutations.append((path, name, rights))

    def add_foreign_entry(self, path: str, name: str, rights: AccessRights) -> None:
        """Seed an entry for another principal (test helper)."""
        self._acl.setdefault(path, {})[name] = rights


class InMemoryCgroupFilesystem:
    """In-memory cgroup hierarchy for testing and development.

    With ``elevated=False`` every operation fails with
    :class:`PermissionDenied`, mimicking a non-root operator.
    """

    def __init__(self, *, elevated: bool = True) -> None:
        self.elevated = elevated
        self._owners: dict[Path, str] = {}
        self.calls: list[tuple[str, Path]] = []

    def _require_elevation(self, path: Path) -> None:
        if not self.elevated:
            raise PermissionDenied(
                f"Permission denied: {path}",
                details={"path": str(path)},
            )

    def ensure_directory(self, path: Path) -> bool:
        self.calls.append(("mkdir", path))
        self._require_elevation(path)
        if path in self._owners:
            return False
        self._owners[path] = "root"
        return True

    def chown_recursive(self, path: Path, owner: str) -> None:
        self.calls.append(("chown", path))
        self._require_elevation(path)
        for p in self._owners:
            if p == path or path in p.parents:
                self._owners[p] = owner

    def owner_of(self, path: Path) -> str | None:
        return self._owners.get(path)

    def directories(self) -> list[Path]:
        """Return every directory that exists (test helper)."""
        return sorted(self._owners)


class StaticConfirmation:
    """Confirmation source that always gives the same answer."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer
