"""sp-provision shared domain types.

This module defines every value type, enum, and Pydantic model shared by
the identity, Windows and Linux provisioning layers.

Key design decisions:
* ``Credential`` is a plain Python class (not Pydantic) that prevents
  accidental logging of passwords via ``str()`` or ``repr()``.
* ``PrivilegeKind`` is a closed enum whose values are the OS constant
  names, so a privilege never travels as a loose string past parse time.
* ``CgroupSubsystem`` declaration order is the provisioning order.
* All Pydantic models use **v2** ``model_config``.
"""
from __future__ import annotations

import enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Credential -- opaque wrapper that prevents accidental exposure
# ---------------------------------------------------------------------------

class Credential:
    """An account password that prevents accidental exposure.

    The underlying plaintext is *only* accessible via the explicit
    :meth:`expose` method.  ``str()``, ``repr()``, ``format()`` and
    ``logging`` all return a redacted placeholder.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def expose(self) -> str:
        """Explicitly reveal the password.  Use with caution."""
        return self._value

    def __str__(self) -> str:
        return "[REDACTED]"

    def __repr__(self) -> str:
        return "Credential([REDACTED])"

    def __format__(self, format_spec: str) -> str:
        return "[REDACTED]"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Credential):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class IdentitySource(enum.StrEnum):
    """How an :class:`Identity` came to be selected."""

    SESSION = "session"
    EXPLICIT = "explicit"
    CREATED = "created"


class PrivilegeKind(enum.StrEnum):
    """Account rights needed to spawn processes under another identity.

    The values are the Windows privilege constant names understood by
    ``LsaAddAccountRights``.
    """

    ASSIGN_PRIMARY_TOKEN = "SeAssignPrimaryTokenPrivilege"
    ACT_AS_TRUSTED_COMPUTING_BASE = "SeTcbPrivilege"
    INCREASE_QUOTA = "SeIncreaseQuotaPrivilege"

    @classmethod
    def parse(cls, name: str) -> PrivilegeKind:
        """Parse a privilege by constant name or short alias.

        Accepts ``"SeTcbPrivilege"``, ``"Tcb"``, ``"IncreaseQuota"`` and
        so on, case-insensitively.

        Raises
        ------
        ValueError
            If *name* is not one of the supported privileges.
        """
        wanted = name.strip().lower()
        for member in cls:
            short = member.value.removeprefix("Se").removesuffix("Privilege")
            if wanted in (member.value.lower(), short.lower(), member.name.lower()):
                return member
        if wanted == "actastrustedcomputingbase":
            return cls.ACT_AS_TRUSTED_COMPUTING_BASE
        raise ValueError(f"Unsupported privilege: {name!r}")


RUNNER_PRIVILEGES: frozenset[PrivilegeKind] = frozenset(PrivilegeKind)
"""Every privilege the sandbox runner account needs."""


class AccessRights(enum.StrEnum):
    """Directory rights a restricted account may be granted."""

    READ_WRITE_CREATE = "ReadWriteCreate"
    FULL_CONTROL = "FullControl"


class CgroupSubsystem(enum.StrEnum):
    """cgroup v1 controllers the sandbox places its processes into."""

    BLKIO = "blkio"
    CPUACCT = "cpuacct"
    MEMORY = "memory"
    PIDS = "pids"
    FREEZER = "freezer"


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class Identity(BaseModel):
    """A local security principal resolved by the identity resolver.

    Grant operations refuse any identity whose ``exists`` flag is false.
    """

    model_config = ConfigDict(strict=True, frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    exists: bool = False
    source: IdentitySource = IdentitySource.EXPLICIT
    credential: Credential | None = Field(default=None, exclude=True, repr=False)


class DirectoryGrant(BaseModel):
    """One access-control entry to apply: *identity* gets *rights* on *path*."""

    model_config = ConfigDict(strict=True, frozen=True)

    identity: Identity
    path: str
    rights: AccessRights = AccessRights.READ_WRITE_CREATE


class CgroupSpec(BaseModel):
    """One ``(group, subsystem)`` directory of an isolation group."""

    model_config = ConfigDict(strict=True, frozen=True)

    group: str = Field(min_length=1)
    subsystem: CgroupSubsystem

    def path(self, root: Path) -> Path:
        """Return ``<root>/<subsystem>/<group>``."""
        return root / self.subsystem.value / self.group

    @classmethod
    def for_group(cls, group: str) -> list[CgroupSpec]:
        """Return one spec per subsystem, in provisioning order."""
        return [cls(group=group, subsystem=sub) for sub in CgroupSubsystem]


class ProvisioningRequest(BaseModel):
    """The validated configuration of one provisioning run.

    Built once per invocation (normally by the command-line front end),
    never persisted.  Privilege names are parsed here, so an unknown
    privilege is rejected before anything else happens.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    create_user: str | None = None
    password: Credential | None = Field(default=None, repr=False)
    user: str | None = None
    runner_requested: bool = False
    runner: str | None = None
    privileges: frozenset[PrivilegeKind] = RUNNER_PRIVILEGES
    directories: list[str] = Field(default_factory=list)
    rights: AccessRights = AccessRights.READ_WRITE_CREATE
    use_session_identity: bool = Field(
        default=False,
        description=(
            "Fall back to the operator's own account as the directory "
            "grant target when neither user nor create_user is set."
        ),
    )
    cgroup_group: str | None = None
    cgroup_owner: str | None = None

    @field_validator("password", mode="before")
    @classmethod
    def _wrap_password(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Credential(value)
        return value

    @field_validator("privileges", mode="before")
    @classmethod
    def _parse_privileges(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(
                v if isinstance(v, PrivilegeKind) else PrivilegeKind.parse(v)
                for v in value
            )
        return value

    @property
    def windows_options(self) -> list[str]:
        """Names of the Windows-only options set on this request."""
        used = {
            "create-user": self.create_user,
            "password": self.password,
            "user": self.user,
            "runner": self.runner_requested or self.runner,
            "dir": self.directories,
        }
        return [name for name, value in used.items() if value]


class ProvisioningReport(BaseModel):
    """Outcome of a completed provisioning run."""

    model_config = ConfigDict(strict=True)

    platform: str
    target: Identity | None = None
    runner: Identity | None = None
    created: bool = False
    privileges_granted: list[PrivilegeKind] = Field(default_factory=list)
    directories_granted: list[str] = Field(default_factory=list)
    cgroups: list[str] = Field(default_factory=list)
    restart_required: bool = False

    def summary(self) -> str:
        """Return the single human-readable outcome shown to the operator."""
        lines: list[str] = []
        if self.created and self.target is not None:
            lines.append(f"Created account '{self.target.name}'.")
        if self.runner is not None:
            if self.privileges_granted:
                names = ", ".join(sorted(p.value for p in self.privileges_granted))
                lines.append(f"Granted {names} to '{self.runner.name}'.")
            else:
                lines.append(
                    f"'{self.runner.name}' already holds every runner privilege."
                )
        if self.directories_granted and self.target is not None:
            lines.append(
                f"Granted '{self.target.name}' access to "
                + ", ".join(self.directories_granted)
                + "."
            )
        if self.cgroups:
            lines.append("Provisioned cgroups: " + ", ".join(self.cgroups) + ".")
        if not lines:
            lines.append("Nothing to do.")
        if self.restart_required:
            lines.append(
                "Restart the machine (or at least log off and on again) "
                "before the new privileges take effect."
            )
        return "\n".join(lines)
