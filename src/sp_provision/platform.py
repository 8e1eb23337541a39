"""Platform variants of the provisioning steps.

The orchestrator only talks to :class:`PlatformCapability`.  Two variants
exist and exactly one is used per process, picked from ``sys.platform``
by :func:`default_capability`:

* :class:`WindowsSecurityProvisioner` -- runner privileges and directory
  ACLs,
* :class:`LinuxCgroupProvisioner` -- the per-group cgroup hierarchy.
"""
from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sp_provision.core.config import ProvisionerConfig
from sp_provision.core.errors import (
    ConfigurationError,
    MissingTargetIdentity,
    PermissionDenied,
)
from sp_provision.core.types import CgroupSpec
from sp_provision.identity.resolver import IdentityResolver
from sp_provision.linux.cgroups import CgroupProvisioner
from sp_provision.windows.acl import DirectoryAccessGrantor
from sp_provision.windows.privileges import PrivilegeGrantor

if TYPE_CHECKING:
    from sp_provision.core.interfaces import (
        AccessControl,
        CgroupFilesystem,
        IdentityStore,
        SecurityPolicy,
    )
    from sp_provision.core.types import (
        Identity,
        ProvisioningReport,
        ProvisioningRequest,
    )

logger = logging.getLogger(__name__)


@runtime_checkable
class PlatformCapability(Protocol):
    """The platform-specific half of a provisioning run."""

    name: str
    resolver: IdentityResolver

    def validate(self, request: ProvisioningRequest) -> None:
        """Run the platform's read-only pre-checks on *request*."""
        ...

    def describe(self, request: ProvisioningRequest) -> list[str]:
        """Return one line per host change *request* will make."""
        ...

    def provision(
        self,
        request: ProvisioningRequest,
        target: Identity | None,
        report: ProvisioningReport,
    ) -> None:
        """Apply *request*, recording progress on *report* as it goes."""
        ...


def _same_account(a: str | None, b: str | None) -> bool:
    # Windows account names are case-insensitive.
    return a is not None and b is not None and a.casefold() == b.casefold()


class WindowsSecurityProvisioner:
    """Grants runner privileges and directory access on a Windows host."""

    name = "windows"

    def __init__(
        self,
        identities: IdentityStore,
        policy: SecurityPolicy,
        acl: AccessControl,
    ) -> None:
        self.resolver = IdentityResolver(identities)
        self.privileges = PrivilegeGrantor(policy, self.resolver)
        self.directories = DirectoryAccessGrantor(acl, self.resolver)

    def validate(self, request: ProvisioningRequest) -> None:
        # A runner that is about to be created cannot be checked yet.
        if request.runner and not _same_account(request.runner, request.create_user):
            self.resolver.resolve_or_create(request.runner)

    def describe(self, request: ProvisioningRequest) -> list[str]:
        plan: list[str] = []
        if request.create_user:
            plan.append(f"create local account '{request.create_user}'")
        if request.runner_requested:
            who = request.runner or "the current account"
            names = ", ".join(sorted(p.value for p in request.privileges))
            plan.append(f"grant {names} to {who}")
        for path in request.directories:
            plan.append(f"grant {request.rights} on {path}")
        return plan

    def provision(
        self,
        request: ProvisioningRequest,
        target: Identity | None,
        report: ProvisioningReport,
    ) -> None:
        if request.runner_requested:
            if (
                request.runner
                and target is not None
                and _same_account(request.runner, target.name)
            ):
                runner = target
            else:
                runner = self.resolver.resolve_or_create(request.runner)
            report.runner = runner
            added = self.privileges.grant(runner, request.privileges)
            report.privileges_granted = sorted(added)
            report.restart_required = bool(added)

        if request.directories:
            if target is None:
                raise MissingTargetIdentity(
                    "No target account for directory access to "
                    + ", ".join(request.directories),
                    details={"paths": list(request.directories)},
                )
            logger.debug(
                "Granting %s on %d director%s to '%s'",
                request.rights,
                len(request.directories),
                "y" if len(request.directories) == 1 else "ies",
                target.name,
            )
            grants = self.directories.grant_all(target, request.directories, request.rights)
            report.directories_granted = [g.path for g in grants]


class LinuxCgroupProvisioner:
    """Creates the sandbox cgroup hierarchy on a Linux host."""

    name = "linux"

    def __init__(
        self,
        identities: IdentityStore,
        filesystem: CgroupFilesystem,
        config: ProvisionerConfig | None = None,
    ) -> None:
        self._config = config or ProvisionerConfig()
        self.resolver = IdentityResolver(identities)
        self.cgroups = CgroupProvisioner(filesystem, self._config.cgroup_root, identities)

    def _group(self, request: ProvisioningRequest) -> str:
        return request.cgroup_group or self._config.cgroup_group

    def validate(self, request: ProvisioningRequest) -> None:
        unsupported = request.windows_options
        if unsupported:
            raise ConfigurationError(
                "Not supported on Linux: " + ", ".join(unsupported),
                details={"options": unsupported},
            )
        self.resolver.resolve_or_create(request.cgroup_owner)

    def describe(self, request: ProvisioningRequest) -> list[str]:
        owner = request.cgroup_owner or self.resolver.resolve_or_create().name
        return [
            f"create {spec.path(self._config.cgroup_root)} owned by '{owner}'"
            for spec in CgroupSpec.for_group(self._group(request))
        ]

    def provision(
        self,
        request: ProvisioningRequest,
        target: Identity | None,
        report: ProvisioningReport,
    ) -> None:
        owner = self.resolver.resolve_or_create(request.cgroup_owner)
        report.target = owner
        group = self._group(request)
        logger.info(
            "Provisioning cgroup group '%s' under %s for '%s'",
            group, self.cgroups.root, owner.name,
        )
        paths = self.cgroups.provision(group, owner.name)
        report.cgroups = [str(p) for p in paths]
        if self._config.verify_cgroups:
            wrong = self.cgroups.verify(group, owner.name)
            if wrong:
                raise PermissionDenied(
                    f"cgroup directories not owned by '{owner.name}': "
                    + ", ".join(wrong),
                    details={"group": group, "subsystems": [str(s) for s in wrong]},
                )


def default_capability(config: ProvisionerConfig | None = None) -> PlatformCapability:
    """Build the capability for the platform this process runs on."""
    config = config or ProvisionerConfig()
    if sys.platform == "win32":
        from sp_provision.windows.accounts import NetUserIdentityStore
        from sp_provision.windows.acl import IcaclsAccessControl
        from sp_provision.windows.lsa import LsaSecurityPolicy

        return WindowsSecurityProvisioner(
            NetUserIdentityStore(
                net_executable=config.net_executable, timeout=config.command_timeout,
            ),
            LsaSecurityPolicy(),
            IcaclsAccessControl(
                icacls_executable=config.icacls_executable,
                timeout=config.command_timeout,
            ),
        )
    if sys.platform.startswith("linux"):
        from sp_provision.linux.filesystem import PosixIdentityStore, default_filesystem

        return LinuxCgroupProvisioner(
            PosixIdentityStore(),
            default_filesystem(config.sudo_executable, config.command_timeout),
            config,
        )
    raise ConfigurationError(f"Unsupported platform: {sys.platform}")
