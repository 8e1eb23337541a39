"""Directory access grants for the restricted account.

:class:`DirectoryAccessGrantor` adds (or updates) one access-control
entry per directory for the target identity.  Entries belonging to other
principals are never touched.

Re-granting the same directory with different rights *replaces* the
identity's explicit entry, so the effective rights are always exactly the
ones last requested.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from sp_provision.core.commands import Runner, run_command
from sp_provision.core.errors import (
    DirectoryGrantFailures,
    PathNotFound,
    PermissionDenied,
    ProvisioningError,
)
from sp_provision.core.types import AccessRights, DirectoryGrant, Identity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sp_provision.core.interfaces import AccessControl
    from sp_provision.identity.resolver import IdentityResolver

logger = logging.getLogger(__name__)

# icacls permission masks; (OI)(CI) makes the entry inherit to children.
_ICACLS_MASKS: dict[AccessRights, str] = {
    AccessRights.READ_WRITE_CREATE: "(OI)(CI)(RX,W)",
    AccessRights.FULL_CONTROL: "(OI)(CI)(F)",
}


class DirectoryAccessGrantor:
    """Grants filesystem rights on directories to a resolved identity.

    Parameters
    ----------
    acl:
        The host's :class:`AccessControl` engine.
    resolver:
        Used only to check that the identity exists.
    """

    def __init__(self, acl: AccessControl, resolver: IdentityResolver) -> None:
        self._acl: AccessControl = acl
        self._resolver = resolver

    def grant(
        self,
        identity: Identity,
        path: str,
        rights: AccessRights = AccessRights.READ_WRITE_CREATE,
    ) -> DirectoryGrant:
        """Give *identity* exactly *rights* on *path*.

        Raises
        ------
        UnknownIdentity
            *identity* does not exist.
        PathNotFound
            *path* does not exist.
        PermissionDenied
            The ACL engine refused the change.
        """
        self._resolver.require_existing(identity)
        if not Path(path).exists():
            raise PathNotFound(f"Path does not exist: {path}", details={"path": path})

        grant = DirectoryGrant(identity=identity, path=path, rights=rights)
        if self._acl.entries(path).get(identity.name) == rights:
            logger.info("'%s' already has %s on %s", identity.name, rights, path)
            return grant
        logger.info("Granting %s on %s to '%s'", rights, path, identity.name)
        self._acl.set_entry(path, identity.name, rights)
        return grant

    def grant_all(
        self,
        identity: Identity,
        paths: Iterable[str],
        rights: AccessRights = AccessRights.READ_WRITE_CREATE,
    ) -> list[DirectoryGrant]:
        """Grant *rights* on every path, attempting each one independently.

        Raises
        ------
        UnknownIdentity
            *identity* does not exist; no path is attempted.
        DirectoryGrantFailures
            After all paths were attempted, if any of them failed.  The
            grants that succeeded stay in place.
        """
        self._resolver.require_existing(identity)
        granted: list[DirectoryGrant] = []
        errors: list[ProvisioningError] = []
        for path in paths:
            try:
                granted.append(self.grant(identity, path, rights))
            except ProvisioningError as exc:
                logger.error("Directory grant failed for %s: %s", path, exc.message)
                errors.append(exc)
        if errors:
            raise DirectoryGrantFailures(errors=errors)
        return granted


class IcaclsAccessControl:
    """:class:`~sp_provision.core.interfaces.AccessControl` backed by ``icacls``."""

    def __init__(
        self,
        *,
        icacls_executable: str = "icacls",
        timeout: float = 60,
        runner: Runner = subprocess.run,
    ) -> None:
        self._icacls = icacls_executable
        self._timeout = timeout
        self._runner = runner

    def entries(self, path: str) -> dict[str, AccessRights]:
        result = self._run([self._icacls, path], path)
        return parse_icacls(path, result.stdout)

    def set_entry(self, path: str, name: str, rights: AccessRights) -> None:
        # /grant:r replaces the explicit entry instead of adding to it.
        self._run(
            [self._icacls, path, "/grant:r", f"{name}:{_ICACLS_MASKS[rights]}", "/C"],
            path,
        )

    def _run(self, args: list[str], path: str) -> subprocess.CompletedProcess[str]:
        try:
            result = run_command(args, timeout=self._timeout, runner=self._runner)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise PermissionDenied(
                f"Could not run {self._icacls} on {path}: {exc}",
                details={"path": path},
            ) from exc
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            raise PermissionDenied(
                f"{self._icacls} failed on {path}: {output}",
                details={"path": path, "exit_code": result.returncode},
            )
        return result


def parse_icacls(path: str, output: str) -> dict[str, AccessRights]:
    """Extract the explicit entries this system manages from ``icacls`` output.

    Account names are returned without their domain prefix.  Inherited
    entries and masks other than the two managed ones are ignored.
    """
    entries: dict[str, AccessRights] = {}
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith(path):
            line = line[len(path):].strip()
        account, sep, mask = line.partition(":(")
        mask = "(" + mask
        if not sep or "(I)" in mask:
            continue
        name = account.rsplit("\\", 1)[-1]
        for rights, managed in _ICACLS_MASKS.items():
            if mask == managed:
                entries[name] = rights
    return entries
