"""Per-group cgroup hierarchy for the sandbox runner.

The runner places every task it starts under
``<root>/<subsystem>/<group>/`` for each controller in
:class:`~sp_provision.core.types.CgroupSubsystem`, so that directory has
to exist and belong to the account that runs the sandbox.  cgroupfs is
not persistent: provisioning has to be repeated after every reboot.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sp_provision.core.config import DEFAULT_CGROUP_GROUP, DEFAULT_CGROUP_ROOT
from sp_provision.core.errors import UnknownIdentity
from sp_provision.core.types import CgroupSpec, CgroupSubsystem

if TYPE_CHECKING:
    from sp_provision.core.interfaces import CgroupFilesystem, IdentityStore

logger = logging.getLogger(__name__)


class CgroupProvisioner:
    """Creates one cgroup directory per subsystem and hands it to an owner.

    Parameters
    ----------
    filesystem:
        Backend performing ``mkdir`` / ``chown -R``.
    root:
        cgroup mount root, ``/sys/fs/cgroup`` on a stock host.
    identities:
        When given, the owner is checked against it before any
        directory is touched.
    """

    def __init__(
        self,
        filesystem: CgroupFilesystem,
        root: Path = DEFAULT_CGROUP_ROOT,
        identities: IdentityStore | None = None,
    ) -> None:
        self._fs: CgroupFilesystem = filesystem
        self._root = root
        self._identities = identities

    @property
    def root(self) -> Path:
        return self._root

    def provision(self, group: str = DEFAULT_CGROUP_GROUP, owner: str = "") -> list[Path]:
        """Create and chown ``<root>/<subsystem>/<group>`` for every subsystem.

        Existing directories count as already created; ownership is
        applied on every run so a half-finished earlier run is repaired.

        Returns
        -------
        list[Path]
            One directory per subsystem, in provisioning order.

        Raises
        ------
        UnknownIdentity
            *owner* is not a known account.
        PermissionDenied
            Elevation is missing.  The remaining subsystems are skipped,
            since they would fail the same way.
        """
        if not owner or (
            self._identities is not None and not self._identities.exists(owner)
        ):
            raise UnknownIdentity(
                f"No local account named '{owner}'", details={"name": owner},
            )

        paths: list[Path] = []
        for spec in CgroupSpec.for_group(group):
            path = spec.path(self._root)
            if self._fs.ensure_directory(path):
                logger.info("Created %s", path)
            else:
                logger.info("%s already exists", path)
            self._fs.chown_recursive(path, owner)
            logger.debug("Owner of %s set to '%s'", path, owner)
            paths.append(path)
        return paths

    def verify(self, group: str, owner: str) -> list[CgroupSubsystem]:
        """Return the subsystems whose directory is missing or not owned by *owner*.

        An empty list means the group is fully provisioned.
        """
        return [
            spec.subsystem
            for spec in CgroupSpec.for_group(group)
            if self._fs.owner_of(spec.path(self._root)) != owner
        ]
