"""Linux cgroup provisioning.

* **CgroupProvisioner** -- creates ``<root>/<subsystem>/<group>/`` for the
  blkio, cpuacct, memory, pids and freezer controllers and gives it to
  the sandbox operator.

The host backends live in :mod:`sp_provision.linux.filesystem`, which
needs the POSIX-only ``pwd`` module and is therefore not imported here.
"""
from __future__ import annotations

from sp_provision.linux.cgroups import CgroupProvisioner

__all__ = [
    "CgroupProvisioner",
]
