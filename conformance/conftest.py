"""Shared fixtures for sp-provision conformance tests.

Every fixture builds an in-memory host, so the tests exercise the full
orchestration pipeline without touching the machine they run on.
"""
from __future__ import annotations

from collections.abc import Callable

import pytest

from sp_provision.core.interfaces import (
    InMemoryAccessControl,
    InMemoryCgroupFilesystem,
    InMemoryIdentityStore,
    InMemorySecurityPolicy,
    StaticConfirmation,
)
from sp_provision.orchestrator import ProvisioningOrchestrator
from sp_provision.platform import LinuxCgroupProvisioner, WindowsSecurityProvisioner

# ---------------------------------------------------------------------------
# Accounts present on every simulated host
# ---------------------------------------------------------------------------
SESSION_USER = "operator"
RUNNER_USER = "svc"
EXISTING_USER = "bob-existing"


# ---------------------------------------------------------------------------
# Windows host
# ---------------------------------------------------------------------------
@pytest.fixture()
def identity_store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore(
        [RUNNER_USER, EXISTING_USER], session_user=SESSION_USER,
    )


@pytest.fixture()
def security_policy() -> InMemorySecurityPolicy:
    return InMemorySecurityPolicy()


@pytest.fixture()
def access_control() -> InMemoryAccessControl:
    return InMemoryAccessControl()


@pytest.fixture()
def windows_capability(
    identity_store: InMemoryIdentityStore,
    security_policy: InMemorySecurityPolicy,
    access_control: InMemoryAccessControl,
) -> WindowsSecurityProvisioner:
    return WindowsSecurityProvisioner(identity_store, security_policy, access_control)


@pytest.fixture()
def windows_orchestrator(
    windows_capability: WindowsSecurityProvisioner,
) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(
        windows_capability, confirmation=StaticConfirmation(True),
    )


# ---------------------------------------------------------------------------
# Linux host
# ---------------------------------------------------------------------------
@pytest.fixture()
def cgroup_filesystem() -> InMemoryCgroupFilesystem:
    return InMemoryCgroupFilesystem()


@pytest.fixture()
def linux_capability(
    identity_store: InMemoryIdentityStore,
    cgroup_filesystem: InMemoryCgroupFilesystem,
) -> LinuxCgroupProvisioner:
    return LinuxCgroupProvisioner(identity_store, cgroup_filesystem)


@pytest.fixture()
def linux_orchestrator(
    linux_capability: LinuxCgroupProvisioner,
) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(
        linux_capability, confirmation=StaticConfirmation(True),
    )


@pytest.fixture()
def host_untouched(
    identity_store: InMemoryIdentityStore,
    security_policy: InMemorySecurityPolicy,
    access_control: InMemoryAccessControl,
    cgroup_filesystem: InMemoryCgroupFilesystem,
) -> Callable[[], bool]:
    """Return a callable reporting whether any simulated store was mutated."""

    def check() -> bool:
        return not (
            identity_store.mutations
            or security_policy.mutations
            or access_control.mutations
            or cgroup_filesystem.calls
        )

    return check
