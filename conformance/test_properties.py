"""Cross-cutting provisioning guarantees.

Verifies idempotence of every step, the no-mutation-on-failure rule for
validation errors and declined confirmations, closed privilege parsing,
and credential redaction.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pytest
from pydantic import ValidationError as ModelValidationError

from sp_provision.core.errors import MissingCredential, OperationCancelled
from sp_provision.core.interfaces import (
    InMemoryAccessControl,
    InMemoryCgroupFilesystem,
    InMemorySecurityPolicy,
    StaticConfirmation,
)
from sp_provision.core.types import AccessRights, ProvisioningRequest
from sp_provision.orchestrator import ProvisioningOrchestrator
from sp_provision.platform import WindowsSecurityProvisioner

# ===================================================================
# Idempotence
# ===================================================================

class TestIdempotence:
    """Running the same request twice leaves the host as one run does."""

    def test_MUST_grant_privileges_once(
        self,
        windows_orchestrator: ProvisioningOrchestrator,
        security_policy: InMemorySecurityPolicy,
    ) -> None:
        request = ProvisioningRequest(runner_requested=True, runner="svc")
        windows_orchestrator.run(request)
        before = security_policy.account_rights("svc")
        windows_orchestrator.run(request)
        assert security_policy.account_rights("svc") == before
        assert len(security_policy.mutations) == 1

    def test_MUST_grant_directory_once(
        self,
        windows_orchestrator: ProvisioningOrchestrator,
        access_control: InMemoryAccessControl,
        tmp_path: Path,
    ) -> None:
        request = ProvisioningRequest(user="bob-existing", directories=[str(tmp_path)])
        windows_orchestrator.run(request)
        windows_orchestrator.run(request)
        assert len(access_control.mutations) == 1

    def test_MUST_replace_rights_on_regrant(
        self,
        windows_orchestrator: ProvisioningOrchestrator,
        access_control: InMemoryAccessControl,
        tmp_path: Path,
    ) -> None:
        windows_orchestrator.run(ProvisioningRequest(
            user="bob-existing", directories=[str(tmp_path)],
            rights=AccessRights.FULL_CONTROL,
        ))
        windows_orchestrator.run(ProvisioningRequest(
            user="bob-existing", directories=[str(tmp_path)],
        ))
        assert access_control.entries(str(tmp_path)) == {
            "bob-existing": AccessRights.READ_WRITE_CREATE,
        }

    def test_MUST_converge_cgroups(
        self,
        linux_orchestrator: ProvisioningOrchestrator,
        cgroup_filesystem: InMemoryCgroupFilesystem,
    ) -> None:
        linux_orchestrator.run(ProvisioningRequest())
        linux_orchestrator.run(ProvisioningRequest())
        directories = cgroup_filesystem.directories()
        assert len(directories) == 5
        assert {cgroup_filesystem.owner_of(d) for d in directories} == {"operator"}
        assert {d.name for d in directories} == {"sp"}


# ===================================================================
# No mutation before a validated, confirmed run
# ===================================================================

class TestNoMutation:
    """Validation errors and a declined prompt leave the host unchanged."""

    def test_MUST_NOT_mutate_when_declined(
        self,
        windows_capability: WindowsSecurityProvisioner,
        host_untouched: Callable[[], bool],
        tmp_path: Path,
    ) -> None:
        orchestrator = ProvisioningOrchestrator(
            windows_capability, confirmation=StaticConfirmation(False),
        )
        request = ProvisioningRequest(
            create_user="carol", password="x", runner_requested=True,
            directories=[str(tmp_path)],
        )
        with pytest.raises(OperationCancelled):
            orchestrator.run(request)
        assert host_untouched()

    def test_MUST_NOT_create_without_password(
        self,
        windows_orchestrator: ProvisioningOrchestrator,
        host_untouched: Callable[[], bool],
    ) -> None:
        with pytest.raises(MissingCredential):
            windows_orchestrator.run(ProvisioningRequest(create_user="carol"))
        assert host_untouched()


# ===================================================================
# Closed privilege set
# ===================================================================

class TestPrivilegeParsing:
    """Only the three runner privileges can be requested."""

    @pytest.mark.parametrize("name", ["SeDebugPrivilege", "", "Tcb2"])
    def test_MUST_reject_unknown_privilege(self, name: str) -> None:
        with pytest.raises(ModelValidationError):
            ProvisioningRequest(runner_requested=True, privileges=[name])


# ===================================================================
# Credential handling
# ===================================================================

class TestCredentialRedaction:
    """Passwords never reach a repr, a report or the log."""

    def test_MUST_NOT_expose_password(
        self,
        windows_orchestrator: ProvisioningOrchestrator,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level(logging.DEBUG)
        request = ProvisioningRequest(create_user="carol", password="hunter2")
        report = windows_orchestrator.run(request)
        assert "hunter2" not in repr(request)
        assert "hunter2" not in repr(report)
        assert "hunter2" not in report.model_dump_json()
        assert "hunter2" not in report.summary()
        assert "hunter2" not in caplog.text
