"""Provisioning orchestrator -- the main entry point.

This module implements :class:`ProvisioningOrchestrator`, which turns a
:class:`ProvisioningRequest` into host changes through a
:class:`~sp_provision.platform.PlatformCapability`.

Pipeline
--------

1. **Validate** -- every pre-check, with no host mutation:
   credential for creation, a target for directory grants, existing
   ``user`` / runner accounts, platform-specific option checks.
2. **Confirm** -- ask the :class:`ConfirmationSource` once.  Declining
   stops the run before anything is changed.
3. **Resolve** -- look up or create the target account.
4. **Provision** -- privilege grants, then directory grants (Windows), or
   the cgroup hierarchy (Linux).
5. **Report** -- a :class:`ProvisioningReport` including whether a
   restart is needed.

A failure in step 3 or 4 leaves the steps that already completed in
place.  Every step is idempotent, so re-running the same request after
fixing the cause converges the host.

Usage
-----
::

    from sp_provision.core.interfaces import (
        InMemoryAccessControl,
        InMemoryIdentityStore,
        InMemorySecurityPolicy,
    )
    from sp_provision.core.types import ProvisioningRequest
    from sp_provision.orchestrator import ProvisioningOrchestrator
    from sp_provision.platform import WindowsSecurityProvisioner

    orchestrator = ProvisioningOrchestrator(
        WindowsSecurityProvisioner(
            InMemoryIdentityStore(["svc"]),
            InMemorySecurityPolicy(),
            InMemoryAccessControl(),
        ),
    )
    report = orchestrator.run(
        ProvisioningRequest(runner_requested=True, runner="svc"),
    )
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sp_provision.core.config import ProvisionerConfig
from sp_provision.core.errors import (
    ConfigurationError,
    MissingCredential,
    MissingTargetIdentity,
    OperationCancelled,
    PathNotFound,
)
from sp_provision.core.types import (
    Identity,
    IdentitySource,
    ProvisioningReport,
    ProvisioningRequest,
)

if TYPE_CHECKING:
    from sp_provision.core.interfaces import ConfirmationSource
    from sp_provision.platform import PlatformCapability

logger = logging.getLogger(__name__)


class ProvisioningOrchestrator:
    """Validates a request, then drives the platform steps in order.

    Parameters
    ----------
    capability:
        The platform variant doing the actual work.
    config:
        Run configuration.  ``assume_yes`` skips the confirmation.
    confirmation:
        Asked once before the first host change.  ``None`` means the run
        is never interactive.
    """

    def __init__(
        self,
        capability: PlatformCapability,
        *,
        config: ProvisionerConfig | None = None,
        confirmation: ConfirmationSource | None = None,
    ) -> None:
        self._capability = capability
        self._config = config or ProvisionerConfig()
        self._confirmation = confirmation
        self.report: ProvisioningReport | None = None

    @property
    def capability(self) -> PlatformCapability:
        return self._capability

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, request: ProvisioningRequest) -> None:
        """Check *request* without touching the host.

        Raises
        ------
        MissingCredential
            ``create_user`` without ``password``.
        ConfigurationError
            ``user`` and ``create_user`` together, or options the
            platform does not support.
        MissingTargetIdentity
            Directory grants with no way to determine the target account.
        PathNotFound
            A directory to grant access on does not exist.
        UnknownIdentity
            ``user`` or the named runner account does not exist.
        """
        if request.create_user and not request.password:
            raise MissingCredential(
                f"Cannot create account '{request.create_user}' without a password",
                details={"name": request.create_user},
            )
        if request.create_user and request.user:
            raise ConfigurationError(
                "Use either --user or --create-user, not both",
                details={"user": request.user, "create_user": request.create_user},
            )
        if request.directories and not (
            request.user or request.create_user or request.use_session_identity
        ):
            raise MissingTargetIdentity(
                "No target account for directory access to "
                + ", ".join(request.directories),
                details={"paths": list(request.directories)},
            )
        missing = [p for p in request.directories if not Path(p).exists()]
        if missing:
            raise PathNotFound(
                "Path does not exist: " + ", ".join(missing),
                details={"paths": missing},
            )
        resolver = self._capability.resolver
        if request.user:
            resolver.resolve_or_create(request.user)
        self._capability.validate(request)

    def run(self, request: ProvisioningRequest) -> ProvisioningReport:
        """Validate, confirm and apply *request*.

        The report is also kept on :attr:`report` while the run is in
        progress, so a caller can see what completed before a failure.

        Raises
        ------
        ProvisioningError
            Any validation or mutation error; see :meth:`validate` and
            the platform steps.
        """
        self.validate(request)
        self._confirm(request)

        report = ProvisioningReport(platform=self._capability.name)
        self.report = report

        target = self._resolve_target(request, report)
        self._capability.provision(request, target, report)
        logger.info("Provisioning finished on %s", self._capability.name)
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _confirm(self, request: ProvisioningRequest) -> None:
        if self._config.assume_yes or self._confirmation is None:
            return
        plan = self._capability.describe(request)
        if not plan:
            return
        prompt = "The following changes will be made:\n" + "\n".join(
            f"  - {line}" for line in plan
        )
        if not self._confirmation.confirm(prompt + "\nContinue?"):
            raise OperationCancelled()

    def _resolve_target(
        self, request: ProvisioningRequest, report: ProvisioningReport
    ) -> Identity | None:
        resolver = self._capability.resolver
        if request.create_user:
            target = resolver.resolve_or_create(
                request.create_user, request.password, create=True,
            )
            report.created = target.source is IdentitySource.CREATED
        elif request.user:
            target = resolver.resolve_or_create(request.user)
        elif request.directories and request.use_session_identity:
            target = resolver.resolve_or_create()
        else:
            return None
        report.target = target
        return target
