"""sp-provision -- host preparation for the sp sandbox.

Prepares the security and resource-isolation primitives the sandbox
runner relies on before it executes untrusted programs.

Layers
------
* Identity resolution (:mod:`sp_provision.identity`)
* Windows privileges and directory ACLs (:mod:`sp_provision.windows`)
* Linux cgroup hierarchy (:mod:`sp_provision.linux`)
* Platform variants (:mod:`sp_provision.platform`)
* Orchestration (:mod:`sp_provision.orchestrator`)
"""
from __future__ import annotations

__version__ = "0.1.0"

from sp_provision.core.config import ProvisionerConfig
from sp_provision.core.errors import (
    ConfigurationError,
    DirectoryGrantFailures,
    IdentityCreationFailure,
    MissingCredential,
    MissingTargetIdentity,
    MutationError,
    OperationCancelled,
    PathNotFound,
    PermissionDenied,
    PrivilegeGrantFailure,
    ProvisioningError,
    UnknownIdentity,
    ValidationError,
)
from sp_provision.core.types import (
    RUNNER_PRIVILEGES,
    AccessRights,
    CgroupSpec,
    CgroupSubsystem,
    Credential,
    DirectoryGrant,
    Identity,
    IdentitySource,
    PrivilegeKind,
    ProvisioningReport,
    ProvisioningRequest,
)
from sp_provision.identity import IdentityResolver
from sp_provision.linux import CgroupProvisioner
from sp_provision.orchestrator import ProvisioningOrchestrator
from sp_provision.platform import (
    LinuxCgroupProvisioner,
    PlatformCapability,
    WindowsSecurityProvisioner,
    default_capability,
)
from sp_provision.windows import DirectoryAccessGrantor, PrivilegeGrantor

__all__ = [
    "__version__",
    # Configuration
    "ProvisionerConfig",
    # Errors
    "ProvisioningError",
    "ValidationError",
    "MutationError",
    "UnknownIdentity",
    "MissingCredential",
    "MissingTargetIdentity",
    "PathNotFound",
    "ConfigurationError",
    "OperationCancelled",
    "PermissionDenied",
    "PrivilegeGrantFailure",
    "IdentityCreationFailure",
    "DirectoryGrantFailures",
    # Types
    "AccessRights",
    "CgroupSpec",
    "CgroupSubsystem",
    "Credential",
    "DirectoryGrant",
    "Identity",
    "IdentitySource",
    "PrivilegeKind",
    "ProvisioningReport",
    "ProvisioningRequest",
    "RUNNER_PRIVILEGES",
    # Components
    "IdentityResolver",
    "PrivilegeGrantor",
    "DirectoryAccessGrantor",
    "CgroupProvisioner",
    "PlatformCapability",
    "WindowsSecurityProvisioner",
    "LinuxCgroupProvisioner",
    "default_capability",
    "ProvisioningOrchestrator",
]
