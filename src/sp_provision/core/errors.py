"""sp-provision error-code hierarchy.

Every failure a provisioning run can surface to the operator is a concrete
exception class carrying a stable error code.

Hierarchy
---------
::

    ProvisioningError
    +-- ValidationError   (SP-E1xx)  detected before any host mutation
    +-- MutationError     (SP-E2xx)  raised after an OS mutation failed

Usage
-----
Raise concrete subclasses directly::

    raise UnknownIdentity("No local account named 'alice'")

Catch by category::

    try:
        ...
    except ValidationError:
        # nothing on the host has been touched yet
        ...
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class ProvisioningError(Exception):
    """Base exception for all sp-provision errors.

    Attributes
    ----------
    code : str
        Error code, e.g. ``"SP-E100"``.
    message : str
        Human-readable description (MUST NOT contain credentials).
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the operator.
    """

    code: str = "SP-E000"
    message: str = "Unknown provisioning error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for machine-readable output."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# Category base classes
# ===================================================================

class ValidationError(ProvisioningError):
    """SP-E1xx -- Request validation errors.  The host is unchanged."""

    code = "SP-E1XX"


class MutationError(ProvisioningError):
    """SP-E2xx -- An OS mutation failed.

    Steps that completed before the failure are not rolled back; re-running
    the same request after fixing the cause converges the host.
    """

    code = "SP-E2XX"


# ===================================================================
# SP-E1xx  Validation errors
# ===================================================================

class UnknownIdentity(ValidationError):
    """SP-E100 -- The named principal does not exist on this host."""

    code = "SP-E100"
    message = "Identity does not exist on this host"
    resolution = (
        "Check the account name, or request its creation with "
        "--create-user and --password."
    )


class MissingCredential(ValidationError):
    """SP-E101 -- Account creation was requested without a password."""

    code = "SP-E101"
    message = "A password is required to create a new account"
    resolution = "Pass --password together with --create-user."


class MissingTargetIdentity(ValidationError):
    """SP-E102 -- Directory grants were requested with no target identity."""

    code = "SP-E102"
    message = "Directory access was requested but no target identity is set"
    resolution = (
        "Name the account with --user or --create-user, or pass "
        "--current-user to grant access to your own account."
    )


class PathNotFound(ValidationError):
    """SP-E103 -- The directory to grant access on does not exist.

    The orchestrator checks every path before the first host change.  A
    path that disappears later in the run is reported through
    :class:`DirectoryGrantFailures`, after earlier steps have completed.
    """

    code = "SP-E103"
    message = "Path does not exist"
    resolution = "Create the directory first or fix the path."


class ConfigurationError(ValidationError):
    """SP-E104 -- The requested combination of options is not supported."""

    code = "SP-E104"
    message = "Invalid provisioning configuration"
    resolution = "Run with --help to see the supported options."


class OperationCancelled(ValidationError):
    """SP-E105 -- The operator declined the confirmation prompt."""

    code = "SP-E105"
    message = "Provisioning cancelled by the operator"
    resolution = "Re-run and confirm, or pass --yes."


# ===================================================================
# SP-E2xx  Mutation errors
# ===================================================================

class PermissionDenied(MutationError):
    """SP-E200 -- The operator lacks the elevation the step needs."""

    code = "SP-E200"
    message = "Permission denied"
    resolution = "Re-run from an elevated (administrator / root) session."


class PrivilegeGrantFailure(MutationError):
    """SP-E201 -- The local security policy rejected a privilege grant."""

    code = "SP-E201"
    message = "Failed to grant privilege"
    resolution = (
        "Run from an administrator session; the account needs the right "
        "to modify the local security policy."
    )


class IdentityCreationFailure(MutationError):
    """SP-E202 -- The identity store refused to create the account."""

    code = "SP-E202"
    message = "Failed to create account"
    resolution = (
        "Check the password against the host's password policy and run "
        "from an administrator session."
    )


class DirectoryGrantFailures(MutationError):
    """SP-E203 -- One or more directory grants failed.

    Every path is attempted; the individual errors are kept on
    :attr:`errors` and summarised in :attr:`details`.
    """

    code = "SP-E203"
    message = "One or more directory grants failed"
    resolution = "Fix the reported paths and re-run; grants are idempotent."

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[ProvisioningError] | None = None,
    ) -> None:
        self.errors = list(errors or [])
        if message is None and self.errors:
            message = (
                f"{len(self.errors)} directory grant(s) failed: "
                + "; ".join(e.message for e in self.errors)
            )
        super().__init__(
            message,
            details={"failures": [e.to_dict()["error"] for e in self.errors]},
        )


# ===================================================================
# Code lookup
# ===================================================================

_CODE_MAP: dict[str, type[ProvisioningError]] = {
    cls.code: cls
    for cls in [
        UnknownIdentity,
        MissingCredential,
        MissingTargetIdentity,
        PathNotFound,
        ConfigurationError,
        OperationCancelled,
        PermissionDenied,
        PrivilegeGrantFailure,
        IdentityCreationFailure,
        DirectoryGrantFailures,
    ]
}


def error_from_code(code: str, message: str | None = None) -> ProvisioningError:
    """Instantiate the correct exception class for an error code.

    Raises
    ------
    KeyError
        If *code* is not a recognised error code.
    """
    cls = _CODE_MAP[code]
    return cls(message) if message else cls()
