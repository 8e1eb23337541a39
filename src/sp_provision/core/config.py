"""sp-provision configuration.

Defines the validated configuration model shared by the identity,
Windows and Linux provisioning layers.  Defaults match the layout the
``sp`` sandbox runner expects on a stock host.
"""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CGROUP_ROOT = Path("/sys/fs/cgroup")
DEFAULT_CGROUP_GROUP = "sp"


class ProvisionerConfig(BaseModel):
    """Configuration for a provisioning run.

    All fields carry defaults, so ``ProvisionerConfig()`` is a working
    configuration for a real host.  Tests point ``cgroup_root`` at a
    temporary directory.
    """

    model_config = ConfigDict(strict=True)

    cgroup_root: Path = Field(
        default=DEFAULT_CGROUP_ROOT,
        description="Mount point of the cgroup v1 controller hierarchies.",
    )
    cgroup_group: str = Field(
        default=DEFAULT_CGROUP_GROUP,
        min_length=1,
        description="Isolation-group name the sandbox runner creates tasks under.",
    )
    assume_yes: bool = Field(
        default=False,
        description="Skip the confirmation prompt before mutating the host.",
    )
    verify_cgroups: bool = Field(
        default=True,
        description=(
            "Re-check every subsystem directory after provisioning and "
            "fail if any is missing or owned by someone else."
        ),
    )
    sudo_executable: str = Field(
        default="sudo",
        description="Command used to elevate cgroup operations when not root.",
    )
    net_executable: str = Field(
        default="net",
        description="Windows account management command.",
    )
    icacls_executable: str = Field(
        default="icacls",
        description="Windows ACL editing command.",
    )
    command_timeout: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Timeout in seconds for each external command.",
    )
