"""cgroup filesystem and account backends for Linux hosts.

Two ways to touch the cgroup hierarchy:

* :class:`LocalCgroupFilesystem` -- plain ``mkdir`` / ``chown`` calls, for
  a process that already runs as root (or a test tree it owns).
* :class:`SudoCgroupFilesystem` -- asks ``sudo`` to validate the operator
  once, then runs ``sudo mkdir`` and ``sudo chown -R`` per directory.
"""
from __future__ import annotations

import getpass
import logging
import os
import pwd
import shutil
import subprocess
from pathlib import Path

from sp_provision.core.commands import Runner, run_command
from sp_provision.core.errors import (
    ConfigurationError,
    IdentityCreationFailure,
    PermissionDenied,
    UnknownIdentity,
)
from sp_provision.core.types import Credential

logger = logging.getLogger(__name__)


def _require_account(owner: str) -> pwd.struct_passwd:
    try:
        return pwd.getpwnam(owner)
    except KeyError:
        raise UnknownIdentity(
            f"No local account named '{owner}'", details={"name": owner},
        ) from None


class _PosixOwnership:
    def owner_of(self, path: Path) -> str | None:
        try:
            uid = path.stat().st_uid
        except FileNotFoundError:
            return None
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return str(uid)


class LocalCgroupFilesystem(_PosixOwnership):
    """Direct filesystem calls; needs root on a real cgroup mount."""

    def ensure_directory(self, path: Path) -> bool:
        if path.is_dir():
            return False
        try:
            path.mkdir()
        except FileExistsError:
            return False
        except FileNotFoundError:
            raise ConfigurationError(
                f"cgroup controller is not mounted: {path.parent}",
                details={"path": str(path)},
            ) from None
        except PermissionError as exc:
            raise PermissionDenied(
                f"Permission denied creating {path}", details={"path": str(path)},
            ) from exc
        return True

    def chown_recursive(self, path: Path, owner: str) -> None:
        account = _require_account(owner)
        try:
            os.chown(path, account.pw_uid, -1)
            for dirpath, dirnames, filenames in os.walk(path):
                for entry in dirnames + filenames:
                    os.chown(os.path.join(dirpath, entry), account.pw_uid, -1)
        except PermissionError as exc:
            raise PermissionDenied(
                f"Permission denied changing the owner of {path}",
                details={"path": str(path), "owner": owner},
            ) from exc


class SudoCgroupFilesystem(_PosixOwnership):
    """Runs the mutating calls through ``sudo``.

    ``sudo -v`` is called before the first mutation so the operator is
    asked for their password at most once per run.
    """

    def __init__(
        self,
        *,
        sudo_executable: str = "sudo",
        timeout: float = 60,
        runner: Runner = subprocess.run,
    ) -> None:
        self._sudo = sudo_executable
        self._timeout = timeout
        self._runner = runner
        self._validated = False

    def ensure_directory(self, path: Path) -> bool:
        if path.is_dir():
            return False
        if not path.parent.is_dir():
            raise ConfigurationError(
                f"cgroup controller is not mounted: {path.parent}",
                details={"path": str(path)},
            )
        self._sudo_run(["mkdir", str(path)], path)
        return True

    def chown_recursive(self, path: Path, owner: str) -> None:
        _require_account(owner)
        self._sudo_run(["chown", "-R", owner, str(path)], path)

    def _validate(self) -> None:
        if self._validated:
            return
        # Leave stdin/stdout alone so sudo can prompt on the terminal.
        try:
            status = self._runner([self._sudo, "-v"], check=False).returncode
        except OSError as exc:
            raise PermissionDenied(f"Could not run {self._sudo}: {exc}") from exc
        if status != 0:
            raise PermissionDenied(
                f"{self._sudo} -v failed; elevation is required to manage cgroups",
                details={"exit_code": status},
            )
        self._validated = True

    def _sudo_run(self, args: list[str], path: Path) -> None:
        self._validate()
        try:
            result = run_command(
                [self._sudo, "-n", *args], timeout=self._timeout, runner=self._runner,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise PermissionDenied(
                f"Could not run {self._sudo} {args[0]}: {exc}",
                details={"path": str(path)},
            ) from exc
        if result.returncode != 0:
            raise PermissionDenied(
                f"{self._sudo} {args[0]} failed on {path}: "
                f"{(result.stderr or result.stdout).strip()}",
                details={"path": str(path), "exit_code": result.returncode},
            )


def default_filesystem(
    sudo_executable: str = "sudo", timeout: float = 60,
) -> LocalCgroupFilesystem | SudoCgroupFilesystem:
    """Return the backend suited to the current process's privileges."""
    if os.geteuid() == 0:
        return LocalCgroupFilesystem()
    if shutil.which(sudo_executable) is None:
        logger.warning("%s not found; trying direct filesystem calls", sudo_executable)
        return LocalCgroupFilesystem()
    return SudoCgroupFilesystem(sudo_executable=sudo_executable, timeout=timeout)


class PosixIdentityStore:
    """:class:`~sp_provision.core.interfaces.IdentityStore` backed by ``pwd``.

    Account creation is out of reach on Linux; the cgroup owner must be
    an existing account.
    """

    def exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def create(self, name: str, credential: Credential) -> None:
        raise IdentityCreationFailure(
            f"Creating account '{name}' is not supported on this platform",
            details={"name": name},
        )

    def session_user(self) -> str:
        # Under sudo the invoking operator, not root, owns the cgroups.
        return os.environ.get("SUDO_USER") or getpass.getuser()
