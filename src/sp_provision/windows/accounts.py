"""Local account database backend driven by ``net user``."""
from __future__ import annotations

import getpass
import logging
import subprocess

from sp_provision.core.commands import Runner, run_command
from sp_provision.core.errors import IdentityCreationFailure
from sp_provision.core.types import Credential

logger = logging.getLogger(__name__)


class NetUserIdentityStore:
    """:class:`~sp_provision.core.interfaces.IdentityStore` for a Windows host."""

    def __init__(
        self,
        *,
        net_executable: str = "net",
        timeout: float = 60,
        runner: Runner = subprocess.run,
    ) -> None:
        self._net = net_executable
        self._timeout = timeout
        self._runner = runner

    def exists(self, name: str) -> bool:
        result = run_command(
            [self._net, "user", name], timeout=self._timeout, runner=self._runner,
        )
        return result.returncode == 0

    def create(self, name: str, credential: Credential) -> None:
        secret = credential.expose()
        try:
            result = run_command(
                [self._net, "user", name, secret, "/add"],
                timeout=self._timeout,
                redact=[secret],
                runner=self._runner,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise IdentityCreationFailure(
                f"Could not run '{self._net} user': {exc}",
                details={"name": name},
            ) from exc
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            raise IdentityCreationFailure(
                f"'{self._net} user {name} /add' failed: {output}",
                details={"name": name, "exit_code": result.returncode},
            )
        logger.info("Created local account '%s'", name)

    def session_user(self) -> str:
        return getpass.getuser()
