"""Command-line front end (``sp-provision``).

On Windows the command takes the account, privilege and directory
options.  On Linux it has no provisioning options: it creates the ``sp``
cgroup group for the invoking operator and must be re-run after every
reboot.
"""
from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import ValidationError as ModelValidationError

from sp_provision import __version__
from sp_provision.core.config import ProvisionerConfig
from sp_provision.core.errors import OperationCancelled, ProvisioningError
from sp_provision.core.types import AccessRights, ProvisioningRequest
from sp_provision.orchestrator import ProvisioningOrchestrator
from sp_provision.platform import default_capability

if TYPE_CHECKING:
    from sp_provision.core.interfaces import ConfirmationSource
    from sp_provision.platform import PlatformCapability

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130

_WINDOWS_EPILOG = """\
examples:
  sp-provision --create-user sandbox --password S3cret! --dir C:\\tasks,C:\\tmp
  sp-provision --runner
  sp-provision --user sandbox --dir D:\\work --full-control

Privileges granted with --runner only take effect after a restart.
"""

_LINUX_EPILOG = """\
Creates /sys/fs/cgroup/{blkio,cpuacct,memory,pids,freezer}/sp owned by the
invoking user.  cgroupfs is not persistent: run this again after every
reboot.
"""


class TerminalConfirmation:
    """Asks the operator on the terminal.  Blocks without a timeout."""

    def confirm(self, prompt: str) -> bool:
        try:
            answer = input(f"{prompt} [y/N] ")
        except (EOFError, KeyboardInterrupt):
            print(file=sys.stderr)
            return False
        return answer.strip().lower() in ("y", "yes")


def _split_dirs(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def build_parser(platform: str) -> argparse.ArgumentParser:
    """Return the argument parser for the *platform* variant."""
    parser = argparse.ArgumentParser(
        prog="sp-provision",
        description=(
            "Prepare this host for the sp sandbox: accounts, privileges "
            "and directory access on Windows, cgroups on Linux."
        ),
        epilog=_WINDOWS_EPILOG if platform == "windows" else _LINUX_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    if platform == "windows":
        parser.add_argument(
            "--create-user", metavar="NAME",
            help="create a local account (requires --password)",
        )
        parser.add_argument(
            "--password", metavar="SECRET", help="password for --create-user",
        )
        parser.add_argument(
            "--runner", metavar="NAME", nargs="?", const="", default=None,
            help=(
                "grant the privileges needed to run the sandbox to NAME, "
                "or to the current account when NAME is omitted"
            ),
        )
        parser.add_argument(
            "--dir", metavar="PATH[,PATH...]", action="append", default=[],
            type=_split_dirs, dest="dirs",
            help="grant the target account access to these directories",
        )
        parser.add_argument(
            "--user", metavar="NAME", help="existing account to grant access to",
        )
        parser.add_argument(
            "--full-control", action="store_true",
            help="grant full control instead of read/write/create",
        )
        parser.add_argument(
            "--current-user", action="store_true",
            help="grant directory access to the current account by default",
        )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="do not ask for confirmation",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    return parser


def request_from_args(args: argparse.Namespace) -> ProvisioningRequest:
    """Assemble the :class:`ProvisioningRequest` for parsed *args*."""
    if not hasattr(args, "runner"):
        return ProvisioningRequest()
    return ProvisioningRequest(
        create_user=args.create_user,
        password=args.password,
        user=args.user,
        runner_requested=args.runner is not None,
        runner=args.runner or None,
        directories=[d for group in args.dirs for d in group],
        rights=(
            AccessRights.FULL_CONTROL if args.full_control
            else AccessRights.READ_WRITE_CREATE
        ),
        use_session_identity=args.current_user,
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(
    argv: Sequence[str] | None = None,
    *,
    capability: PlatformCapability | None = None,
    confirmation: ConfirmationSource | None = None,
) -> int:
    """Run the command line and return the process exit status."""
    platform = capability.name if capability is not None else (
        "windows" if sys.platform == "win32" else "linux"
    )
    parser = build_parser(platform)
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        request = request_from_args(args)
    except ModelValidationError as exc:
        parser.error(str(exc))

    config = ProvisionerConfig(assume_yes=args.yes)
    orchestrator: ProvisioningOrchestrator | None = None
    try:
        if capability is None:
            capability = default_capability(config)
        orchestrator = ProvisioningOrchestrator(
            capability,
            config=config,
            confirmation=confirmation or TerminalConfirmation(),
        )
        report = orchestrator.run(request)
    except OperationCancelled as exc:
        print(exc.message, file=sys.stderr)
        return EXIT_CANCELLED
    except KeyboardInterrupt:
        # Ctrl-C at a prompt of an elevation tool (``sudo -v``).
        print(file=sys.stderr)
        print(OperationCancelled.message, file=sys.stderr)
        return EXIT_CANCELLED
    except ProvisioningError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        if exc.resolution:
            print(f"hint: {exc.resolution}", file=sys.stderr)
        partial = orchestrator.report if orchestrator is not None else None
        if partial is not None and partial.restart_required:
            print(
                "Privileges were granted before the failure; restart the "
                "machine before they take effect.",
                file=sys.stderr,
            )
        logger.debug("Run failed", exc_info=True)
        return EXIT_FAILURE
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print(report.summary())
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
