"""Runner privilege grants.

The account that runs the sandbox must be able to create a process under
another user's token.  On Windows that takes three account rights:

* ``SeAssignPrimaryTokenPrivilege`` -- replace a process-level token,
* ``SeTcbPrivilege`` -- act as part of the operating system,
* ``SeIncreaseQuotaPrivilege`` -- adjust memory quotas for a process.

Rights added to the local security policy only show up in tokens issued
after the grant, so a restart (or at least a fresh logon) is required
before the runner can use them.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sp_provision.core.errors import PrivilegeGrantFailure
from sp_provision.core.types import RUNNER_PRIVILEGES, Identity, PrivilegeKind

if TYPE_CHECKING:
    from sp_provision.core.interfaces import SecurityPolicy
    from sp_provision.identity.resolver import IdentityResolver

logger = logging.getLogger(__name__)


class PrivilegeGrantor:
    """Grants :class:`PrivilegeKind` rights to a resolved identity.

    Parameters
    ----------
    policy:
        The host's :class:`SecurityPolicy`.
    resolver:
        Used only to check that the identity exists; this class never
        resolves or creates accounts itself.
    """

    def __init__(self, policy: SecurityPolicy, resolver: IdentityResolver) -> None:
        self._policy: SecurityPolicy = policy
        self._resolver = resolver

    def grant(
        self,
        identity: Identity,
        privileges: frozenset[PrivilegeKind] = RUNNER_PRIVILEGES,
    ) -> frozenset[PrivilegeKind]:
        """Grant *privileges* to *identity*.

        Privileges the account already holds are skipped, so granting the
        same set twice leaves the policy exactly as granting it once.

        Returns
        -------
        frozenset[PrivilegeKind]
            The privileges that were actually added by this call.  A
            non-empty result means the account needs a fresh logon before
            it can use them.

        Raises
        ------
        UnknownIdentity
            *identity* does not exist.
        PrivilegeGrantFailure
            The policy engine rejected the change.
        """
        self._resolver.require_existing(identity)

        try:
            held = self._policy.account_rights(identity.name)
            missing = frozenset(privileges) - held
            if not missing:
                logger.info(
                    "'%s' already holds %s", identity.name, _names(privileges),
                )
                return frozenset()
            logger.info("Granting %s to '%s'", _names(missing), identity.name)
            self._policy.add_account_rights(identity.name, missing)
        except OSError as exc:
            raise PrivilegeGrantFailure(
                f"Failed to grant privileges to '{identity.name}': {exc}",
                details={"name": identity.name},
            ) from exc
        return missing


def _names(privileges: frozenset[PrivilegeKind]) -> str:
    return ", ".join(sorted(p.value for p in privileges))
