"""Target-account resolution.

Turns the account options of a request into an explicit :class:`Identity`
value that every later step receives as an argument.  Nothing downstream
looks up the "current user" on its own.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sp_provision.core.errors import MissingCredential, UnknownIdentity
from sp_provision.core.types import Credential, Identity, IdentitySource

if TYPE_CHECKING:
    from sp_provision.core.interfaces import IdentityStore

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves, or creates, the local account a run targets.

    Parameters
    ----------
    store:
        The host's :class:`IdentityStore`.  Creation is the only mutating
        call this class ever makes on it.
    """

    def __init__(self, store: IdentityStore) -> None:
        self._store: IdentityStore = store

    def resolve_or_create(
        self,
        name: str | None = None,
        credential: Credential | None = None,
        *,
        create: bool = False,
    ) -> Identity:
        """Return the identity selected by *name* / *create*.

        Parameters
        ----------
        name:
            Account name.  When ``None`` and *create* is false, the
            invoking operator's own account is returned.
        credential:
            Password for the new account; mandatory when *create* is set.
        create:
            Create *name* if it does not exist yet.

        Raises
        ------
        MissingCredential
            *create* is set but *credential* is missing or empty.
        UnknownIdentity
            *name* does not exist and *create* is not set.
        IdentityCreationFailure
            The identity store refused to create the account.
        """
        if create:
            if not credential:
                raise MissingCredential(
                    f"Cannot create account '{name}' without a password",
                    details={"name": name},
                )
            if not name:
                raise UnknownIdentity("Account creation needs a name")
            if self._store.exists(name):
                logger.info("Account '%s' already exists; not re-creating it", name)
                return Identity(
                    name=name, exists=True, source=IdentitySource.EXPLICIT,
                )
            logger.info("Creating local account '%s'", name)
            self._store.create(name, credential)
            return Identity(
                name=name,
                exists=True,
                source=IdentitySource.CREATED,
                credential=credential,
            )

        if name is None:
            session = self._store.session_user()
            logger.debug("No account named; using session account '%s'", session)
            return Identity(name=session, exists=True, source=IdentitySource.SESSION)

        if not self._store.exists(name):
            raise UnknownIdentity(
                f"No local account named '{name}'",
                details={"name": name},
            )
        return Identity(name=name, exists=True, source=IdentitySource.EXPLICIT)

    def require_existing(self, identity: Identity) -> Identity:
        """Check that *identity* is usable as a grant target.

        Raises
        ------
        UnknownIdentity
            The identity was never resolved, or its account has since
            disappeared from the store.
        """
        if not identity.exists or not self._store.exists(identity.name):
            raise UnknownIdentity(
                f"No local account named '{identity.name}'",
                details={"name": identity.name},
            )
        return identity
