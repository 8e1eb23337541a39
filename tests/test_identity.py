"""Tests for identity resolution.

Covers:
1. Explicit names (existing and unknown).
2. Account creation (with and without a credential, idempotent re-create).
3. Session-account default.
4. ``require_existing`` guard used by the grantors.
"""
from __future__ import annotations

import pytest

from sp_provision.core.errors import MissingCredential, UnknownIdentity
from sp_provision.core.interfaces import IdentityStore, InMemoryIdentityStore
from sp_provision.core.types import Credential, Identity, IdentitySource
from sp_provision.identity.resolver import IdentityResolver

# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture()
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore(["alice"], session_user="operator")


@pytest.fixture()
def resolver(store: InMemoryIdentityStore) -> IdentityResolver:
    return IdentityResolver(store)


# ======================================================================
# Resolution
# ======================================================================


class TestResolveExisting:
    def test_existing_name_resolves(self, resolver: IdentityResolver) -> None:
        identity = resolver.resolve_or_create("alice")
        assert identity.name == "alice"
        assert identity.exists is True
        assert identity.source is IdentitySource.EXPLICIT

    def test_lookup_does_not_mutate(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        resolver.resolve_or_create("alice")
        assert store.mutations == []

    def test_unknown_name_raises(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        with pytest.raises(UnknownIdentity, match="ghost"):
            resolver.resolve_or_create("ghost")
        assert store.mutations == []

    def test_unknown_identity_details(self, resolver: IdentityResolver) -> None:
        with pytest.raises(UnknownIdentity) as exc_info:
            resolver.resolve_or_create("ghost")
        assert exc_info.value.details == {"name": "ghost"}
        assert exc_info.value.code == "SP-E100"

    def test_no_name_defaults_to_session(self, resolver: IdentityResolver) -> None:
        identity = resolver.resolve_or_create()
        assert identity.name == "operator"
        assert identity.exists is True
        assert identity.source is IdentitySource.SESSION


class TestCreate:
    def test_create_new_account(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        identity = resolver.resolve_or_create("bob", Credential("x"), create=True)
        assert identity.exists is True
        assert identity.source is IdentitySource.CREATED
        assert store.exists("bob")
        assert store.mutations == [("create", "bob")]

    def test_create_stores_credential(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        resolver.resolve_or_create("bob", Credential("pw"), create=True)
        assert store.credential_of("bob") == Credential("pw")

    def test_create_without_credential_raises(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        with pytest.raises(MissingCredential):
            resolver.resolve_or_create("bob", None, create=True)
        assert not store.exists("bob")
        assert store.mutations == []

    def test_create_with_empty_credential_raises(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        with pytest.raises(MissingCredential):
            resolver.resolve_or_create("bob", Credential(""), create=True)
        assert not store.exists("bob")

    def test_create_existing_is_noop(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        identity = resolver.resolve_or_create("alice", Credential("x"), create=True)
        assert identity.exists is True
        assert identity.source is IdentitySource.EXPLICIT
        assert store.mutations == []

    def test_create_twice_creates_once(
        self, resolver: IdentityResolver, store: InMemoryIdentityStore
    ) -> None:
        resolver.resolve_or_create("bob", Credential("x"), create=True)
        resolver.resolve_or_create("bob", Credential("x"), create=True)
        assert store.mutations == [("create", "bob")]


class TestRequireExisting:
    def test_unresolved_identity_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(UnknownIdentity):
            resolver.require_existing(Identity(name="alice", exists=False))

    def test_vanished_account_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(UnknownIdentity):
            resolver.require_existing(Identity(name="ghost", exists=True))

    def test_existing_identity_passes(self, resolver: IdentityResolver) -> None:
        identity = resolver.resolve_or_create("alice")
        assert resolver.require_existing(identity) is identity


def test_in_memory_store_satisfies_protocol(store: InMemoryIdentityStore) -> None:
    assert isinstance(store, IdentityStore)


def test_in_memory_store_is_case_insensitive(store: InMemoryIdentityStore) -> None:
    assert store.exists("ALICE")
