import pytest

from fhereveal.acl import ACL, Scope
from fhereveal.handles import Handle
from fhereveal.journal import Journal
from fhereveal.types import EncryptedType


@pytest.fixture
def handle():
    return Handle(b"\x07" * 32, EncryptedType.EUINT64)


def test_permanent_grant_is_idempotent(handle):
    journal = Journal()
    acl = ACL(journal)
    journal.begin()
    acl.grant_permanent(handle, "alice")
    acl.grant_permanent(handle, "alice")
    assert len(journal) == 1
    assert acl.scope_of(handle, "alice") is Scope.PERMANENT


def test_transient_grants_are_cleared(handle):
    acl = ACL()
    acl.grant_transient(handle, "bob")
    assert acl.is_authorized(handle, "bob")
    assert acl.scope_of(handle, "bob") is Scope.TRANSIENT
    acl.clear_transient()
    assert not acl.is_authorized(handle, "bob")
    assert acl.scope_of(handle, "bob") is None


def test_permanent_wins_over_transient(handle):
    acl = ACL()
    acl.grant_transient(handle, "alice")
    acl.grant_permanent(handle, "alice")
    acl.clear_transient()
    assert acl.is_permanently_authorized(handle, "alice")


def test_revoke(handle):
    acl = ACL()
    acl.grant_permanent(handle, "alice")
    assert acl.revoke(handle, "alice")
    assert not acl.revoke(handle, "alice")
    assert not acl.is_authorized(handle, "alice")


def test_grantees(handle):
    acl = ACL()
    acl.grant_permanent(handle, "alice")
    acl.grant_transient(handle, "bob")
    assert acl.grantees(handle) == {"alice", "bob"}


def test_reveal_eligibility(handle):
    acl = ACL()
    assert not acl.is_reveal_eligible(handle)
    acl.mark_reveal_eligible(handle)
    assert acl.is_reveal_eligible(handle)


def test_rollback_restores_grants(handle):
    journal = Journal()
    acl = ACL(journal)
    acl.grant_permanent(handle, "alice")

    journal.begin()
    acl.revoke(handle, "alice")
    acl.grant_permanent(handle, "bob")
    acl.mark_reveal_eligible(handle)
    journal.rollback()

    assert acl.is_authorized(handle, "alice")
    assert not acl.is_authorized(handle, "bob")
    assert not acl.is_reveal_eligible(handle)


def test_forget(handle):
    journal = Journal()
    acl = ACL(journal)
    acl.grant_permanent(handle, "alice")
    acl.mark_reveal_eligible(handle)

    journal.begin()
    acl.forget(handle)
    assert acl.grantees(handle) == set()
    assert not acl.is_reveal_eligible(handle)
    journal.rollback()

    assert acl.is_authorized(handle, "alice")
    assert acl.is_reveal_eligible(handle)
