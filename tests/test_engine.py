import pytest

from fhereveal.contracts.base import Ledger
from fhereveal.exceptions import (
    AlreadyFinalized,
    ConfidentialConditionError,
    HostNotAuthorized,
    InvalidOrExpired,
    OrderMismatch,
    ProofVerificationFailed,
    RequesterNotAuthorized,
    RequirementError,
    Unauthorized,
)
from fhereveal.registry import RevealStatus
from fhereveal.types import EncryptedType

U32 = EncryptedType.EUINT32


@pytest.fixture
def scores(engine):
    """Two persistent handles for 30 and 45."""
    with engine.execution("alice"):
        a = engine.create(U32, 30)
        b = engine.create(U32, 45)
        engine.grant_self(a)
        engine.grant_self(b)
    return a, b


@pytest.fixture
def pending(engine, fhe, scores):
    """The reveal of the maximum of the scores and its index."""
    with engine.execution("alice"):
        best, index = fhe.argmax(scores)
        engine.grant_self(best)
        engine.grant_self(index)
        key = engine.request_reveal([best, index])
    return key


def test_end_to_end(engine, fhe, scores, peek, decrypt):
    with engine.execution("alice"):
        best, index = fhe.argmax(scores)
        assert (peek(best), peek(index)) == (45, 1)
        engine.grant_self(best)
        engine.grant_self(index)
        key = engine.request_reveal([best, index], context={"round": 1})

    assert engine.lookup(key).status is RevealStatus.PENDING
    values, proof = decrypt(key)
    assert values == [45, 1]

    result = engine.finalize(key, values, proof)
    assert result.status is RevealStatus.FINALIZED
    assert result.plaintexts == (45, 1)
    assert result.context == {"round": 1}
    assert result.receiver == "host"
    assert engine.lookup(key).status is RevealStatus.FINALIZED

    with pytest.raises(AlreadyFinalized):
        engine.finalize(key, values, proof)


def test_handle_immutability(engine, fhe, scores, peek):
    a, b = scores
    with engine.execution("alice"):
        fhe.add(a, b)
        fhe.sub(a, 1)
        fhe.select(fhe.gt(a, b), a, b)
    assert (peek(a), peek(b)) == (30, 45)
    assert peek(a) == peek(a)


def test_self_grant_precondition(engine, fhe):
    with engine.execution("alice"):
        h = engine.create(U32, 7)
    minted = len(engine.store)

    with pytest.raises(HostNotAuthorized):
        fhe.add(h, 1)
    with pytest.raises(HostNotAuthorized):
        engine.request_reveal([h])
    with pytest.raises(Unauthorized):
        engine.grant_permanent(h, "bob")

    assert len(engine.store) == minted
    assert engine.registry.pending() == []
    assert not engine.acl.is_reveal_eligible(h)


def test_reveal_needs_permanent_host_grant(engine, decrypt):
    with engine.execution("alice"):
        h = engine.create(U32, 42)
        assert engine.is_authorized(h, "host")
        with pytest.raises(HostNotAuthorized):
            engine.request_reveal([h])
        assert not engine.acl.is_reveal_eligible(h)

        engine.grant_self(h)
        key = engine.request_reveal([h])

    values, proof = decrypt(key)
    assert engine.finalize(key, values, proof).plaintexts == (42,)


def test_request_reveal_checks_all_handles_first(engine, scores):
    with engine.execution("alice"):
        stray = engine.create(U32, 1)
    with pytest.raises(HostNotAuthorized):
        engine.request_reveal([scores[0], stray])
    assert not engine.acl.is_reveal_eligible(scores[0])


def test_at_most_once_finalize(engine, pending, decrypt):
    ledger = Ledger(engine.journal)
    values, proof = decrypt(pending)

    def settle():
        with engine.execution():
            result = engine.finalize(pending, values, proof)
            ledger.pay("winner", result.plaintexts[0])

    settle()
    with pytest.raises(AlreadyFinalized):
        settle()
    assert ledger.payout_count == 1
    assert ledger.balance_of("winner") == 45


def test_order_sensitivity(engine, pending, decrypt):
    values, proof = decrypt(pending)
    swapped = list(reversed(pending.handles))
    with pytest.raises(ProofVerificationFailed) as excinfo:
        engine.finalize(swapped, values, proof)
    assert isinstance(excinfo.value, OrderMismatch)
    assert engine.finalize(pending.handles, values, proof).plaintexts == (45, 1)


def test_bad_proof_leaves_state_untouched(engine, env, pending, decrypt):
    values, proof = decrypt(pending)
    with pytest.raises(ProofVerificationFailed):
        engine.finalize(pending, [44, 1], proof)
    with pytest.raises(ProofVerificationFailed):
        engine.finalize(pending, values, b"\x00")
    with pytest.raises(ProofVerificationFailed):
        engine.finalize(pending, values[:1], proof)

    weak = env.public_decrypt(pending.handles, signers=[0, 1]).decryption_proof
    with pytest.raises(ProofVerificationFailed):
        engine.finalize(pending, values, weak)

    assert engine.lookup(pending).status is RevealStatus.PENDING
    assert engine.finalize(pending, values, proof).plaintexts == (45, 1)


def test_finalized_plaintexts_follow_handle_types(engine, decrypt):
    with engine.execution("alice"):
        one = engine.create(U32, 1)
        flag = engine.create(EncryptedType.EBOOL, True)
        engine.grant_self(one)
        engine.grant_self(flag)
        key = engine.request_reveal([one, flag])

    _, proof = decrypt(key)
    plaintexts = engine.finalize(key, [True, 1], proof).plaintexts
    assert plaintexts == (1, True)
    assert type(plaintexts[0]) is int
    assert type(plaintexts[1]) is bool


def test_finalize_unknown_key(engine, scores, decrypt):
    with pytest.raises(InvalidOrExpired):
        engine.finalize(list(scores), [30, 45], b"")


def test_cancelled_reveal(engine, pending, decrypt):
    values, proof = decrypt(pending)
    engine.cancel_reveal(pending)
    with pytest.raises(InvalidOrExpired) as excinfo:
        engine.finalize(pending, values, proof)
    assert not isinstance(excinfo.value, AlreadyFinalized)


def test_expire_reveals(engine, clock, pending, scores):
    clock.advance(100)
    fresh = engine.request_reveal([scores[0]])
    assert engine.expire_reveals(max_age=50) == [pending]
    assert engine.lookup(pending).status is RevealStatus.INVALID
    assert engine.lookup(fresh).is_pending


def test_transient_grants_expire(engine):
    with engine.execution("alice"):
        h = engine.create(U32, 7)
        engine.grant_transient(h, "bob")
        assert engine.is_authorized(h, "bob")
        assert engine.is_authorized(h, "host")
    assert not engine.is_authorized(h, "bob")
    assert not engine.is_authorized(h, "host")


def test_transient_grants_expire_on_abort(engine):
    with pytest.raises(RequirementError):
        with engine.execution("alice"):
            h = engine.create(U32, 7)
            engine.grant_self(h)
            engine.grant_transient(h, "bob")
            engine.require(False, "abort")
    assert not engine.acl.grantees(h)


def test_rollback_is_all_or_nothing(engine, fhe, scores):
    minted = len(engine.store)
    with pytest.raises(RequirementError):
        with engine.execution("alice"):
            total = fhe.add(*scores)
            engine.grant_self(total)
            engine.grant_permanent(total, "alice")
            engine.request_reveal([total])
            engine.require(False, "abort")

    assert len(engine.store) == minted
    assert not engine.exists(total)
    assert not engine.is_authorized(total, "alice")
    assert engine.lookup([total]) is None


def test_nested_executions_join(engine):
    with engine.execution("alice"):
        h = engine.create(U32, 1)
        with engine.execution("alice"):
            engine.grant_self(h)
        assert engine.sender == "alice"
        with pytest.raises(RuntimeError):
            with engine.execution("bob"):
                pass
    assert engine.is_authorized(h, "host")
    assert not engine.in_execution


def test_require_refuses_handles(engine, scores):
    with pytest.raises(ConfidentialConditionError):
        engine.require(scores[0])


def test_require_sender_allowed(engine, scores):
    a, _ = scores
    engine.grant_permanent(a, "alice")
    with engine.execution("alice"):
        engine.require_sender_allowed(a)
    with pytest.raises(RequesterNotAuthorized):
        with engine.execution("bob"):
            engine.require_sender_allowed(a)


def test_revoke(engine, scores):
    a, _ = scores
    engine.grant_permanent(a, "alice")
    assert engine.revoke(a, "alice")
    assert not engine.is_authorized(a, "alice")


def test_collect(engine, scores):
    a, _ = scores
    engine.grant_permanent(a, "alice")
    engine.collect(a)
    assert not engine.exists(a)
    assert not engine.is_authorized(a, "alice")


def test_request_reveal_is_idempotent(engine, scores):
    key = engine.request_reveal([scores[0]])
    assert engine.request_reveal([scores[0]]) == key
    assert len(engine.registry.pending()) == 1
