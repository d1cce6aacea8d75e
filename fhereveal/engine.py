"""
The host-owned engine: handle store, access control, computation and the two-phase reveal.

One :py:class:`Engine` instance belongs to one host (the contract or service holding the
authoritative state) and is passed explicitly to every call site. Work happens in executions, the
engine's notion of a transaction:

* every mutation of the store, the ACL and the registry is journaled and rolled back if the
  execution raises;
* transient grants are dropped when the execution ends, whatever its outcome.

Engine calls made outside an explicit :py:meth:`Engine.execution` block run in an execution of
their own.
"""

import contextlib
import logging
import time

import attr

from fhereveal.acl import ACL
from fhereveal.backend import MockBackend
from fhereveal.compute import Computation
from fhereveal.exceptions import (
    ConfidentialConditionError,
    HostNotAuthorized,
    InvalidInputProof,
    RequesterNotAuthorized,
    RequirementError,
    UnknownHandleError,
)
from fhereveal.handles import Handle, HandleStore
from fhereveal.inputs import input_digest
from fhereveal.journal import Journal
from fhereveal.ops import infer_result_type
from fhereveal.registry import PendingRevealRegistry, RevealKey
from fhereveal.verifier import RevealVerifier

logger = logging.getLogger(__name__)


@attr.s
class Execution:
    """
    One transaction on the engine.

    Args:
        sender: Party on whose behalf the execution runs.
        started_at (float): Engine time at the start.
    """

    sender = attr.ib(default=None)
    started_at = attr.ib(default=None)


class Engine:
    """
    Confidential-value access control and reveal engine of one host.

    Args:
        kms_verifier: Object with a ``verify(handles, plaintexts, proof) -> bool`` method, usually
            :py:class:`kms.KMSVerifier`.
        backend: Encrypted-arithmetic backend. Defaults to a :py:class:`backend.MockBackend`.
        input_verifier: :py:class:`proofs.VerifyingKey` certifying external inputs.
        address (str): Identity of the host in grant tables.
        clock: Callable returning the current time.
    """

    def __init__(
        self, kms_verifier, backend=None, input_verifier=None, address="host", clock=None
    ):
        if backend is None:
            backend = MockBackend()
        if clock is None:
            clock = time.time

        self.address = address
        self.backend = backend
        self.input_verifier = input_verifier
        self.clock = clock

        self.journal = Journal()
        self.store = HandleStore(backend, address, self.journal)
        self.acl = ACL(self.journal)
        self.registry = PendingRevealRegistry(self.journal)
        self.verifier = RevealVerifier(self.registry, kms_verifier)
        self.fhe = Computation(self)

        self._execution = None

    def now(self):
        return self.clock()

    # Executions.

    @contextlib.contextmanager
    def execution(self, sender=None):
        """
        Run a block as one all-or-nothing execution.

        Nested blocks join the enclosing execution.

        Args:
            sender: Party on whose behalf the block runs.

        Yields:
            :py:class:`Execution`
        """
        if self._execution is not None:
            if sender is not None and sender != self._execution.sender:
                raise RuntimeError(
                    "Cannot switch sender inside an execution of {}".format(
                        self._execution.sender
                    )
                )
            yield self._execution
            return

        execution = Execution(sender=sender, started_at=self.now())
        self._execution = execution
        self.journal.begin()
        try:
            yield execution
        except BaseException as e:
            self.journal.rollback()
            logger.info("Execution of %s aborted: %s", sender, e)
            raise
        else:
            self.journal.commit()
        finally:
            self.acl.clear_transient()
            self._execution = None

    @property
    def in_execution(self):
        return self._execution is not None

    @property
    def sender(self):
        if self._execution is None:
            return None
        return self._execution.sender

    # Public preconditions.

    def require(self, condition, message="Requirement failed"):
        """
        Abort the execution unless a public condition holds.

        Raises:
            ConfidentialConditionError: If handed an encrypted value.
            RequirementError: If the condition is false.
        """
        if isinstance(condition, Handle):
            raise ConfidentialConditionError(
                "Cannot require on an encrypted value, carry it with select() or reveal it"
            )
        if not condition:
            raise RequirementError(message)

    def _check_host(self, handle):
        if not isinstance(handle, Handle):
            raise TypeError("Expected a Handle, got {!r}".format(handle))
        if not self.store.exists(handle):
            raise UnknownHandleError("Unknown handle {!r}".format(handle))
        if not self.acl.is_authorized(handle, self.address):
            raise HostNotAuthorized(
                "Host {} holds no grant on {!r}".format(self.address, handle)
            )

    def require_sender_allowed(self, handle):
        """
        Check that the sender of the current execution holds a grant on ``handle``.

        Raises:
            RequesterNotAuthorized: If it does not.
        """
        sender = self.sender
        if sender is None or not self.acl.is_authorized(handle, sender):
            raise RequesterNotAuthorized(
                "{} holds no grant on {!r}".format(sender, handle)
            )

    # Handles.

    def create(self, enc_type, seed_or_ciphertext):
        """
        Mint a handle for a public constant or a backend ciphertext.

        The host gets a transient grant on the new handle and nobody else gets anything.
        """
        with self.execution():
            handle = self.store.create(enc_type, seed_or_ciphertext)
            self.acl.grant_transient(handle, self.address)
        return handle

    def from_external(self, encrypted_input, index=0):
        """
        Accept one ciphertext of an external encrypted input.

        The input proof must bind the batch to this host and to the sender of the current
        execution.

        Raises:
            InvalidInputProof: If the input cannot be accepted.
        """
        if self.input_verifier is None:
            raise InvalidInputProof("No input verifier configured")
        if encrypted_input.host != self.address:
            raise InvalidInputProof("Input is meant for {}".format(encrypted_input.host))
        if encrypted_input.user != self.sender:
            raise InvalidInputProof(
                "Input belongs to {}, not {}".format(encrypted_input.user, self.sender)
            )
        if not 0 <= index < len(encrypted_input):
            raise InvalidInputProof("No input at index {}".format(index))

        digests = [self.backend.digest(c) for c in encrypted_input.ciphertexts]
        message = input_digest(self.address, self.sender, digests)
        if not self.input_verifier.verify(message, encrypted_input.input_proof):
            raise InvalidInputProof("Input proof is not valid")

        ciphertext = encrypted_input.ciphertexts[index]
        return self.create(self.backend.type_of(ciphertext), ciphertext)

    def derive(self, op, *operands, **params):
        """
        Compute a new handle from input handles through the backend.

        Every input handle must carry a host grant. Typing and grant checks happen before any
        side effect.

        Args:
            op (str): Operation tag, see :py:data:`ops.OPERATIONS`.
            operands: Handles and public integers.
            params: Extra public parameters (``target``, ``upper_bound``).

        Raises:
            HostNotAuthorized: An input lacks the host grant.
            TypeMismatchError: Ill-typed call.
            InvalidOperandError: Bad public operand.
        """
        result_type = infer_result_type(op, operands, params)
        for operand in operands:
            if isinstance(operand, Handle):
                self._check_host(operand)

        with self.execution():
            handle = self.store.derive(op, operands, result_type, params)
            self.acl.grant_transient(handle, self.address)
        return handle

    def exists(self, handle):
        return self.store.exists(handle)

    def collect(self, handle):
        """Garbage collect a handle together with all its grants."""
        with self.execution():
            self.store.discard(handle)
            self.acl.forget(handle)

    # Grants.

    def grant_permanent(self, handle, grantee):
        """
        Grant ``grantee`` durable use of ``handle``. Idempotent.

        Raises:
            HostNotAuthorized: If the host itself holds no grant to share.
        """
        self._check_host(handle)
        with self.execution():
            self.acl.grant_permanent(handle, grantee)

    def grant_transient(self, handle, grantee):
        """Grant ``grantee`` use of ``handle`` for the rest of the current execution."""
        self._check_host(handle)
        with self.execution():
            self.acl.grant_transient(handle, grantee)

    def grant_self(self, handle):
        """
        Give the host a permanent grant on ``handle``.

        Needed to use the handle in a later execution, either as computation input or in a
        reveal request.
        """
        self.grant_permanent(handle, self.address)

    def revoke(self, handle, grantee):
        with self.execution():
            return self.acl.revoke(handle, grantee)

    def is_authorized(self, handle, party):
        return self.acl.is_authorized(handle, party)

    # Two-phase reveal.

    def request_reveal(self, handles, receiver=None, context=None):
        """
        Mark handles for public decryption and register a pending reveal.

        Args:
            handles: Handles whose plaintexts are jointly requested, in the order the proof will
                bind them.
            receiver: Identity the result is meant for; the host by default.
            context: Opaque data returned by :py:meth:`finalize`.

        Returns:
            :py:class:`registry.RevealKey`

        Raises:
            HostNotAuthorized: A handle lacks the permanent host grant, see :py:meth:`grant_self`.
        """
        key = RevealKey.of(handles)
        for handle in key.handles:
            self._check_host(handle)
            if not self.acl.is_permanently_authorized(handle, self.address):
                raise HostNotAuthorized(
                    "Host {} must grant itself {!r} before revealing it".format(
                        self.address, handle
                    )
                )
        if receiver is None:
            receiver = self.address

        with self.execution():
            for handle in key.handles:
                self.acl.mark_reveal_eligible(handle)
            return self.registry.request(key, receiver, context, self.now())

    def lookup(self, key):
        return self.registry.lookup(key)

    def finalize(self, key, plaintexts, proof):
        """
        Verify a decryption proof and consume the pending reveal, once.

        See :py:meth:`verifier.RevealVerifier.finalize`.
        """
        with self.execution():
            return self.verifier.finalize(key, plaintexts, proof, self.now())

    def cancel_reveal(self, key):
        with self.execution():
            return self.registry.cancel(key)

    def expire_reveals(self, max_age):
        """Cancel pending reveals older than ``max_age`` seconds."""
        with self.execution():
            return self.registry.expire(self.now() - max_age)
