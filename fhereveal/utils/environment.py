"""
Wiring of an engine with the mock external services, for tests, examples and prototyping.
"""

import attr

from fhereveal.backend import MockBackend
from fhereveal.consts import DEFAULT_KMS_NODES, DEFAULT_KMS_THRESHOLD
from fhereveal.engine import Engine
from fhereveal.inputs import InputVerifier
from fhereveal.kms import ThresholdDecryptionService


@attr.s
class MockEnvironment:
    """
    An engine together with the services it talks to.

    Args:
        engine (:py:class:`engine.Engine`): The host engine.
        kms (:py:class:`kms.ThresholdDecryptionService`): Mock decryption service.
        inputs (:py:class:`inputs.InputVerifier`): Mock input certification service.
        backend (:py:class:`backend.MockBackend`): Shared arithmetic backend.
    """

    engine = attr.ib()
    kms = attr.ib()
    inputs = attr.ib()
    backend = attr.ib()

    def encrypted_input(self, user):
        """Start building an encrypted input of ``user`` for the engine's host."""
        return self.inputs.encrypted_input(self.engine.address, user)

    def public_decrypt(self, handles, signers=None):
        return self.kms.public_decrypt(self.engine, handles, signers)

    def user_decrypt(self, handle, user):
        return self.kms.user_decrypt(self.engine, handle, user)


def make_mock_environment(
    address="host",
    num_nodes=DEFAULT_KMS_NODES,
    threshold=DEFAULT_KMS_THRESHOLD,
    clock=None,
    seed=None,
):
    """
    Build an engine wired to mock arithmetic, decryption and input services.

    >>> env = make_mock_environment()
    >>> env.engine.address
    'host'
    >>> env.kms.threshold
    3

    Args:
        address (str): Host address.
        num_nodes (int): Number of decryption nodes.
        threshold (int): Signatures needed for a decryption proof.
        clock: Callable returning the current time.
        seed: Seed of the backend randomness.
    """
    backend = MockBackend(seed=seed)
    kms = ThresholdDecryptionService(backend, num_nodes=num_nodes, threshold=threshold)
    inputs = InputVerifier(backend)
    engine = Engine(
        kms.verifier,
        backend=backend,
        input_verifier=inputs.verifying_key,
        address=address,
        clock=clock,
    )
    return MockEnvironment(engine=engine, kms=kms, inputs=inputs, backend=backend)
