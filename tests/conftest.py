import pytest

from fhereveal.utils import make_mock_environment


class FakeClock:
    def __init__(self, start=1000.0):
        self.time = start

    def __call__(self):
        return self.time

    def advance(self, seconds):
        self.time += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def env(clock):
    return make_mock_environment(clock=clock, seed=42)


@pytest.fixture
def engine(env):
    return env.engine


@pytest.fixture
def fhe(engine):
    return engine.fhe


@pytest.fixture
def kms(env):
    return env.kms


def reveal(env, key):
    """Decrypt a pending reveal with the mock service, returning ``(clear values, proof)``."""
    decrypted = env.public_decrypt(key.handles)
    return decrypted.clear_values, decrypted.decryption_proof


@pytest.fixture
def decrypt(env):
    return lambda key: reveal(env, key)


@pytest.fixture
def peek(env):
    """Read the clear value behind a handle, bypassing access control."""
    return lambda handle: env.backend.decrypt(env.engine.store.ciphertext(handle))
