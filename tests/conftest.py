import pytest

from support import StubSigner, make_requirement


@pytest.fixture
def requirement():
    return make_requirement()


@pytest.fixture
def signer():
    return StubSigner()
