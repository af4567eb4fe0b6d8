import pytest

from fakes.sources import FakeCircuits, FakeDocuments, FakeResults


@pytest.fixture
def results():
    return FakeResults()


@pytest.fixture
def documents():
    return FakeDocuments()


@pytest.fixture
def circuits():
    return FakeCircuits()
