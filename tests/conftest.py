import pytest

from studyflow import create_study
from studyflow.samplers import RandomSampler
from studyflow.storage import InMemoryStorage, SQLiteStorage


@pytest.fixture
def storage():
    """A fresh in-memory storage."""
    return InMemoryStorage()


@pytest.fixture
def sqlite_storage(tmp_path):
    """A SQLite storage backed by a temporary file."""
    s = SQLiteStorage(f"sqlite:///{tmp_path / 'studies.db'}")
    yield s
    s.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_storage(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "memory":
        return InMemoryStorage()
    return SQLiteStorage(str(tmp_path / "studies.db"))


@pytest.fixture
def study(storage):
    """A minimizing study with a seeded random sampler."""
    return create_study(study_name="test_study", storage=storage, sampler=RandomSampler(seed=0))
