import uuid

import pytest

import tsh5


@pytest.fixture
def storage(tmp_path):
    with tsh5.Hdf5TimeSeriesStorage(directory=str(tmp_path)) as s:
        yield s


@pytest.fixture
def owner_a():
    return uuid.UUID(int=0xA)


@pytest.fixture
def owner_b():
    return uuid.UUID(int=0xB)
