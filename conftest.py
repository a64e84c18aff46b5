import datetime
import uuid

import numpy
import h5py
import pytest


@pytest.fixture(autouse=True)
def temp_h5(tmp_path):
    fname = tmp_path / "temp.h5"
    return fname


@pytest.fixture(autouse=True)
def add_doctest_vars(doctest_namespace, temp_h5):
    import tsh5

    doctest_namespace["np"] = numpy
    doctest_namespace["h5py"] = h5py
    doctest_namespace["tsh5"] = tsh5
    doctest_namespace["datetime"] = datetime
    doctest_namespace["uuid"] = uuid
    doctest_namespace["temp_h5"] = temp_h5
