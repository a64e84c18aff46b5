"""tests windowed reads"""
import datetime
import uuid
from collections import OrderedDict

import numpy as np
import pytest

import tsh5

INITIAL = datetime.datetime(2020, 1, 1)
HOUR = datetime.timedelta(hours=1)
DAY = datetime.timedelta(days=1)


def test_example_scenario(storage, owner_a, owner_b):
    ts = make_deterministic(count=3, horizon=24, interval=DAY)
    storage.store(owner_a, "load", ts)
    storage.add_reference(owner_b, "load2", ts.uuid)

    read = storage.read(tsh5.Deterministic, ts.metadata, range(1, 25), range(2, 3))
    assert list(read.data) == [INITIAL + DAY]
    np.testing.assert_array_equal(read.data[INITIAL + DAY], ts.data[INITIAL + DAY])

    count = storage.count()
    assert storage.remove_reference(ts.uuid, owner_a, "load") is False
    assert storage.count() == count
    assert storage.remove_reference(ts.uuid, owner_b, "load2") is True
    assert storage.count() == count - 1


def test_single_series_row_window(storage, owner_a):
    ts = tsh5.SingleTimeSeries(np.arange(10.0), INITIAL, HOUR)
    storage.store(owner_a, "load", ts)
    read = storage.read(tsh5.SingleTimeSeries, ts.metadata, rows=range(3, 6))
    assert read.initial_timestamp == INITIAL + 2 * HOUR
    assert read.data.tolist() == [2.0, 3.0, 4.0]
    assert read.timestamps == [INITIAL + h * HOUR for h in (2, 3, 4)]


def test_single_series_type_must_match(storage, owner_a):
    ts = make_deterministic()
    storage.store(owner_a, "load", ts)
    with pytest.raises(tsh5.TypeMismatchError):
        storage.read(tsh5.SingleTimeSeries, ts.metadata)


@pytest.mark.parametrize("column", [1, 2, 3, 4])
def test_single_column_key(storage, owner_a, column):
    interval = 6 * HOUR
    ts = make_deterministic(count=4, interval=interval)
    storage.store(owner_a, "load", ts)
    columns = range(column, column + 1)
    read = storage.read(tsh5.Deterministic, ts.metadata, columns=columns)
    key = INITIAL + interval * (column - 1)
    assert list(read.data) == [key]
    np.testing.assert_array_equal(read.data[key], ts.data[key])


def test_full_read_matches_single_column_reads(storage, owner_a):
    ts = make_deterministic(count=4, cells="polynomial")
    storage.store(owner_a, "load", ts)
    full = storage.read(tsh5.Deterministic, ts.metadata, range(1, 25), range(1, 5))
    assert list(full.data) == list(ts.data)
    for column, key in enumerate(full.data, start=1):
        single = storage.read(
            tsh5.Deterministic, ts.metadata, range(1, 25), range(column, column + 1)
        )
        assert single.data[key].tolist() == full.data[key].tolist()


def test_row_and_column_window(storage, owner_a):
    interval = 6 * HOUR
    ts = make_deterministic(count=4, interval=interval, cells="pwl")
    storage.store(owner_a, "load", ts)
    read = storage.read(tsh5.Deterministic, ts.metadata, range(5, 11), range(2, 4))
    for column in (2, 3):
        window_start = INITIAL + interval * (column - 1)
        key = window_start + 4 * HOUR
        assert read.data[key].tolist() == ts.data[window_start][4:10].tolist()
    assert len(read.data) == 2
    assert read.horizon == 6


def test_abstract_deterministic_request(storage, owner_a):
    ts = make_deterministic()
    storage.store(owner_a, "load", ts)
    read = storage.read(tsh5.AbstractDeterministic, ts.metadata)
    assert type(read) is tsh5.Deterministic
    assert read.count == 3


def test_deterministic_type_must_be_compatible(storage, owner_a):
    ts = make_probabilistic()
    storage.store(owner_a, "load", ts)
    with pytest.raises(tsh5.TypeMismatchError):
        storage.read(tsh5.Deterministic, ts.metadata)


def test_deterministic_from_single_series(storage, owner_a):
    values = np.arange(48.0) * 1.5
    ts = tsh5.SingleTimeSeries(values, INITIAL, HOUR)
    storage.store(owner_a, "load", ts)
    interval = 6 * HOUR
    metadata = tsh5.DeterministicMetadata(ts.uuid, INITIAL, HOUR, interval, 5, 24)

    read = storage.read(tsh5.Deterministic, metadata)
    assert type(read) is tsh5.DeterministicSingleTimeSeries
    assert read.uuid == ts.uuid
    assert read.interval == interval
    assert list(read.data) == [INITIAL + interval * c for c in range(5)]
    for c, window in enumerate(read.windows()):
        np.testing.assert_array_equal(window, values[c * 6 : c * 6 + 24])

    subset = storage.read(tsh5.Deterministic, metadata, range(1, 25), range(2, 4))
    assert list(subset.data) == [INITIAL + interval, INITIAL + 2 * interval]
    np.testing.assert_array_equal(subset.windows()[1], values[12:36])


def test_deterministic_from_single_series_needs_full_horizon(storage, owner_a):
    ts = tsh5.SingleTimeSeries(np.arange(48.0), INITIAL, HOUR)
    storage.store(owner_a, "load", ts)
    metadata = tsh5.DeterministicMetadata(ts.uuid, INITIAL, HOUR, 6 * HOUR, 5, 24)
    with pytest.raises(ValueError):
        storage.read(tsh5.Deterministic, metadata, rows=range(1, 10))


def test_deterministic_from_single_series_past_the_end(storage, owner_a):
    ts = tsh5.SingleTimeSeries(np.arange(48.0), INITIAL, HOUR)
    storage.store(owner_a, "load", ts)
    metadata = tsh5.DeterministicMetadata(ts.uuid, INITIAL, HOUR, 6 * HOUR, 6, 24)
    with pytest.raises(ValueError):
        storage.read(tsh5.Deterministic, metadata)


@pytest.mark.parametrize(
    "make, metadata_type",
    [
        ("probabilistic", tsh5.ProbabilisticMetadata),
        ("scenarios", tsh5.ScenariosMetadata),
    ],
)
def test_ensemble_round_trip(storage, owner_a, make, metadata_type):
    ts = make_probabilistic() if make == "probabilistic" else make_scenarios()
    storage.store(owner_a, "load", ts)
    assert isinstance(ts.metadata, metadata_type)
    read = storage.read(type(ts), ts.metadata)
    assert type(read) is type(ts)
    assert list(read.data) == list(ts.data)
    for key, window in ts.data.items():
        np.testing.assert_array_equal(read.data[key], window)


@pytest.mark.parametrize("column", [1, 2, 3])
def test_ensemble_single_column_matches_full_read(storage, owner_a, column):
    ts = make_scenarios()
    storage.store(owner_a, "load", ts)
    full = storage.read(tsh5.Scenarios, ts.metadata)
    columns = range(column, column + 1)
    single = storage.read(tsh5.Scenarios, ts.metadata, columns=columns)
    key = INITIAL + DAY * (column - 1)
    assert list(single.data) == [key]
    assert single.data[key].shape == (24, 4)
    np.testing.assert_array_equal(single.data[key], full.data[key])


def test_ensemble_row_window(storage, owner_a):
    ts = make_probabilistic()
    storage.store(owner_a, "load", ts)
    read = storage.read(tsh5.Probabilistic, ts.metadata, range(3, 7), range(2, 4))
    for column in (2, 3):
        window_start = INITIAL + DAY * (column - 1)
        np.testing.assert_array_equal(
            read.data[window_start + 2 * HOUR], ts.data[window_start][2:6]
        )


def test_ensemble_members_come_from_metadata(storage, owner_a):
    ts = make_probabilistic()
    storage.store(owner_a, "load", ts)
    metadata = ts.metadata
    metadata.percentiles = metadata.percentiles[:2]
    read = storage.read(tsh5.Probabilistic, metadata)
    assert read.percentiles == [10, 50]
    for key, window in ts.data.items():
        np.testing.assert_array_equal(read.data[key], window[:, :2])


def test_ensemble_type_must_match(storage, owner_a):
    ts = make_scenarios()
    storage.store(owner_a, "load", ts)
    metadata = tsh5.ProbabilisticMetadata(
        ts.uuid, INITIAL, HOUR, DAY, ts.count, ts.horizon, [10, 50, 90]
    )
    with pytest.raises(tsh5.TypeMismatchError):
        storage.read(tsh5.Probabilistic, metadata)


def test_read_without_family_reader(storage, owner_a):
    ts = make_deterministic()
    storage.store(owner_a, "load", ts)
    with pytest.raises(tsh5.TypeMismatchError):
        storage.read(tsh5.Forecast, ts.metadata)


def test_read_missing_series(storage):
    metadata = tsh5.SingleTimeSeriesMetadata(uuid.uuid4(), INITIAL, HOUR, 3)
    with pytest.raises(tsh5.NotFoundError):
        storage.read(tsh5.SingleTimeSeries, metadata)


def test_read_with_stepped_range(storage, owner_a):
    ts = tsh5.SingleTimeSeries(np.arange(10.0), INITIAL, HOUR)
    storage.store(owner_a, "load", ts)
    with pytest.raises(ValueError):
        storage.read(tsh5.SingleTimeSeries, ts.metadata, rows=range(1, 10, 2))


def make_deterministic(count=3, horizon=24, interval=DAY, cells="constant"):
    data = OrderedDict()
    for c in range(count):
        rows = np.arange(horizon) + 100.0 * c
        if cells == "constant":
            window = rows
        elif cells == "polynomial":
            window = [(r, r / 3.0) for r in rows]
        else:
            window = [((r, 0.1), (r + 1.0, 0.2)) for r in rows]
        data[INITIAL + interval * c] = window
    return tsh5.Deterministic(data, HOUR, interval)


def make_ensemble_windows(members, count=3, horizon=24):
    values = np.arange(horizon * members, dtype=float).reshape(horizon, members)
    return OrderedDict((INITIAL + DAY * c, values + c / 7.0) for c in range(count))


def make_probabilistic():
    return tsh5.Probabilistic(make_ensemble_windows(3), HOUR, DAY, [10, 50, 90])


def make_scenarios():
    return tsh5.Scenarios(make_ensemble_windows(4), HOUR, DAY, 4)
