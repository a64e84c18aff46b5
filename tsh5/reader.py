"""
Windowed reads of stored entries.

``rows`` and ``columns`` are ranges of 1-based indices along the time axis
and the forecast window axis; None selects the full stored extent. Bounds
are not checked against the stored extent here, that is the caller's job.
"""
import logging
from collections import OrderedDict

import numpy as np

from . import codec
from .errors import MalformedPayloadShapeError, TypeMismatchError
from .series import (
    AbstractDeterministic,
    DeterministicSingleTimeSeries,
    Probabilistic,
    Scenarios,
    SingleTimeSeries,
    StaticTimeSeries,
)

logger = logging.getLogger(__name__)


def _full_range(length):
    return range(1, length + 1)


def _check_type(actual_type, time_series_type):
    if actual_type is not time_series_type:
        raise TypeMismatchError(
            "stored type {} does not match the requested type {}".format(
                actual_type.__name__, time_series_type.__name__
            )
        )


def read_static(time_series_type, group, metadata, rows, columns):
    dataset = group[codec.DATA]
    if rows is None:
        rows = _full_range(dataset.shape[0])
    attributes = codec.read_attributes(group, rows)
    _check_type(attributes["type"], time_series_type)
    logger.debug("deserializing a StaticTimeSeries %s", time_series_type.__name__)
    cells = codec.read_single(dataset, attributes["data_kind"], rows)
    data = OrderedDict([(attributes["start_time"], cells)])
    return time_series_type.from_data(metadata, data)


def _deterministic_from_single_time_series(group, metadata, rows, columns):
    dataset = group[codec.DATA]
    if rows is None:
        rows = _full_range(metadata.horizon)
    if columns is None:
        columns = _full_range(metadata.count)
    sts_rows = DeterministicSingleTimeSeries.single_time_series_rows(
        metadata, rows, columns, dataset.shape[0]
    )
    logger.debug(
        "deserializing Deterministic windows %s from SingleTimeSeries rows %s",
        columns,
        sts_rows,
    )
    attributes = codec.read_attributes(group, sts_rows)
    values = codec.read_single(dataset, attributes["data_kind"], sts_rows)
    return DeterministicSingleTimeSeries.from_single_time_series_data(
        metadata, values, attributes["initial_timestamp"], columns
    )


def read_deterministic(time_series_type, group, metadata, rows, columns):
    """
    Reads deterministic windows. An entry stored as a :class:`SingleTimeSeries`
    is cut into windows on the fly instead.
    """
    actual_type = codec.read_type(group)
    if actual_type is SingleTimeSeries:
        return _deterministic_from_single_time_series(group, metadata, rows, columns)
    if not issubclass(actual_type, time_series_type):
        raise TypeMismatchError(
            "stored type {} is not a {}".format(
                actual_type.__name__, time_series_type.__name__
            )
        )

    dataset = group[codec.DATA]
    if rows is None:
        rows = _full_range(dataset.shape[0])
    if columns is None:
        columns = _full_range(dataset.shape[1])
    attributes = codec.read_attributes(group, rows)
    logger.debug("deserializing a Forecast %s", actual_type.__name__)
    data = codec.read_windows(dataset, attributes, rows, columns)
    return actual_type.from_data(metadata, data)


def _read_ensemble(time_series_type, group, metadata, rows, columns, members):
    _check_type(codec.read_type(group), time_series_type)
    dataset = group[codec.DATA]
    if dataset.ndim != 3:
        raise MalformedPayloadShapeError(
            "HDF data array is {}-D array, expected 3-D array.".format(dataset.ndim)
        )
    if rows is None:
        rows = _full_range(dataset.shape[1])
    if columns is None:
        columns = _full_range(dataset.shape[2])

    attributes = codec.read_attributes(group, rows)
    logger.debug("deserializing a Forecast %s", time_series_type.__name__)
    interval = attributes["interval"]
    start_time = attributes["start_time"] + interval * (columns.start - 1)
    row_slice, column_slice = codec.to_slice(rows), codec.to_slice(columns)
    data = OrderedDict()
    if len(columns) == 1:
        data[start_time] = dataset[:members, row_slice, column_slice.start].T
    else:
        # (member, row, column) -> (column, row, member)
        data_read = np.transpose(dataset[:members, row_slice, column_slice], (2, 1, 0))
        for i in range(len(columns)):
            data[start_time + interval * i] = data_read[i]
    return time_series_type.from_data(metadata, data)


def read_probabilistic(time_series_type, group, metadata, rows, columns):
    members = len(metadata.percentiles)
    return _read_ensemble(time_series_type, group, metadata, rows, columns, members)


def read_scenarios(time_series_type, group, metadata, rows, columns):
    members = metadata.scenario_count
    return _read_ensemble(time_series_type, group, metadata, rows, columns, members)


# Looked up along the requested type's MRO; a new series family needs one entry.
_READERS = {
    StaticTimeSeries: read_static,
    AbstractDeterministic: read_deterministic,
    Probabilistic: read_probabilistic,
    Scenarios: read_scenarios,
}


def read_time_series(time_series_type, group, metadata, rows=None, columns=None):
    """
    Reads a window of the entry in ``group`` as ``time_series_type``.

    Parameters
    ----------
    time_series_type : type
        The requested series type.
    group : h5py.Group
        The entry's group.
    metadata : TimeSeriesMetadata
        The caller's metadata; ensembles take their member count from it.
    rows, columns : range, optional
        1-based row and window indices.
    """
    for family in time_series_type.__mro__:
        reader = _READERS.get(family)
        if reader is not None:
            return reader(time_series_type, group, metadata, rows, columns)
    raise TypeMismatchError(
        "no reader is defined for {}".format(time_series_type.__name__)
    )
