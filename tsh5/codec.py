"""
Encodes series into HDF5 entries and decodes entries back into cells.

Every entry is a group holding a ``data`` dataset. The group's attributes tag
the logical type (``source_module`` and ``logical_type``), the time axis
(``initial_timestamp``, ``resolution`` and, for forecasts, ``interval``, all in
milliseconds) and the ``data_kind``, which fixes the meaning of the trailing
dimensions of ``data``:

* ``CONSTANT``: no trailing dimension, cells are floats.
* ``POLYNOMIAL``: one trailing dimension holding the coefficients.
* ``PWL``: two trailing dimensions, ``(coefficient, segment)``.

Single series are laid out ``(row, ...)`` and deterministic forecasts
``(row, column, ...)``, one column per window. Probabilistic and scenario
forecasts are ``CONSTANT`` only and laid out ``(member, row, column)``.
"""
import datetime
import enum
import numbers
from collections import OrderedDict

import numpy as np

from .errors import MalformedPayloadShapeError, UnsupportedDataKindError
from .series import (
    Forecast,
    PiecewiseLinear,
    Polynomial,
    Probabilistic,
    Scenarios,
    from_epoch_ms,
    get_type_from_strings,
    get_type_strings,
    to_epoch_ms,
    to_milliseconds,
)

DATA = "data"


class DataKind(enum.Enum):
    CONSTANT = "CONSTANT"
    POLYNOMIAL = "POLYNOMIAL"
    PWL = "PWL"


# (single series rank, windowed rank)
_RANKS = {DataKind.CONSTANT: (1, 2), DataKind.POLYNOMIAL: (2, 3), DataKind.PWL: (3, 4)}


def data_kind_of(element_type):
    """
    Classifies an element type into its data kind.

    Examples
    --------
    >>> data_kind_of(int)
    <DataKind.CONSTANT: 'CONSTANT'>
    >>> data_kind_of(Polynomial)
    <DataKind.POLYNOMIAL: 'POLYNOMIAL'>
    >>> data_kind_of(str)
    Traceback (most recent call last):
        ...
    tsh5.errors.UnsupportedDataKindError: <class 'str'> is not supported in time series data
    """
    if issubclass(element_type, PiecewiseLinear):
        return DataKind.PWL
    elif issubclass(element_type, Polynomial):
        return DataKind.POLYNOMIAL
    elif issubclass(element_type, numbers.Real):
        # integers included; they are written as float64
        return DataKind.CONSTANT
    raise UnsupportedDataKindError(
        "{} is not supported in time series data".format(element_type)
    )


def _as_str(value):
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


def _as_data_kind(value):
    try:
        return DataKind(_as_str(value))
    except ValueError:
        raise UnsupportedDataKindError(
            "unknown data kind {!r}".format(_as_str(value))
        ) from None


def make_attributes(series):
    """
    Builds the attribute set tagging an entry for ``series``. ``interval`` is
    only present for forecasts.
    """
    module, name = get_type_strings(type(series))
    attributes = OrderedDict(
        [
            ("source_module", module),
            ("logical_type", name),
            ("initial_timestamp", np.int64(to_epoch_ms(series.initial_timestamp))),
            ("resolution", np.int64(to_milliseconds(series.resolution))),
            ("data_kind", data_kind_of(series.element_type).value),
        ]
    )
    if isinstance(series, Forecast):
        attributes["interval"] = np.int64(to_milliseconds(series.interval))
    return attributes


def read_type(group):
    """Resolves the logical type an entry was stored as."""
    attrs = group.attrs
    return get_type_from_strings(
        _as_str(attrs["source_module"]), _as_str(attrs["logical_type"])
    )


def read_attributes(group, rows):
    """
    Reads an entry's attributes. ``start_time`` is the timestamp of the first
    row in ``rows`` rather than of the whole stored series.
    """
    attrs = group.attrs
    initial_timestamp = from_epoch_ms(attrs["initial_timestamp"])
    resolution = datetime.timedelta(milliseconds=int(attrs["resolution"]))
    attributes = {
        "type": read_type(group),
        "initial_timestamp": initial_timestamp,
        "resolution": resolution,
        "data_kind": _as_data_kind(attrs["data_kind"]),
        "dataset_shape": group[DATA].shape,
        "start_time": initial_timestamp + resolution * (rows.start - 1),
    }
    if "interval" in attrs:
        attributes["interval"] = datetime.timedelta(milliseconds=int(attrs["interval"]))
    return attributes


def to_slice(index_range):
    """
    Converts a range of 1-based indices into a 0-based slice.

    Examples
    --------
    >>> to_slice(range(1, 25))
    slice(0, 24, None)
    >>> to_slice(range(3, 4))
    slice(2, 3, None)
    """
    if index_range.step != 1 or len(index_range) == 0:
        raise ValueError(
            "index ranges must be non-empty with a step of 1, got {}".format(
                index_range
            )
        )
    return slice(index_range.start - 1, index_range[-1])


def _encode_cells(cells, kind):
    if cells.size == 0:
        raise MalformedPayloadShapeError("cannot store an empty time series")
    if kind is DataKind.CONSTANT:
        return np.asarray(cells, dtype=np.float64)
    first = np.asarray(cells.flat[0], dtype=np.float64)
    data = np.empty(cells.shape + first.T.shape, dtype=np.float64)
    for idx in np.ndindex(cells.shape):
        cell = np.asarray(cells[idx], dtype=np.float64)
        if cell.shape != first.shape:
            raise MalformedPayloadShapeError(
                "cell {} has shape {}, expected {}".format(idx, cell.shape, first.shape)
            )
        # PWL cells are (segment, coefficient) in memory, stored transposed
        data[idx] = cell.T
    return data


def _check_horizons(windows):
    horizons = sorted({len(w) for w in windows})
    if len(horizons) != 1:
        raise MalformedPayloadShapeError(
            "all windows must have the same horizon, got {}".format(horizons)
        )
    return horizons[0]


def _stack_windows(windows, kind):
    horizon = _check_horizons(windows)
    if kind is DataKind.CONSTANT:
        return np.stack([np.asarray(w, dtype=np.float64) for w in windows], axis=1)
    cells = np.empty((horizon, len(windows)), dtype=object)
    for c, window in enumerate(windows):
        for r, cell in enumerate(window):
            cells[r, c] = cell
    return cells


def to_array(series):
    """
    Encodes a series into the array stored as an entry's ``data``.

    Examples
    --------
    >>> ts = tsh5.SingleTimeSeries(
    ...     [[(0.0, 1.0), (2.0, 3.0)]],
    ...     datetime.datetime(2020, 1, 1),
    ...     datetime.timedelta(hours=1),
    ... )
    >>> to_array(ts).shape
    (1, 2, 2)
    >>> to_array(ts)[0].tolist()
    [[0.0, 2.0], [1.0, 3.0]]
    """
    kind = data_kind_of(series.element_type)
    if isinstance(series, (Probabilistic, Scenarios)):
        windows = series.windows()
        _check_horizons(windows)
        return np.stack([w.T for w in windows], axis=2)
    elif isinstance(series, Forecast):
        data = _encode_cells(_stack_windows(series.windows(), kind), kind)
        rank = _RANKS[kind][1]
    else:
        data = _encode_cells(series.data, kind)
        rank = _RANKS[kind][0]
    if data.ndim != rank:
        raise MalformedPayloadShapeError(
            "{} {} payload is {}-D array, expected {}-D array.".format(
                kind.value, type(series).__name__, data.ndim, rank
            )
        )
    return data


def get_data_dims(data, kind):
    """
    Validates the rank of a payload for its data kind and splits its shape
    into ``(rows, columns, *cell_shape)``, with ``columns`` set to None when
    the payload holds a single series.

    Examples
    --------
    >>> get_data_dims(np.zeros((24, 2)), DataKind.POLYNOMIAL)
    (24, None, 2)
    >>> get_data_dims(np.zeros((24, 3, 2, 4)), DataKind.PWL)
    (24, 3, 2, 4)
    >>> get_data_dims(np.zeros((24,)), DataKind.PWL)
    Traceback (most recent call last):
        ...
    tsh5.errors.MalformedPayloadShapeError: HDF data array is 1-D array, expected 3-D or 4-D array.
    """
    single, windowed = _RANKS[kind]
    if data.ndim == single:
        return (data.shape[0], None) + data.shape[1:]
    elif data.ndim == windowed:
        return data.shape
    raise MalformedPayloadShapeError(
        "HDF data array is {}-D array, expected {}-D or {}-D array.".format(
            data.ndim, single, windowed
        )
    )


def retransform(data, kind):
    """
    Decodes a materialized payload into cells: a float array for
    ``CONSTANT``, otherwise an object array of :class:`Polynomial` or
    :class:`PiecewiseLinear`. The result is 1-D for a single series and
    ``(row, column)`` for windows.

    Examples
    --------
    >>> retransform(np.array([[1.0, 2.0], [3.0, 4.0]]), DataKind.POLYNOMIAL).tolist()
    [(1.0, 2.0), (3.0, 4.0)]
    """
    rows, columns = get_data_dims(data, kind)[:2]
    if kind is DataKind.CONSTANT:
        return data
    shape = (rows,) if columns is None else (rows, columns)
    cells = np.empty(shape, dtype=object)
    for idx in np.ndindex(shape):
        if kind is DataKind.POLYNOMIAL:
            cells[idx] = Polynomial(data[idx].tolist())
        else:
            cells[idx] = PiecewiseLinear(data[idx].T.tolist())
    return cells


def read_single(dataset, kind, rows):
    """Reads and decodes ``rows`` of a single series payload."""
    cells = retransform(dataset[to_slice(rows)], kind)
    if cells.ndim != 1:
        raise MalformedPayloadShapeError(
            "expected a single series payload, got {}-D cells".format(cells.ndim)
        )
    return cells


def read_windows(dataset, attributes, rows, columns):
    """
    Reads ``rows`` of the windows in ``columns`` from a deterministic
    payload, returning an ordered mapping of window start time to cells.
    A single column is read on its own.
    """
    kind = attributes["data_kind"]
    interval = attributes["interval"]
    start_time = attributes["start_time"] + interval * (columns.start - 1)
    row_slice, column_slice = to_slice(rows), to_slice(columns)
    data = OrderedDict()
    if len(columns) == 1:
        data[start_time] = retransform(dataset[row_slice, column_slice.start], kind)
    else:
        cells = retransform(dataset[row_slice, column_slice], kind)
        for i in range(len(columns)):
            data[start_time + interval * i] = cells[:, i]
    return data
