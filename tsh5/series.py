"""In-memory time series types, their metadata, and the type registry."""
import datetime
import uuid as _uuid
from collections import OrderedDict

import numpy as np

from .errors import UnresolvableTypeError, UnsupportedDataKindError


EPOCH = datetime.datetime(1970, 1, 1)
MILLISECOND = datetime.timedelta(milliseconds=1)


def to_milliseconds(duration):
    """
    Converts a duration to a whole number of milliseconds.

    Parameters
    ----------
    duration : datetime.timedelta
        The duration to convert.

    Examples
    --------
    >>> to_milliseconds(datetime.timedelta(hours=1))
    3600000
    >>> to_milliseconds(datetime.timedelta(microseconds=1))
    Traceback (most recent call last):
        ...
    ValueError: 0:00:00.000001 is not a whole number of milliseconds.
    """
    ms, remainder = divmod(duration, MILLISECOND)
    if remainder:
        raise ValueError("{} is not a whole number of milliseconds.".format(duration))
    return ms


def to_epoch_ms(timestamp):
    """
    Converts a timestamp to milliseconds since the epoch. Naive timestamps
    are taken to be UTC.

    Examples
    --------
    >>> to_epoch_ms(datetime.datetime(1970, 1, 2))
    86400000
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return to_milliseconds(timestamp - EPOCH)


def from_epoch_ms(ms):
    """
    Inverse of :func:`to_epoch_ms`, always returning a naive UTC timestamp.

    Examples
    --------
    >>> from_epoch_ms(86400000)
    datetime.datetime(1970, 1, 2, 0, 0)
    """
    return EPOCH + datetime.timedelta(milliseconds=int(ms))


class Polynomial(tuple):
    """
    A fixed-length tuple of float coefficients; one ``POLYNOMIAL`` cell.

    Examples
    --------
    >>> Polynomial([1, 2])
    (1.0, 2.0)
    """

    def __new__(cls, coefficients):
        return super().__new__(cls, (float(c) for c in coefficients))


class PiecewiseLinear(tuple):
    """
    An ordered tuple of :class:`Polynomial` segments; one ``PWL`` cell.

    Examples
    --------
    >>> PiecewiseLinear([(0, 1), (2, 3)])
    ((0.0, 1.0), (2.0, 3.0))
    """

    def __new__(cls, segments):
        return super().__new__(cls, (Polynomial(s) for s in segments))


def _first_cell(values):
    if isinstance(values, np.ndarray):
        return values.flat[0] if values.size else None
    return values[0] if len(values) else None


def infer_element_type(values):
    """
    Guesses the element type of a sequence of cells from its first cell.

    Examples
    --------
    >>> infer_element_type([1.5, 2.5])
    <class 'float'>
    >>> infer_element_type([(1.0, 2.0)])
    <class 'tsh5.series.Polynomial'>
    >>> infer_element_type([[(0.0, 1.0), (1.0, 2.0)]])
    <class 'tsh5.series.PiecewiseLinear'>
    >>> infer_element_type(np.zeros((4, 2)))
    <class 'tsh5.series.Polynomial'>
    """
    if isinstance(values, np.ndarray) and values.dtype != object:
        # trailing axes are (coefficient,) or (segment, coefficient)
        if values.ndim == 2:
            return Polynomial
        elif values.ndim == 3:
            return PiecewiseLinear
        return values.dtype.type
    cell = _first_cell(values)
    if cell is None:
        return float
    if isinstance(cell, (Polynomial, PiecewiseLinear)):
        return type(cell)
    if isinstance(cell, (tuple, list)):
        if len(cell) and isinstance(cell[0], (tuple, list, np.ndarray)):
            return PiecewiseLinear
        return Polynomial
    return type(cell)


def as_cells(values, element_type):
    """Normalizes a 1-D sequence of cells into a numpy array."""
    if issubclass(element_type, (Polynomial, PiecewiseLinear)):
        cells = np.empty(len(values), dtype=object)
        for i, cell in enumerate(values):
            cells[i] = element_type(cell)
        return cells
    return np.asarray(values)


_TYPE_REGISTRY = {}


def register_time_series_type(cls):
    """Class decorator that makes a series type storable and resolvable by name."""
    _TYPE_REGISTRY[(cls.__module__, cls.__name__)] = cls
    return cls


def get_type_strings(cls):
    """
    Returns the ``(module, name)`` tag stored for a series type.

    Examples
    --------
    >>> get_type_strings(SingleTimeSeries)
    ('tsh5.series', 'SingleTimeSeries')
    """
    key = (cls.__module__, cls.__name__)
    if _TYPE_REGISTRY.get(key) is not cls:
        raise UnresolvableTypeError(
            "{} is not a registered time series type".format(cls.__name__)
        )
    return key


def get_type_from_strings(module, name):
    """Resolves a stored ``(module, name)`` tag back to its series type."""
    try:
        return _TYPE_REGISTRY[(module, name)]
    except KeyError:
        raise UnresolvableTypeError(
            "no time series type is registered as {}.{}".format(module, name)
        ) from None


class TimeSeriesMetadata:
    """
    What a caller knows about a stored time series, independent of the
    stored payload.
    """

    def __init__(self, time_series_uuid, initial_timestamp, resolution):
        self.time_series_uuid = time_series_uuid
        self.initial_timestamp = initial_timestamp
        self.resolution = resolution


class SingleTimeSeriesMetadata(TimeSeriesMetadata):
    def __init__(self, time_series_uuid, initial_timestamp, resolution, length):
        super().__init__(time_series_uuid, initial_timestamp, resolution)
        self.length = length


class ForecastMetadata(TimeSeriesMetadata):
    """
    Parameters
    ----------
    interval : datetime.timedelta
        Spacing between the starts of successive windows.
    count : int
        Number of windows.
    horizon : int
        Number of rows in each window.
    """

    def __init__(
        self, time_series_uuid, initial_timestamp, resolution, interval, count, horizon
    ):
        super().__init__(time_series_uuid, initial_timestamp, resolution)
        self.interval = interval
        self.count = count
        self.horizon = horizon


class DeterministicMetadata(ForecastMetadata):
    pass


class ProbabilisticMetadata(ForecastMetadata):
    def __init__(
        self,
        time_series_uuid,
        initial_timestamp,
        resolution,
        interval,
        count,
        horizon,
        percentiles,
    ):
        super().__init__(
            time_series_uuid, initial_timestamp, resolution, interval, count, horizon
        )
        self.percentiles = list(percentiles)


class ScenariosMetadata(ForecastMetadata):
    def __init__(
        self,
        time_series_uuid,
        initial_timestamp,
        resolution,
        interval,
        count,
        horizon,
        scenario_count,
    ):
        super().__init__(
            time_series_uuid, initial_timestamp, resolution, interval, count, horizon
        )
        self.scenario_count = scenario_count


class TimeSeriesData:
    """
    Base class of all series values. The ``uuid`` identifies the value
    itself, so two owners holding the same series share one stored entry.
    """

    def __init__(self, initial_timestamp, resolution, element_type, uuid=None):
        self.uuid = _uuid.uuid4() if uuid is None else uuid
        self.initial_timestamp = initial_timestamp
        self.resolution = resolution
        self.element_type = element_type


class StaticTimeSeries(TimeSeriesData):
    """A series with exactly one value per timestamp."""


@register_time_series_type
class SingleTimeSeries(StaticTimeSeries):
    """
    A single sequence of values at a fixed resolution.

    Examples
    --------
    >>> ts = SingleTimeSeries(
    ...     [1.0, 2.0], datetime.datetime(2020, 1, 1), datetime.timedelta(hours=1)
    ... )
    >>> ts.timestamps
    [datetime.datetime(2020, 1, 1, 0, 0), datetime.datetime(2020, 1, 1, 1, 0)]
    """

    def __init__(
        self, data, initial_timestamp, resolution, element_type=None, uuid=None
    ):
        if element_type is None:
            element_type = infer_element_type(data)
        super().__init__(initial_timestamp, resolution, element_type, uuid=uuid)
        self.data = as_cells(data, element_type)

    def __len__(self):
        return len(self.data)

    @property
    def timestamps(self):
        return [self.initial_timestamp + self.resolution * i for i in range(len(self))]

    @property
    def metadata(self):
        return SingleTimeSeriesMetadata(
            self.uuid, self.initial_timestamp, self.resolution, len(self)
        )

    @classmethod
    def from_data(cls, metadata, data):
        """Builds a series from a one-item mapping of start time to values."""
        ((start_time, values),) = data.items()
        return cls(
            values, start_time, metadata.resolution, uuid=metadata.time_series_uuid
        )


class Forecast(TimeSeriesData):
    """
    A set of equally long windows, keyed by window start time.

    Parameters
    ----------
    data : mapping
        Maps each window's start timestamp to its values.
    resolution : datetime.timedelta
        Spacing between rows inside a window.
    interval : datetime.timedelta
        Spacing between the starts of successive windows.
    """

    def __init__(self, data, resolution, interval, element_type=None, uuid=None):
        if not data:
            raise ValueError("a forecast needs at least one window")
        windows = OrderedDict(sorted(data.items()))
        initial_timestamp, first = next(iter(windows.items()))
        if element_type is None:
            element_type = infer_element_type(first)
        super().__init__(initial_timestamp, resolution, element_type, uuid=uuid)
        self.interval = interval
        self.data = OrderedDict(
            (k, self._as_window(v, element_type)) for k, v in windows.items()
        )

    def _as_window(self, values, element_type):
        return as_cells(values, element_type)

    def __len__(self):
        return len(self.data)

    @property
    def count(self):
        return len(self.data)

    @property
    def horizon(self):
        return len(next(iter(self.data.values())))

    def windows(self):
        """The window values, ordered by start time."""
        return list(self.data.values())

    @property
    def metadata(self):
        return DeterministicMetadata(
            self.uuid,
            self.initial_timestamp,
            self.resolution,
            self.interval,
            self.count,
            self.horizon,
        )

    @classmethod
    def from_data(cls, metadata, data):
        return cls(
            data, metadata.resolution, metadata.interval, uuid=metadata.time_series_uuid
        )


class AbstractDeterministic(Forecast):
    """Forecasts with a single value per row in each window."""


@register_time_series_type
class Deterministic(AbstractDeterministic):
    pass


def _interval_offset(metadata):
    offset, remainder = divmod(metadata.interval, metadata.resolution)
    if remainder:
        raise ValueError(
            "interval {} is not a multiple of resolution {}".format(
                metadata.interval, metadata.resolution
            )
        )
    return offset


class DeterministicSingleTimeSeries(AbstractDeterministic):
    """
    Deterministic windows cut out of a stored :class:`SingleTimeSeries` at
    read time. Window ``c`` starts ``(c - 1) * interval`` after the series'
    initial timestamp. This is a read-only view and is not registered as a
    storable type.
    """

    @staticmethod
    def single_time_series_rows(metadata, rows, columns, last_index):
        """
        Translates forecast rows and columns into the 1-based rows of the
        backing single series.

        Examples
        --------
        >>> hour = datetime.timedelta(hours=1)
        >>> m = DeterministicMetadata(None, None, hour, 2 * hour, 3, 4)
        >>> DeterministicSingleTimeSeries.single_time_series_rows(
        ...     m, range(1, 5), range(2, 4), 10
        ... )
        range(3, 9)
        """
        if len(rows) != metadata.horizon:
            raise ValueError(
                "Transforming a SingleTimeSeries to Deterministic requires "
                "a full horizon: {}".format(rows)
            )
        offset = _interval_offset(metadata)
        first = (columns.start - 1) * offset + 1
        last = (columns[-1] - 1) * offset + metadata.horizon
        if last > last_index:
            raise ValueError(
                "windows {} need rows up to {}, but the series has {}".format(
                    columns, last, last_index
                )
            )
        return range(first, last + 1)

    @classmethod
    def from_single_time_series_data(cls, metadata, values, initial_timestamp, columns):
        """
        Cuts windows out of ``values``, the rows returned for
        :meth:`single_time_series_rows`.
        """
        offset = _interval_offset(metadata)
        data = OrderedDict()
        for i, column in enumerate(columns):
            start = i * offset
            window_start = initial_timestamp + metadata.interval * (column - 1)
            data[window_start] = values[start : start + metadata.horizon]
        return cls(
            data, metadata.resolution, metadata.interval, uuid=metadata.time_series_uuid
        )


class _Ensemble(Forecast):
    """Forecasts whose windows are ``rows x members`` float matrices."""

    def __init__(self, data, resolution, interval, members, uuid=None):
        self._members = members
        super().__init__(data, resolution, interval, element_type=float, uuid=uuid)

    def _as_window(self, values, element_type):
        window = np.asarray(values)
        if window.ndim > 2 or window.dtype.kind not in "iuf":
            raise UnsupportedDataKindError(
                "{} windows only hold CONSTANT cells, got {} cells of {}".format(
                    type(self).__name__, window.shape[2:], window.dtype
                )
            )
        window = window.astype(np.float64)
        if window.ndim != 2 or window.shape[1] != self._members:
            raise ValueError(
                "each window must be a rows x {} matrix, got shape {}".format(
                    self._members, window.shape
                )
            )
        return window


@register_time_series_type
class Probabilistic(_Ensemble):
    """Windows of rows x percentiles."""

    def __init__(self, data, resolution, interval, percentiles, uuid=None):
        self.percentiles = list(percentiles)
        super().__init__(data, resolution, interval, len(self.percentiles), uuid=uuid)

    @property
    def metadata(self):
        return ProbabilisticMetadata(
            self.uuid,
            self.initial_timestamp,
            self.resolution,
            self.interval,
            self.count,
            self.horizon,
            self.percentiles,
        )

    @classmethod
    def from_data(cls, metadata, data):
        return cls(
            data,
            metadata.resolution,
            metadata.interval,
            metadata.percentiles,
            uuid=metadata.time_series_uuid,
        )


@register_time_series_type
class Scenarios(_Ensemble):
    """Windows of rows x scenarios."""

    def __init__(self, data, resolution, interval, scenario_count, uuid=None):
        self.scenario_count = scenario_count
        super().__init__(data, resolution, interval, scenario_count, uuid=uuid)

    @property
    def metadata(self):
        return ScenariosMetadata(
            self.uuid,
            self.initial_timestamp,
            self.resolution,
            self.interval,
            self.count,
            self.horizon,
            self.scenario_count,
        )

    @classmethod
    def from_data(cls, metadata, data):
        return cls(
            data,
            metadata.resolution,
            metadata.interval,
            metadata.scenario_count,
            uuid=metadata.time_series_uuid,
        )
