"""
Deduplicated time series storage built on HDF5 (h5py)

Model
-----

Many components may hold the same time series. The storage keeps every
distinct series value once, keyed by the UUID of the value, and records which
``(component uuid, name)`` pairs refer to it. All series live in one HDF5
file under the ``/time_series`` group:

* ``/time_series/<uuid>/data``: the values. The shape depends on the series
  type and on the element encoding, the *data kind*, see :mod:`tsh5.codec`.
* attributes of ``/time_series/<uuid>``: ``source_module`` and
  ``logical_type`` name the in-memory type to rebuild on read;
  ``initial_timestamp`` (epoch milliseconds), ``resolution`` and, for
  forecasts, ``interval`` (milliseconds) describe the time axis; and
  ``data_kind`` is one of ``CONSTANT``, ``POLYNOMIAL`` or ``PWL``.
* ``/time_series/<uuid>/components``: the references, one string per owner
  and name. The entry is deleted when its last reference is removed.

Reads take a window of rows (time steps) and, for forecasts, of columns
(forecast windows), both as ranges of 1-based indices, and only read that
window from the file.

Deleting entries or clearing the storage does not shrink the file; run
``h5repack`` on it to reclaim the space.

Quickstart API
--------------

>>> owner = uuid.UUID(int=1)
>>> ts = tsh5.SingleTimeSeries(
...     [1.0, 2.0, 3.0], datetime.datetime(2020, 1, 1), datetime.timedelta(hours=1)
... )
>>> storage = tsh5.Hdf5TimeSeriesStorage(temp_h5)
>>> storage.store(owner, "load", ts)
>>> storage.store(owner, "load_copy", ts)
>>> storage.count()
1
>>> storage.read(tsh5.SingleTimeSeries, ts.metadata).data
array([1., 2., 3.])
>>> storage.remove_reference(ts.uuid, owner, "load")
False
>>> storage.remove_reference(ts.uuid, owner, "load_copy")
True
>>> storage.count()
0
"""

from .codec import DataKind
from .errors import (
    MalformedPayloadShapeError,
    NotFoundError,
    ReadOnlyViolationError,
    ReferenceNotFoundError,
    TimeSeriesStorageError,
    TypeMismatchError,
    UnresolvableTypeError,
    UnsupportedDataKindError,
)
from .ledger import make_owner_ref, parse_owner_ref
from .series import (
    AbstractDeterministic,
    Deterministic,
    DeterministicMetadata,
    DeterministicSingleTimeSeries,
    Forecast,
    PiecewiseLinear,
    Polynomial,
    Probabilistic,
    ProbabilisticMetadata,
    Scenarios,
    ScenariosMetadata,
    SingleTimeSeries,
    SingleTimeSeriesMetadata,
    StaticTimeSeries,
    TimeSeriesData,
    TimeSeriesMetadata,
)
from .storage import Hdf5TimeSeriesStorage, StoredEntry, compare_storages

__version__ = "0.0.1"
