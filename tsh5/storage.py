"""The HDF5 time series storage"""
import logging
import os
import shutil
import tempfile
import uuid
import weakref
from collections import namedtuple
from contextlib import contextmanager

import h5py
import numpy as np

from . import codec, ledger
from .errors import NotFoundError, ReadOnlyViolationError
from .reader import read_time_series

logger = logging.getLogger(__name__)

HDF5_TS_ROOT_PATH = "time_series"

StoredEntry = namedtuple(
    "StoredEntry", ["time_series_uuid", "owner_ref", "data", "attributes"]
)


def _make_temp_file(directory):
    fd, path = tempfile.mkstemp(suffix=".h5", dir=directory)
    os.close(fd)
    return path


def _remove_file(path):
    if os.path.isfile(path):
        os.remove(path)


def _get_root(handle):
    return handle[HDF5_TS_ROOT_PATH]


def _get_entry(root, time_series_uuid):
    name = str(time_series_uuid)
    if name not in root:
        raise NotFoundError("UUID {} does not exist".format(name))
    return root[name]


class Hdf5TimeSeriesStorage:
    """
    Stores time series in an HDF5 file, each distinct series exactly once no
    matter how many owners reference it.

    Every operation opens the file, does its work and closes the file again,
    so no handle is held between calls. There is no locking: only one
    writable storage may use a file at a time, while any number of read-only
    storages may read it together.

    A file the storage creates itself (a temp file, or the private copy made
    by :meth:`from_file`) belongs to the storage and is deleted by
    :meth:`close`, or when the storage is garbage collected.

    Examples
    --------
    >>> owner = uuid.UUID(int=1)
    >>> ts = tsh5.SingleTimeSeries(
    ...     [1.0, 2.0, 3.0], datetime.datetime(2020, 1, 1), datetime.timedelta(hours=1)
    ... )
    >>> with Hdf5TimeSeriesStorage() as storage:
    ...     storage.store(owner, "load", ts)
    ...     storage.read(tsh5.SingleTimeSeries, ts.metadata, rows=range(2, 4)).data
    array([2., 3.])
    """

    def __init__(
        self, filename=None, directory=None, read_only=False, create_file=True
    ):
        """
        Creates a :obj:`Hdf5TimeSeriesStorage`.

        Parameters
        ----------
        filename : str, optional
            The path of the HDF5 file. If not given, a temp file is created.
        directory : str, optional
            Where to create the temp file, when no filename is given. Set this
            when the data is larger than the temp filesystem can hold.
        read_only : bool
            If True, forbid all changes and read ``filename`` in place. Several
            read-only storages may read the same file at once.
        create_file : bool
            If True, and not read-only, write a new empty container to the
            file, replacing anything already there. If False, ``filename``
            must already exist. A temp file is always initialized.
        """
        owned = filename is None
        if owned:
            if read_only:
                raise ValueError("a read-only storage needs an existing file")
            filename = _make_temp_file(directory)
        self.file_path = os.path.abspath(os.fspath(filename))
        self.read_only = read_only
        self.closed = False
        self._finalizer = None
        if owned:
            self._take_ownership()

        must_exist = read_only or not (create_file or owned)
        if must_exist and not os.path.isfile(self.file_path):
            raise NotFoundError(
                "time series storage {} does not exist".format(self.file_path)
            )
        if not read_only and (create_file or owned):
            self._make_file()
        logger.debug(
            "Constructed new Hdf5TimeSeriesStorage %s read_only=%s",
            self.file_path,
            read_only,
        )

    @classmethod
    def from_file(cls, filename, read_only=False, directory=None):
        """
        Loads a storage from an existing file. Unless ``read_only``, the
        storage works on a private copy made in ``directory`` (or the temp
        directory), so the original file is never changed.
        """
        if not os.path.isfile(filename):
            raise NotFoundError(
                "time series storage {} does not exist".format(filename)
            )
        if read_only:
            file_path = filename
        else:
            file_path = _make_temp_file(directory)
            try:
                shutil.copyfile(filename, file_path)
            except OSError:
                _remove_file(file_path)
                raise
        storage = cls(filename=file_path, read_only=read_only, create_file=False)
        if not read_only:
            storage._take_ownership()
        logger.info(
            "Loaded time series from storage file existing=%s new=%s",
            filename,
            storage.file_path,
        )
        return storage

    def _take_ownership(self):
        self._finalizer = weakref.finalize(self, _remove_file, self.file_path)

    def close(self):
        """Deletes the file if the storage created it. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        if self._finalizer is not None:
            self._finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @contextmanager
    def _open(self, mode="r"):
        if self.closed:
            raise IOError("time series storage {} is closed".format(self.file_path))
        with h5py.File(self.file_path, mode) as handle:
            yield handle

    def _make_file(self):
        with self._open("w") as handle:
            handle.create_group(HDF5_TS_ROOT_PATH)

    def _check_read_only(self):
        if self.read_only:
            raise ReadOnlyViolationError(
                "Operation not permitted; this time series file is read-only"
            )

    def store(self, owner_uuid, name, series):
        """
        Stores ``series`` for the owner, which refers to it as ``name``. A
        series whose UUID is already stored only gains the reference.
        """
        self._check_read_only()
        time_series_uuid = str(series.uuid)
        owner_ref = ledger.make_owner_ref(owner_uuid, name)
        with self._open("r+") as handle:
            root = _get_root(handle)
            if time_series_uuid not in root:
                # encode first, so a series that cannot be encoded leaves no group
                data = codec.to_array(series)
                attributes = codec.make_attributes(series)
                group = root.create_group(time_series_uuid)
                group.create_dataset(codec.DATA, data=data)
                group.attrs.update(attributes)
                ledger.write_references(group, [owner_ref])
                logger.debug(
                    "Create new time series entry %s for %s",
                    time_series_uuid,
                    owner_ref,
                )
            else:
                logger.debug(
                    "Add reference to existing time series entry %s for %s",
                    time_series_uuid,
                    owner_ref,
                )
                ledger.append_reference(root[time_series_uuid], owner_ref)

    def add_reference(self, owner_uuid, name, time_series_uuid):
        """Adds a reference from the owner to an already stored series."""
        self._check_read_only()
        owner_ref = ledger.make_owner_ref(owner_uuid, name)
        with self._open("r+") as handle:
            group = _get_entry(_get_root(handle), time_series_uuid)
            ledger.append_reference(group, owner_ref)
            logger.debug(
                "Add reference to existing time series entry %s for %s",
                time_series_uuid,
                owner_ref,
            )

    def remove_reference(self, time_series_uuid, owner_uuid, name):
        """
        Removes the owner's reference to a series. Returns True if it was the
        last reference, in which case the series is deleted too.

        Raises
        ------
        NotFoundError
            If the series is not stored.
        ReferenceNotFoundError
            If the reference was not recorded exactly once.
        """
        self._check_read_only()
        owner_ref = ledger.make_owner_ref(owner_uuid, name)
        with self._open("r+") as handle:
            root = _get_root(handle)
            group = _get_entry(root, time_series_uuid)
            if ledger.remove_reference(group, owner_ref):
                logger.debug("%s has no more references; delete it.", group.name)
                del root[str(time_series_uuid)]
                return True
        return False

    def read(self, time_series_type, metadata, rows=None, columns=None):
        """
        Reads a window of a stored series as ``time_series_type``.

        Parameters
        ----------
        time_series_type : type
            The requested series type.
        metadata : TimeSeriesMetadata
            Identifies the series through its ``time_series_uuid``.
        rows : range, optional
            1-based row indices; the whole time axis if not given.
        columns : range, optional
            1-based forecast window indices; all windows if not given.
        """
        with self._open("r") as handle:
            group = _get_entry(_get_root(handle), metadata.time_series_uuid)
            return read_time_series(time_series_type, group, metadata, rows, columns)

    def clear(self):
        """
        Removes all series. The file does not shrink until it is repacked
        with ``h5repack``.
        """
        self._check_read_only()
        with self._open("r+") as handle:
            del handle[HDF5_TS_ROOT_PATH]
            handle.create_group(HDF5_TS_ROOT_PATH)
        logger.info("Cleared all time series.")

    def count(self):
        """The number of distinct stored series."""
        with self._open("r") as handle:
            return len(_get_root(handle))

    __len__ = count

    def iter_entries(self):
        """
        Yields a :obj:`StoredEntry` per stored series and reference. The file
        stays open until the iteration finishes or is abandoned.
        """
        with self._open("r") as handle:
            for name, group in _get_root(handle).items():
                time_series_uuid = uuid.UUID(name)
                data = group[codec.DATA][()]
                attributes = dict(group.attrs)
                for owner_ref in ledger.read_references(group):
                    yield StoredEntry(time_series_uuid, owner_ref, data, attributes)

    __iter__ = iter_entries

    def copy_to(self, dst):
        """Writes a copy of the storage file to ``dst``."""
        if self.closed:
            raise IOError("time series storage {} is closed".format(self.file_path))
        shutil.copyfile(self.file_path, dst)
        logger.info("Copied time series storage %s to %s", self.file_path, dst)

    def compare(self, other):
        return compare_storages(self, other)


def _sort_key(entry):
    return entry.owner_ref, str(entry.time_series_uuid)


def compare_storages(x, y):
    """
    Compares every entry and reference of two storages. Returns False at the
    first difference, which is logged rather than raised.
    """
    items_x = sorted(x.iter_entries(), key=_sort_key)
    items_y = sorted(y.iter_entries(), key=_sort_key)
    if len(items_x) != len(items_y):
        logger.error("lengths don't match: %s %s", len(items_x), len(items_y))
        return False

    for item_x, item_y in zip(items_x, items_y):
        if item_x.time_series_uuid != item_y.time_series_uuid:
            logger.error(
                "time series UUIDs don't match: %s %s",
                item_x.time_series_uuid,
                item_y.time_series_uuid,
            )
            return False
        if item_x.owner_ref != item_y.owner_ref:
            logger.error(
                "owner references don't match: %s %s",
                item_x.owner_ref,
                item_y.owner_ref,
            )
            return False
        if not np.array_equal(item_x.data, item_y.data):
            logger.error("data doesn't match: %s %s", item_x.data, item_y.data)
            return False
        if sorted(item_x.attributes) != sorted(item_y.attributes):
            logger.error(
                "attribute keys don't match: %s %s",
                item_x.attributes,
                item_y.attributes,
            )
            return False
        for key, value in item_x.attributes.items():
            if not np.array_equal(value, item_y.attributes[key]):
                logger.error(
                    "attribute %s doesn't match: %s %s",
                    key,
                    value,
                    item_y.attributes[key],
                )
                return False

    return True
