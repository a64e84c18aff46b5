"""
Tracks which owners reference a stored entry.

Each entry holds a ``components`` dataset of owner references, strings made
by :func:`make_owner_ref`. A reference is recorded at most once. Updates
read the whole list, delete the dataset and write it back; reference counts
per entry are small, so this stays cheap. An update is not atomic: a failure
between the delete and the rewrite leaves the entry without its list.
"""
import logging
import uuid

import h5py
import numpy as np

from .errors import ReferenceNotFoundError

logger = logging.getLogger(__name__)

COMPONENTS = "components"
OWNER_REF_DELIMITER = "__"


def make_owner_ref(owner_uuid, name):
    """
    Makes the reference string recorded for an owner and the name it uses
    for a series.

    Examples
    --------
    >>> make_owner_ref(uuid.UUID(int=1), "load")
    '00000000-0000-0000-0000-000000000001__load'
    """
    return str(owner_uuid) + OWNER_REF_DELIMITER + name


def parse_owner_ref(owner_ref):
    """
    Splits a reference string back into the owner's UUID and the name.

    Examples
    --------
    >>> parse_owner_ref('00000000-0000-0000-0000-000000000001__max__load')
    (UUID('00000000-0000-0000-0000-000000000001'), 'max__load')
    """
    owner, name = owner_ref.split(OWNER_REF_DELIMITER, 1)
    return uuid.UUID(owner), name


def write_references(group, owner_refs):
    """Writes the reference list of an entry, which must not have one yet."""
    group.create_dataset(
        COMPONENTS,
        data=np.array(owner_refs, dtype=object),
        dtype=h5py.string_dtype(),
    )


def read_references(group):
    """
    Reads the reference list of an entry.

    Examples
    --------
    >>> with h5py.File(temp_h5, 'w') as f:
    ...     write_references(f, ["a__x", "b__y"])
    ...     read_references(f)
    ['a__x', 'b__y']
    """
    return group[COMPONENTS].asstr()[()].tolist()


def _rewrite(group, owner_refs):
    del group[COMPONENTS]
    write_references(group, owner_refs)


def append_reference(group, owner_ref):
    """
    Appends a reference unless it is already recorded. Returns whether it
    was appended.
    """
    owner_refs = read_references(group)
    if owner_ref in owner_refs:
        # the same owner may store the same series twice
        return False
    owner_refs.append(owner_ref)
    _rewrite(group, owner_refs)
    logger.debug("Appended %s to %s: %s", owner_ref, group.name, owner_refs)
    return True


def remove_reference(group, owner_ref):
    """
    Removes a reference. Returns True when no reference is left, in which
    case the list is not rewritten and the caller should delete the entry.

    Raises
    ------
    ReferenceNotFoundError
        If the reference was not recorded exactly once.

    Examples
    --------
    >>> with h5py.File(temp_h5, 'w') as f:
    ...     write_references(f, ["a__x", "b__y"])
    ...     remove_reference(f, "a__x")
    ...     read_references(f)
    ...     remove_reference(f, "b__y")
    False
    ['b__y']
    True
    """
    owner_refs = read_references(group)
    remaining = [r for r in owner_refs if r != owner_ref]
    expected = len(owner_refs) - 1
    if len(remaining) != expected:
        raise ReferenceNotFoundError(
            "{} wasn't stored in {} or was stored more than once. "
            "expected length = {} actual = {}".format(
                owner_ref, group.name, expected, len(remaining)
            )
        )
    if remaining:
        _rewrite(group, remaining)
    logger.debug("Removed %s from %s: %s", owner_ref, group.name, remaining)
    return not remaining
