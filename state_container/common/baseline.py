#
# Copyright 2022 European Centre for Medium-Range Weather Forecasts (ECMWF)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# In applying this licence, ECMWF does not waive the privileges and immunities
# granted to it by virtue of its status as an intergovernmental organisation nor
# does it submit to any jurisdiction.
#

import copy
import logging
import pickle
from types import MappingProxyType
from typing import Dict, Iterable

from .dirtiness import MISSING, is_scalar
from .exceptions import CheckpointError
from .interceptor import original_class


def instance_state(record) -> Dict:
    """Collect every attribute stored on the instance itself, slots included"""
    state = {}
    for cls in reversed(type(record).__mro__):
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            if name.startswith("__") and not name.endswith("__"):
                name = "_{}{}".format(cls.__name__.lstrip("_"), name)
            try:
                state[name] = object.__getattribute__(record, name)
            except AttributeError:
                # unset slot, the copy leaves it unset too
                pass
    if hasattr(record, "__dict__"):
        state.update(vars(record))
    return state


def structural_copy(record):
    """
    Copy a record into a fresh, independent instance of its original class.

    The instance is created without calling __init__ and every attribute is
    deep-copied onto it. Interception is never carried over to the copy.
    Raises CheckpointError if any attribute cannot be copied.
    """
    cls = original_class(record)
    try:
        clone = cls.__new__(cls)
        # references back to the record resolve to the copy
        memo = {id(record): clone}
        for name, value in instance_state(record).items():
            object.__setattr__(clone, name, copy.deepcopy(value, memo))
    except (copy.Error, TypeError, pickle.PicklingError, RecursionError, AttributeError) as e:
        raise CheckpointError("Cannot copy {} record: {}".format(cls.__name__, e)) from e
    return clone


class Baseline:
    """A checkpoint: the record snapshot and the value each watched field is judged against"""

    __slots__ = ["snapshot", "targets"]

    def __init__(self, snapshot, targets):
        object.__setattr__(self, "snapshot", snapshot)
        object.__setattr__(self, "targets", MappingProxyType(dict(targets)))

    def __setattr__(self, attr, value):
        raise AttributeError("Baseline is immutable")

    def target(self, field):
        if field in self.targets:
            return self.targets[field]
        return getattr(self.snapshot, field, MISSING)


class BaselineStore:
    """Holds the most recent checkpoint of a record"""

    def __init__(self, fields: Iterable[str]):
        self.fields = tuple(fields)
        self._baseline = None
        self._error = CheckpointError("No baseline has been checkpointed yet")

    def checkpoint(self, record) -> Baseline | None:
        """
        Snapshot the record and make it the comparison target for dirtiness.

        Scalar fields are judged against the snapshot's values, any other
        field against the identity of the object the record held when the
        checkpoint was taken. On failure the store stays without a baseline
        until the next successful checkpoint.
        """
        if record is None:
            self._baseline = None
            self._error = None
            return None

        try:
            snapshot = structural_copy(record)
        except CheckpointError as e:
            self._baseline = None
            self._error = e
            logging.error("Checkpoint failed, dirtiness cannot be evaluated: {}".format(e.description))
            raise

        targets = {}
        for f in self.fields:
            value = getattr(record, f, MISSING)
            targets[f] = getattr(snapshot, f, MISSING) if is_scalar(value) else value

        self._baseline = Baseline(snapshot, targets)
        self._error = None
        return self._baseline

    @property
    def valid(self) -> bool:
        return self._error is None

    def current(self) -> Baseline | None:
        if self._error is not None:
            raise CheckpointError(self._error.description) from self._error
        return self._baseline

    def restore(self):
        """Returns a fresh copy of the snapshot, leaving the stored one untouched"""
        baseline = self.current()
        if baseline is None:
            return None
        return structural_copy(baseline.snapshot)
