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

import logging
from typing import Any, Callable, Iterable

from .dirtiness import MISSING
from .exceptions import ConfigurationError

MISSING_FIELD_POLICIES = ("raise", "create")

# Class attributes marking a class derived by install()
INTERCEPTED_FROM = "_intercepted_from"
INTERCEPTED_FIELDS = "_intercepted_fields"
INTERCEPT_OWNER = "_intercept_owner"


def is_intercepted(record) -> bool:
    return INTERCEPTED_FROM in type(record).__dict__


def original_class(record) -> type:
    """Return the class the record had before any interception was installed"""
    cls = type(record)
    return cls.__dict__.get(INTERCEPTED_FROM, cls)


def intercept_owner(record):
    """Return the owner given to install(), or None for records without interception"""
    return type(record).__dict__.get(INTERCEPT_OWNER)


def _intercepting_class(original: type, fields: frozenset, on_change: Callable[[Any, Any], None], owner) -> type:
    """
    Derive a subclass of original that reports writes and deletions of the
    watched fields. Deleting a watched field reports MISSING as its value.
    """

    def __setattr__(self, key, value):
        original.__setattr__(self, key, value)
        if key in fields:
            on_change(self, value)

    def __delattr__(self, key):
        original.__delattr__(self, key)
        if key in fields:
            on_change(self, MISSING)

    namespace = {
        "__slots__": (),
        "__module__": original.__module__,
        "__qualname__": original.__qualname__,
        "__setattr__": __setattr__,
        "__delattr__": __delattr__,
        INTERCEPTED_FROM: original,
        INTERCEPTED_FIELDS: fields,
        INTERCEPT_OWNER: owner,
    }
    return type(original)(original.__name__, (original,), namespace)


def install(record, fields: Iterable[str], on_change: Callable[[Any, Any], None], missing: str = "raise", owner=None):
    """
    Make assignments to the given fields of record observable.

    Every assignment to a watched field stores the value through the record's
    own __setattr__ and then calls on_change(record, value) before returning.
    Deleting a watched field calls on_change(record, MISSING).
    Installing again replaces the previous interception instead of wrapping it,
    but only for the same owner: a record intercepted on behalf of another
    owner is refused.

    Raises ConfigurationError if a field is absent (unless missing="create"),
    if the record belongs to another owner or if its class cannot be swapped.
    Nothing about the record changes when it raises.
    """
    fields = tuple(fields)
    original = original_class(record)

    if missing not in MISSING_FIELD_POLICIES:
        raise ConfigurationError(
            "Unknown missing field policy '{}', expected one of {}".format(missing, list(MISSING_FIELD_POLICIES))
        )

    if is_intercepted(record) and intercept_owner(record) is not owner:
        raise ConfigurationError(
            "{} record is already tracked by {!r}".format(original.__name__, intercept_owner(record))
        )

    absent = [f for f in fields if not hasattr(record, f)]
    if absent and missing == "raise":
        raise ConfigurationError("Watched fields {} are not present on {} record".format(absent, original.__name__))

    previous = type(record)
    try:
        intercepted = _intercepting_class(original, frozenset(fields), on_change, owner)
        object.__setattr__(record, "__class__", intercepted)
    except TypeError as e:
        raise ConfigurationError("Cannot intercept fields of {} records: {}".format(original.__name__, e)) from e

    # created through the original class so no callback fires
    created = []
    for f in absent:
        try:
            original.__setattr__(record, f, None)
        except (AttributeError, TypeError) as e:
            for name in created:
                original.__delattr__(record, name)
            object.__setattr__(record, "__class__", previous)
            raise ConfigurationError(
                "Cannot create watched field '{}' on {} record: {}".format(f, original.__name__, e)
            ) from e
        created.append(f)

    logging.debug("Intercepting fields {} of {} record".format(list(fields), original.__name__))
    return record


def uninstall(record):
    """Restore the record's original class; a no-op for records without interception"""
    if is_intercepted(record):
        object.__setattr__(record, "__class__", original_class(record))
    return record
