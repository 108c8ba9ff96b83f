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

import enum
import numbers
from typing import Iterable, Tuple

# Placeholder for an attribute the record does not have
MISSING = object()

SCALAR_TYPES = (type(None), bool, numbers.Number, str, bytes, enum.Enum)


def is_scalar(value) -> bool:
    return isinstance(value, SCALAR_TYPES)


def strictly_equal(a, b) -> bool:
    """
    Scalars are equal if they have the same type and compare equal,
    anything else only if it is the very same object.
    """
    if a is b:
        return True
    if is_scalar(a) and is_scalar(b):
        return type(a) is type(b) and a == b
    return False


def dirty_fields(live, baseline, fields: Iterable[str]) -> Tuple[str, ...]:
    """Returns the watched fields whose live value differs from the baseline, in watch order"""
    if live is None or baseline is None:
        return ()
    return tuple(f for f in fields if not strictly_equal(baseline.target(f), getattr(live, f, MISSING)))


def is_dirty(live, baseline, fields: Iterable[str]) -> bool:
    if live is None or baseline is None:
        return False
    return any(not strictly_equal(baseline.target(f), getattr(live, f, MISSING)) for f in fields)
