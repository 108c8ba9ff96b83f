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
from typing import Iterable, Tuple

from .common import config as state_config
from .common import dirtiness, interceptor
from .common.baseline import BaselineStore
from .common.exceptions import CheckpointError, ConfigurationError
from .common.logging import with_baggage_items
from .common.subject import BehaviorSubject, Observable


class ObjectStateContainer:
    """
    Tracks whether the watched fields of a record differ from a clean checkpoint.

    The checkpoint is taken at construction and again by undo_changes() and
    revert_changes(). Ordinary assignment to a watched field of the live
    record, or assigning a new record to ``t``, pushes the live record through
    ``changes`` and a recomputed dirty flag through ``dirty_state``. Both
    streams replay their latest value to new subscribers.

    Usage:
        container = ObjectStateContainer(settings, ["name", "enabled"])
        container.dirty_state.subscribe(lambda dirty: print("dirty", dirty))
        container.t.name = "renamed"    # prints "dirty True"
        container.undo_changes()        # prints "dirty False"
    """

    def __init__(self, t, properties_to_watch: Iterable[str], config=None, name=None):
        if isinstance(properties_to_watch, str):
            raise ConfigurationError("Watched fields must be given as a list of names, not a single string")
        fields = tuple(dict.fromkeys(properties_to_watch))
        invalid = [f for f in fields if not isinstance(f, str)]
        if invalid:
            raise ConfigurationError("Watched field names must be strings, got {}".format(invalid))

        if config is None:
            config = state_config.global_config
        self._options = state_config.tracking_options(config)

        self.name = name or interceptor.original_class(t).__name__
        self._watched_fields = fields
        self._baseline_store = BaselineStore(fields)
        self._current_state = BehaviorSubject(None)
        self._t = None

        self.changes: Observable = self._current_state.as_observable()
        self.dirty_state: Observable = self._current_state.pipe_map(self._evaluate)

        with with_baggage_items({"tracker": self.name}):
            self._t = self._intercept(t)
            try:
                self._baseline_store.checkpoint(self._t)
            except CheckpointError:
                interceptor.uninstall(self._t)
                raise
            logging.info("Tracking fields {} of {}".format(list(fields), self.name))
            self._emit(self._t)

    @property
    def t(self):
        return self._t

    @t.setter
    def t(self, t):
        with with_baggage_items({"tracker": self.name}):
            # fails before the live slot changes
            t = self._intercept(t)
            previous, self._t = self._t, t
            if previous is not None and previous is not t:
                interceptor.uninstall(previous)
            logging.debug("Live record of {} replaced".format(self.name))
            self._emit(t)

    record = t

    @property
    def watched_fields(self) -> Tuple[str, ...]:
        return self._watched_fields

    @property
    def is_dirty(self) -> bool:
        """The current dirty flag; raises CheckpointError while no valid baseline exists"""
        return self._evaluate(self._t)

    @property
    def dirty_fields(self) -> Tuple[str, ...]:
        return dirtiness.dirty_fields(self._t, self._baseline_store.current(), self._watched_fields)

    @property
    def baseline(self):
        """A copy of the record as it was at the last clean checkpoint"""
        return self._baseline_store.restore()

    def undo_changes(self) -> None:
        """
        Accept the live record as clean.

        The live record becomes the new baseline, with its values as they are
        now, and interception is installed on it again. Use revert_changes()
        to go back to the baseline values instead.
        """
        with with_baggage_items({"tracker": self.name}):
            # fails fast before the baseline moves
            self._t = self._intercept(self._t)
            self._baseline_store.checkpoint(self._t)
            logging.info("Changes to {} accepted as new baseline".format(self.name))
            self._emit(self._t)

    def revert_changes(self) -> None:
        """
        Replace the live record with a copy of the baseline.

        Every field is restored, watched or not. The copy is a new instance,
        so references to the previous live record no longer take part in
        tracking.
        """
        with with_baggage_items({"tracker": self.name}):
            restored = self._intercept(self._baseline_store.restore())
            self._baseline_store.checkpoint(restored)
            previous, self._t = self._t, restored
            if previous is not None:
                interceptor.uninstall(previous)
            logging.info("Changes to {} reverted to baseline".format(self.name))
            self._emit(restored)

    def _intercept(self, t):
        if t is None:
            return None
        return interceptor.install(
            t, self._watched_fields, self._on_field_change, self._options["missing_fields"], owner=self
        )

    def _on_field_change(self, t, value):
        # writes to a record that has since been replaced are not ours to report
        if t is self._t:
            self._emit(t)

    def _evaluate(self, t) -> bool:
        return dirtiness.is_dirty(t, self._baseline_store.current(), self._watched_fields)

    def _emit(self, t) -> None:
        if self._options["trace_emissions"] and self._baseline_store.valid:
            logging.debug(
                "Emitting state of {}".format(self.name),
                extra={"dirty_fields": list(self.dirty_fields)},
            )
        self._current_state.on_next(t)

    def __repr__(self):
        return "ObjectStateContainer({}, watching {})".format(self.name, list(self._watched_fields))
