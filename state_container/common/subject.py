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
from abc import ABC, abstractmethod
from typing import Any, Callable, List


class Observer:
    """Wraps a callable, or an object with on_next (and optionally on_error) methods"""

    __slots__ = ["on_next", "on_error"]

    def __init__(self, on_next, on_error=None):
        if not callable(on_next) and hasattr(on_next, "on_next"):
            on_error = on_error or getattr(on_next, "on_error", None)
            on_next = on_next.on_next
        if not callable(on_next):
            raise TypeError("Observer must be callable or provide an on_next method")
        self.on_next = on_next
        self.on_error = on_error


class Subscription:
    __slots__ = ["_subject", "_observer", "closed"]

    def __init__(self, subject, observer):
        self._subject = subject
        self._observer = observer
        self.closed = False

    def unsubscribe(self) -> None:
        if not self.closed:
            self._subject._remove(self._observer)
            self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.unsubscribe()


class Observable(ABC):
    """A synchronous push-based stream of values"""

    @abstractmethod
    def subscribe(self, on_next, on_error=None) -> Subscription:
        """Deliver values to on_next until the returned subscription is cancelled"""

    def pipe_map(self, mapper: Callable[[Any], Any]) -> "Observable":
        """Returns an observable delivering mapper(value) for every value of this one"""
        return MappedObservable(self, mapper)


class BehaviorSubject(Observable):
    """
    Multicast subject caching its latest value.

    Every new subscriber receives the latest value straight away, then every
    value passed to on_next, synchronously and in order.
    """

    def __init__(self, value=None):
        self._value = value
        self._observers: List[Observer] = []

    @property
    def value(self):
        return self._value

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def on_next(self, value) -> None:
        self._value = value
        # observers may subscribe or unsubscribe while being notified
        for observer in list(self._observers):
            if observer in self._observers:
                self._deliver(observer, value)

    def subscribe(self, on_next, on_error=None) -> Subscription:
        observer = Observer(on_next, on_error)
        self._observers.append(observer)
        subscription = Subscription(self, observer)
        try:
            observer.on_next(self._value)
        except Exception as e:
            if observer.on_error is None:
                subscription.unsubscribe()
                raise
            observer.on_error(e)
        return subscription

    def as_observable(self) -> Observable:
        """Returns a view of the subject that cannot push values"""
        return SubjectView(self)

    @staticmethod
    def _deliver(observer: Observer, value) -> None:
        """A failing observer never keeps the value from the ones after it"""
        try:
            observer.on_next(value)
        except Exception as e:
            if observer.on_error is None:
                logging.exception("Subscriber failed to handle a value: {}".format(e))
            else:
                observer.on_error(e)

    def _remove(self, observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)


class SubjectView(Observable):
    def __init__(self, subject: BehaviorSubject):
        self._subject = subject

    @property
    def value(self):
        return self._subject.value

    def subscribe(self, on_next, on_error=None) -> Subscription:
        return self._subject.subscribe(on_next, on_error)


class MappedObservable(Observable):
    def __init__(self, source: Observable, mapper: Callable[[Any], Any]):
        self._source = source
        self._mapper = mapper

    def subscribe(self, on_next, on_error=None) -> Subscription:
        observer = Observer(on_next, on_error)

        def forward(value):
            observer.on_next(self._mapper(value))

        return self._source.subscribe(forward, observer.on_error)
