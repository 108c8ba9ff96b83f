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

import pytest

from state_container.common.subject import BehaviorSubject


class Recorder:
    def __init__(self):
        self.values = []
        self.errors = []

    def on_next(self, value):
        self.values.append(value)

    def on_error(self, error):
        self.errors.append(error)


class Test:
    def setup_method(self, method):
        self.subject = BehaviorSubject("initial")

    def test_replays_latest_value(self):
        self.subject.on_next("a")
        self.subject.on_next("b")
        values = []
        self.subject.subscribe(values.append)
        assert values == ["b"]
        assert self.subject.value == "b"

    def test_multicast_in_order(self):
        first, second = [], []
        self.subject.subscribe(first.append)
        self.subject.subscribe(second.append)
        self.subject.on_next(1)
        self.subject.on_next(2)
        assert first == ["initial", 1, 2]
        assert second == ["initial", 1, 2]

    def test_unsubscribe(self):
        values = []
        subscription = self.subject.subscribe(values.append)
        subscription.unsubscribe()
        subscription.unsubscribe()
        self.subject.on_next(1)
        assert values == ["initial"]
        assert subscription.closed
        assert self.subject.observer_count == 0

    def test_subscription_as_context_manager(self):
        values = []
        with self.subject.subscribe(values.append):
            self.subject.on_next(1)
        self.subject.on_next(2)
        assert values == ["initial", 1]

    def test_observer_object(self):
        recorder = Recorder()
        self.subject.subscribe(recorder)
        self.subject.on_next(1)
        assert recorder.values == ["initial", 1]

    def test_not_an_observer(self):
        with pytest.raises(TypeError):
            self.subject.subscribe(42)

    def test_unsubscribe_while_notifying(self):
        values = []
        subscriptions = []

        def once(value):
            values.append(value)
            if value == 1:
                subscriptions[0].unsubscribe()

        subscriptions.append(self.subject.subscribe(once))
        self.subject.on_next(1)
        self.subject.on_next(2)
        assert values == ["initial", 1]

    def test_reentrant_emission(self):
        values = []

        def bump(value):
            if value == 1:
                self.subject.on_next(2)

        self.subject.subscribe(bump)
        self.subject.subscribe(values.append)
        self.subject.on_next(1)
        assert values == ["initial", 2, 1]
        assert self.subject.value == 2

    def test_pipe_map(self):
        lengths = []
        self.subject.pipe_map(len).subscribe(lengths.append)
        self.subject.on_next("abc")
        assert lengths == [7, 3]

    def test_as_observable_cannot_push(self):
        view = self.subject.as_observable()
        values = []
        view.subscribe(values.append)
        self.subject.on_next("a")
        assert values == ["initial", "a"]
        assert view.value == "a"
        assert not hasattr(view, "on_next")

    def test_mapping_errors_go_to_on_error(self):
        recorder = Recorder()

        def fail(value):
            raise ValueError(value)

        self.subject.pipe_map(fail).subscribe(recorder)
        assert recorder.values == []
        assert [str(e) for e in recorder.errors] == ["initial"]

    def test_mapping_errors_without_on_error_are_logged(self, caplog):
        mapped = self.subject.pipe_map(lambda value: 1 / value)
        self.subject.on_next(1)
        values, later = [], []
        mapped.subscribe(values.append)
        self.subject.subscribe(later.append)

        self.subject.on_next(0)
        self.subject.on_next(2)
        assert values == [1.0, 0.5]
        assert later == [1, 0, 2]
        assert "Subscriber failed to handle a value" in caplog.text

    def test_failing_subscriber_does_not_stop_the_others(self):
        second = []

        def fail(value):
            if value is True:
                raise RuntimeError("cannot handle True")

        self.subject.subscribe(fail)
        self.subject.subscribe(second.append)
        self.subject.on_next(True)
        assert second == ["initial", True]
        assert self.subject.value is True

    def test_subscriber_errors_go_to_on_error(self):
        recorder = Recorder()
        values = []

        def fail(value):
            if value == 1:
                raise ValueError("one")
            recorder.on_next(value)

        self.subject.subscribe(fail, recorder.on_error)
        self.subject.subscribe(values.append)
        self.subject.on_next(1)
        self.subject.on_next(2)
        assert recorder.values == ["initial", 2]
        assert [str(e) for e in recorder.errors] == ["one"]
        assert values == ["initial", 1, 2]

    def test_failing_subscribe_leaves_no_observer(self):
        with pytest.raises(ZeroDivisionError):
            self.subject.pipe_map(lambda value: 1 / 0).subscribe(lambda value: None)
        assert self.subject.observer_count == 0
