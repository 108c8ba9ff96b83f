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


class StateContainerError(Exception):
    """Baseclass for state container errors."""

    description = None

    def __init__(self, description=None):
        super(StateContainerError, self).__init__(description)
        if description is not None:
            self.description = description

    def __repr__(self):
        return f"{self.__class__.__name__}: {self.description}"


class ConfigurationError(StateContainerError):
    """Watched fields or tracking options do not fit the supplied record."""


class InvalidConfig(ConfigurationError):
    pass


class CheckpointError(StateContainerError):
    """A baseline could not be taken, or none exists yet."""
