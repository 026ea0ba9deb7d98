#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import logging
from typing import Dict, Mapping

from launchkit.specs.api import EventHandlerSpec

log: logging.Logger = logging.getLogger(__name__)


class EventHandler:
    """
    Receives the lifecycle events of an application inside the master.
    Subclasses must be importable by their fully qualified class name and
    constructible without arguments; the configs returned by :py:meth:`configure`
    on the submitting side are handed back through :py:meth:`initialize`.
    """

    def __init__(self) -> None:
        self.configs: Dict[str, str] = {}

    def configure(self) -> EventHandlerSpec:
        cls = type(self)
        return EventHandlerSpec(
            classname=f"{cls.__module__}.{cls.__qualname__}", configs=self.configs
        )

    def initialize(self, configs: Mapping[str, str]) -> None:
        self.configs = dict(configs)

    def started(self, app_id: str) -> None:
        pass

    def completed(self, app_id: str) -> None:
        pass

    def killed(self, app_id: str) -> None:
        pass

    def aborted(self, app_id: str) -> None:
        pass

    def destroy(self) -> None:
        pass


class LogOnlyEventHandler(EventHandler):
    """
    The default handler, logs every event and does nothing else.
    """

    def started(self, app_id: str) -> None:
        log.info(f"Application {app_id} started")

    def completed(self, app_id: str) -> None:
        log.info(f"Application {app_id} completed")

    def killed(self, app_id: str) -> None:
        log.info(f"Application {app_id} killed")

    def aborted(self, app_id: str) -> None:
        log.warning(f"Application {app_id} aborted")
