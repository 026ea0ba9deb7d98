#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Launch events, recorded through a dedicated logger that does not propagate
to the root logger.

Example of usage:

::

  from launchkit.runner import events
  with events.log_event("start", "local", app_name="echo") as ctx:
      ...
      ctx.event.app_id = app_id

"""

import json
import logging
import sys
import time
import traceback
from types import TracebackType
from typing import Optional, Type

from launchkit.runner.events.handlers import get_logging_handler
from launchkit.util.session import get_session_id_or_create_new

from .api import LaunchEvent  # noqa F401

_events_logger: Optional[logging.Logger] = None

log: logging.Logger = logging.getLogger(__name__)


def _get_or_create_logger(destination: str = "null") -> logging.Logger:
    """
    Returns the events logger, creating it with the handler of
    ``destination`` on first use. Only the first destination is honored.
    """
    global _events_logger

    if _events_logger:
        return _events_logger
    logging_handler = get_logging_handler(destination)
    logging_handler.setLevel(logging.DEBUG)
    _events_logger = logging.getLogger(f"launchkit-events-{destination}")
    # Do not propagate message to the root logger
    _events_logger.propagate = False
    _events_logger.addHandler(logging_handler)
    return _events_logger


def record(event: LaunchEvent, destination: str = "null") -> None:
    try:
        serialized_event = event.serialize()
    except (TypeError, ValueError):
        log.exception("failed to serialize event, will not record event")
    else:
        _get_or_create_logger(destination).info(serialized_event)


class log_event:
    """
    Records a :py:class:`LaunchEvent` when the context exits. If an exception
    escapes the context it is recorded on the event (and re-raised).

    ::

     with log_event("stage_spec", "local", app_name="echo", run_id=run_id):
         ...

    """

    def __init__(
        self,
        api: str,
        scheduler: Optional[str] = None,
        app_name: Optional[str] = None,
        app_id: Optional[str] = None,
        run_id: Optional[str] = None,
        runcfg: Optional[str] = None,
    ) -> None:
        self.event: LaunchEvent = LaunchEvent(
            session=get_session_id_or_create_new(),
            scheduler=scheduler or "",
            api=api,
            app_name=app_name,
            app_id=app_id,
            run_id=run_id,
            runcfg=runcfg,
        )
        self._start_cpu_time_ns = 0
        self._start_wall_time_ns = 0

    def __enter__(self) -> "log_event":
        self._start_cpu_time_ns = time.process_time_ns()
        self._start_wall_time_ns = time.perf_counter_ns()
        self.event.start_epoch_time_usec = int(time.time() * 1_000_000)
        return self

    def __exit__(
        self,
        exec_type: Optional[Type[BaseException]],
        exec_value: Optional[BaseException],
        traceback_type: Optional[TracebackType],
    ) -> Optional[bool]:
        self.event.cpu_time_usec = (
            time.process_time_ns() - self._start_cpu_time_ns
        ) // 1000
        self.event.wall_time_usec = (
            time.perf_counter_ns() - self._start_wall_time_ns
        ) // 1000
        if traceback_type:
            self.event.raw_exception = traceback.format_exc()
            _, _, tb = sys.exc_info()
            if tb:
                last_frame = traceback.extract_tb(tb)[-1]
                self.event.exception_source_location = json.dumps(
                    {
                        "filename": last_frame.filename,
                        "lineno": last_frame.lineno,
                        "name": last_frame.name,
                    }
                )
        if exec_type:
            self.event.exception_type = exec_type.__name__
        if exec_value:
            self.event.exception_message = str(exec_value)
        record(self.event)
        return None
