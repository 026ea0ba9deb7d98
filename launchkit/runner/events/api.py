#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import json
from dataclasses import asdict, dataclass
from typing import Optional, Union


@dataclass
class LaunchEvent:
    """
    The event produced by every stage of a launch and by the launch as a whole.

    Arguments:
        session: session id of the submitting process
        scheduler: name of the cluster client the application is launched with
        api: name of the api call (``start``) or pipeline stage (``stage_master_archive``)
        app_name: name of the application
        app_id: id allocated by the cluster (once known)
        run_id: id of this run of the application
        runcfg: the resolved preparer options as json
        cpu_time_usec: CPU time spent in usec
        wall_time_usec: Wall time spent in usec
        start_epoch_time_usec: Epoch time in usec when the call started
    """

    session: str
    scheduler: str
    api: str
    app_name: Optional[str] = None
    app_id: Optional[str] = None
    run_id: Optional[str] = None
    runcfg: Optional[str] = None
    raw_exception: Optional[str] = None
    cpu_time_usec: Optional[int] = None
    wall_time_usec: Optional[int] = None
    start_epoch_time_usec: Optional[int] = None
    exception_type: Optional[str] = None
    exception_message: Optional[str] = None
    exception_source_location: Optional[str] = None

    def __str__(self) -> str:
        return self.serialize()

    @staticmethod
    def deserialize(data: Union[str, "LaunchEvent"]) -> "LaunchEvent":
        if isinstance(data, LaunchEvent):
            return data
        return LaunchEvent(**json.loads(data))

    def serialize(self) -> str:
        return json.dumps(asdict(self))
