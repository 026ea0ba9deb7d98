#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Bootstrap of the application master. Started by the launcher from
``master.zip`` in a working directory holding the localized artifacts of
the run. The master finds its staging context in the environment only
(see :py:class:`~launchkit.specs.api.env_keys`).
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from launchkit.master.handlers import EventHandler
from launchkit.master.log_config import configure_logging
from launchkit.specs.api import AppSpec, Arguments, env_keys, files, LocalFile
from launchkit.specs.codec import decode_arguments, decode_local_files, decode_spec
from launchkit.util.modules import load_attr

log: logging.Logger = logging.getLogger(__name__)


@dataclass
class MasterContext:
    app_id: str
    app_name: str
    run_id: str
    app_dir: str
    coordination_connect: str
    reserved_memory_mb: int
    spec: AppSpec
    arguments: Arguments
    localize_files: List[LocalFile]
    event_handler: EventHandler


def _read(workdir: str, name: str) -> str:
    with open(os.path.join(workdir, name), "r") as f:
        return f.read()


def bootstrap(workdir: str, env: Mapping[str, str]) -> MasterContext:
    """
    Reads the staged documents from ``workdir`` and the staging context from
    ``env`` and instantiates the application's event handler.

    Raises:
        IncompatibleSpecificationVersion: if a document was written with an
            unsupported version
        KeyError: if a required environment variable is missing
    """
    spec = decode_spec(_read(workdir, files.SPEC))
    arguments = decode_arguments(_read(workdir, files.ARGUMENTS))
    localize_files = decode_local_files(_read(workdir, files.LOCALIZE_FILES))

    handler_spec = spec.event_handler
    if handler_spec is None:
        raise ValueError(f"No event handler in the specification of {spec.name}")
    handler = load_attr(handler_spec.classname)()
    handler.initialize(handler_spec.configs)

    return MasterContext(
        app_id=env.get(env_keys.APP_ID, ""),
        app_name=env[env_keys.APP_NAME],
        run_id=env[env_keys.RUN_ID],
        app_dir=env[env_keys.APP_DIR],
        coordination_connect=env[env_keys.COORDINATION_CONNECT],
        reserved_memory_mb=int(env[env_keys.RESERVED_MEMORY_MB]),
        spec=spec,
        arguments=arguments,
        localize_files=localize_files,
        event_handler=handler,
    )


def main(argv: Optional[List[str]] = None) -> None:
    workdir = os.getcwd()
    configure_logging(_read(workdir, files.LOGGING_TEMPLATE))

    ctx = bootstrap(workdir, os.environ)
    log.info(
        f"Master of {ctx.app_name} ({ctx.app_id}) run {ctx.run_id} started."
        f" Runnables: {list(ctx.spec.runnables.keys())}."
        f" Worker files: {[f.name for f in ctx.localize_files]}"
    )
    for order in ctx.spec.orders:
        log.info(f"Start group ({order.type.value}): {order.names}")

    ctx.event_handler.started(ctx.app_id)
    ctx.event_handler.destroy()
