#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Bootstrap of a worker process. Started by the launcher from ``container.zip``
with the runnable to run named by ``LAUNCHKIT_RUNNABLE_NAME``.
"""

import logging
import os
from typing import List, Optional

from launchkit.master.log_config import configure_logging
from launchkit.specs.api import env_keys, files
from launchkit.specs.codec import decode_arguments, decode_spec
from launchkit.util.modules import load_attr

log: logging.Logger = logging.getLogger(__name__)


def run(workdir: str, runnable_name: str, extra_args: Optional[List[str]] = None) -> object:
    """
    Calls the entry point of ``runnable_name`` with the application wide
    arguments followed by the runnable's own arguments and ``extra_args``.

    Raises:
        KeyError: if the application has no such runnable
    """
    with open(os.path.join(workdir, files.SPEC), "r") as f:
        spec = decode_spec(f.read())
    with open(os.path.join(workdir, files.ARGUMENTS), "r") as f:
        arguments = decode_arguments(f.read())

    runtime_spec = spec.runnables[runnable_name]
    args = [
        *arguments.arguments,
        *arguments.runnable_arguments.get(runnable_name, []),
        *(extra_args or []),
    ]
    log.info(f"Running {runnable_name} ({runtime_spec.executable.entrypoint}) {args}")
    return load_attr(runtime_spec.executable.entrypoint)(args)


def main(argv: Optional[List[str]] = None) -> None:
    workdir = os.getcwd()
    with open(os.path.join(workdir, files.LOGGING_TEMPLATE), "r") as f:
        configure_logging(f.read())
    run(workdir, os.environ[env_keys.RUNNABLE_NAME], argv)
