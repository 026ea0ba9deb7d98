#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import logging
from typing import Callable, Dict

_log_handlers: Dict[str, Callable[[], logging.Handler]] = {
    "console": logging.StreamHandler,
    "null": logging.NullHandler,
}


def get_logging_handler(destination: str = "null") -> logging.Handler:
    """
    Returns a new handler for ``destination`` (``null`` or ``console``).

    Raises:
        ValueError: if the destination is unknown
    """
    if destination not in _log_handlers:
        raise ValueError(
            f"Unknown event destination: {destination}. Known: {list(_log_handlers.keys())}"
        )
    return _log_handlers[destination]()
