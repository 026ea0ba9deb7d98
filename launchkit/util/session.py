#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import os
import uuid
from typing import Optional

LAUNCHKIT_INTERNAL_SESSION_ID = "LAUNCHKIT_INTERNAL_SESSION_ID"

CURRENT_SESSION_ID: Optional[str] = None


def get_session_id_or_create_new() -> str:
    """
    Returns the id of the current process' session, creating it on first use.
    A session id exported by a parent process through
    ``LAUNCHKIT_INTERNAL_SESSION_ID`` is picked up so that events of nested
    submissions can be correlated.
    """
    global CURRENT_SESSION_ID
    if not CURRENT_SESSION_ID:
        CURRENT_SESSION_ID = os.getenv(LAUNCHKIT_INTERNAL_SESSION_ID) or str(
            uuid.uuid4()
        )
    return CURRENT_SESSION_ID
