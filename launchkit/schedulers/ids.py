#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

import os
import struct
import uuid

START_CANDIDATES: str = "bcdfghjklmnpqrstvwxz"
END_CANDIDATES: str = START_CANDIDATES + "012345679"


def generate_run_id() -> str:
    """
    Returns a new run id. Run ids are time based (uuid1) so that the staging
    directories of consecutive runs of the same application sort by launch
    time, and are never reused.
    """
    return str(uuid.uuid1())


def make_unique(name: str) -> str:
    """
    Appends a random 64-bit suffix to ``name``.

    Returns:
        string in format $name-$unique_suffix
    """
    return f"{name}-{random_id()}"


def random_id() -> str:
    """
    Generates a lower case alphanumeric id that starts with a letter and is
    safe to use in file names and DNS labels.
    """
    v = struct.unpack("!Q", os.urandom(8))[0]
    out = ""
    while v > 0:
        candidates = END_CANDIDATES if out else START_CANDIDATES
        v, char = divmod(v, len(candidates))
        out += candidates[char]
    return out
