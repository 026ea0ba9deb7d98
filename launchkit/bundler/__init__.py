#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Bundles the transitive closure of the application's code into archives that
can be shipped to the cluster. Only the modules reachable from the entry
points end up in a bundle; the standard library and the packages the
cluster provides are never bundled.
"""

import os

from launchkit.bundler.api import ApplicationBundler  # noqa: F401
from launchkit.bundler.graph import Artifact, DependencyGraph  # noqa: F401


def launchkit_root() -> str:
    """
    Returns the directory of the ``launchkit`` package. The runtime side of
    every bundle (master, worker and launcher bootstraps) is resolved from here.
    """
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
