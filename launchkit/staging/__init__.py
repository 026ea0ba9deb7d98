#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Staging of application artifacts on a file system shared with the cluster.
"""

from launchkit.staging.localizer import get_extension, ResourceLocalizer  # noqa: F401
from launchkit.staging.location import Location, LocationFactory  # noqa: F401
