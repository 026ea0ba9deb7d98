#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

import unittest


class VersionTest(unittest.TestCase):
    def test_can_get_version(self) -> None:
        import launchkit
        from launchkit.version import __version__

        self.assertIsNotNone(launchkit.__version__)
        self.assertEqual(__version__, launchkit.__version__)
