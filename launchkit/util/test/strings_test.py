# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import unittest

from launchkit.util.strings import normalize_str


class StringsTest(unittest.TestCase):
    def test_normalize_str(self) -> None:
        self.assertEqual("abcd123", normalize_str("abcd123"))
        self.assertEqual("wordcount", normalize_str("Word_Count"))
        self.assertEqual("app-v1", normalize_str("--App-v1.$"))
        self.assertEqual("", normalize_str("!!!"))
