#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import os
import sys
import zipfile
from typing import List
from unittest.mock import MagicMock, patch

from launchkit.launcher.main import load_entrypoint, main, parse_args, read_classpath
from launchkit.test.fixtures import TestWithTmpDir

CALLS: List[List[str]] = []


def record_call(args: List[str]) -> None:
    CALLS.append(args)


class LauncherTest(TestWithTmpDir):
    def setUp(self) -> None:
        super().setUp()
        CALLS.clear()
        self._sys_path: List[str] = list(sys.path)

    def tearDown(self) -> None:
        sys.path[:] = self._sys_path
        super().tearDown()

    def launcher_zip(self, classpath: str) -> str:
        path = str(self.tmpdir / "launcher.zip")
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("__main__.py", "")
            zf.writestr("classpath", classpath)
        return path

    def test_parse_args(self) -> None:
        args = parse_args(
            ["--max-memory-mb", "362", "master.zip", "pkg.mod:main", "false", "--foo", "bar"]
        )
        self.assertEqual(362, args.max_memory_mb)
        self.assertEqual("master.zip", args.archive)
        self.assertEqual("pkg.mod:main", args.entrypoint)
        self.assertFalse(args.use_classpath)
        self.assertEqual(["--foo", "bar"], args.args)

    def test_parse_args_defaults(self) -> None:
        args = parse_args(["container.zip", "pkg.mod:main", "true"])
        self.assertEqual(0, args.max_memory_mb)
        self.assertTrue(args.use_classpath)
        self.assertEqual([], args.args)

    def test_parse_args_bad_bool(self) -> None:
        with self.assertRaises(SystemExit):
            parse_args(["container.zip", "pkg.mod:main", "maybe"])

    def test_read_classpath(self) -> None:
        launcher = self.launcher_zip("a.zip\n\n/abs/lib\n")
        self.assertEqual(
            [os.path.abspath("a.zip"), "/abs/lib"], read_classpath(launcher)
        )

    def test_read_classpath_not_a_zip(self) -> None:
        self.assertEqual([], read_classpath(str(self.write("launcher.py", [""]))))

    def test_load_entrypoint(self) -> None:
        self.assertIs(
            record_call,
            load_entrypoint("launchkit.launcher.test.main_test:record_call"),
        )
        with self.assertRaises(ValueError):
            load_entrypoint("launchkit.launcher.test.main_test")

    @patch("launchkit.launcher.main.set_memory_limit")
    def test_main(self, set_memory_limit: MagicMock) -> None:
        launcher = self.launcher_zip("/abs/lib")
        with patch.object(sys, "argv", [launcher]):
            main(
                [
                    "--max-memory-mb",
                    "100",
                    "master.zip",
                    "launchkit.launcher.test.main_test:record_call",
                    "true",
                    "x",
                    "y",
                ]
            )
        set_memory_limit.assert_called_once_with(100)
        self.assertEqual([["x", "y"]], CALLS)
        self.assertEqual([os.path.abspath("master.zip"), "/abs/lib"], sys.path[:2])

    @patch("launchkit.launcher.main.set_memory_limit")
    def test_main_no_classpath(self, set_memory_limit: MagicMock) -> None:
        launcher = self.launcher_zip("/abs/lib")
        with patch.object(sys, "argv", [launcher]):
            main(["master.zip", "launchkit.launcher.test.main_test:record_call", "false"])
        set_memory_limit.assert_not_called()
        self.assertEqual([[]], CALLS)
        self.assertNotIn("/abs/lib", sys.path)
