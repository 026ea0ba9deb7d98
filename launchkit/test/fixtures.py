# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Useful test fixtures (classes that you can subclass your python ``unittest.TestCase``)
"""

import shutil
import tempfile
import unittest
import uuid
from pathlib import Path
from typing import Iterable, Union

import fsspec


class TestWithTmpDir(unittest.TestCase):
    """
    Creates a temporary directory (``self.tmpdir``) for each test case and
    deletes it afterwards.

    .. code-block:: python

     class MyTest(TestWithTmpDir):

        def test_foo(self) -> None:
            self.write("foo/bar.txt", ["hello"])
    """

    def setUp(self) -> None:
        self.tmpdir: Path = Path(
            tempfile.mkdtemp(prefix=f"launchkit-{self.__class__.__name__}-")
        )

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir)

    def touch(self, filepath: str) -> Path:
        """
        Creates an empty file (and its parent directories) in the test's tmpdir.
        """
        f = self.tmpdir / filepath
        f.parent.mkdir(parents=True, exist_ok=True)
        f.touch()
        return f

    def write(self, filepath: str, content: Iterable[str]) -> Path:
        """
        Writes ``content`` line-by-line into ``filepath`` (relative to the tmpdir).
        """
        f = self.touch(filepath)
        with open(f, "w") as fout:
            fout.writelines(content)
        return f

    def read(self, filepath: Union[str, Path]) -> str:
        with open(self.tmpdir / filepath, "r") as fin:
            return fin.read()


class TestWithMemoryFs(TestWithTmpDir):
    """
    In addition to ``self.tmpdir`` provides a fresh ``memory://`` root
    (``self.fs_root``) for staging tests. The in-memory file system is shared
    by the whole process so every test case gets its own root.
    """

    def setUp(self) -> None:
        super().setUp()
        self.fs = fsspec.filesystem("memory")
        self.fs_root: str = f"memory:///launchkit-test-{uuid.uuid4().hex}"

    def tearDown(self) -> None:
        root = self.fs_root[len("memory://") :]
        if self.fs.exists(root):
            self.fs.rm(root, recursive=True)
        super().tearDown()
