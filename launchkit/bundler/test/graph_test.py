#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import unittest

from launchkit.bundler.graph import Artifact, DependencyGraph
from launchkit.specs.api import DependencyResolutionError
from launchkit.test.fixtures import TestWithTmpDir


def graph(**deps: str) -> DependencyGraph:
    """
    ``graph(a="b c", b="")`` -> ``a`` depends on ``b`` and ``c``
    """
    return DependencyGraph(
        [
            Artifact(name, f"/src/{name}.py", tuple(d.split()))
            for name, d in deps.items()
        ],
        provided=["numpy"],
    )


def names(artifacts: list) -> list:
    return [a.name for a in artifacts]


class ArtifactTest(unittest.TestCase):
    def test_archive_path(self) -> None:
        self.assertEqual("app/util.py", Artifact("app.util", "/x").archive_path)
        self.assertEqual(
            "app/__init__.py", Artifact("app", "/x", is_package=True).archive_path
        )

    def test_parent(self) -> None:
        self.assertEqual("app.sub", Artifact("app.sub.mod", "/x").parent)
        self.assertIsNone(Artifact("app", "/x").parent)


class DependencyGraphTest(unittest.TestCase):
    def test_closure_shared(self) -> None:
        g = graph(a="b c", b="d", c="d", d="")
        self.assertEqual(["a", "b", "c", "d"], names(g.closure(["a"])))

    def test_closure_cyclic(self) -> None:
        g = graph(a="b", b="c", c="a", d="")
        self.assertEqual(["a", "b", "c"], names(g.closure(["a"])))
        self.assertEqual(["b", "c", "a"], names(g.closure(["b"])))

    def test_closure_multiple_entrypoints(self) -> None:
        g = graph(a="c", b="c", c="", d="")
        self.assertEqual(["a", "b", "c"], names(g.closure(["a", "b"])))
        self.assertEqual(["a", "c"], names(g.closure(iter(["a", "a"]))))

    def test_closure_skips_provided(self) -> None:
        g = graph(a="os json.decoder numpy numpy.linalg")
        self.assertEqual(["a"], names(g.closure(["a"])))
        self.assertTrue(g.is_provided("numpy.linalg"))
        self.assertFalse(g.is_provided("a"))

    def test_closure_missing(self) -> None:
        g = graph(a="b", b="missing")
        with self.assertRaises(DependencyResolutionError) as cm:
            g.closure(["a"])
        self.assertEqual("missing", cm.exception.artifact)
        self.assertEqual("b", cm.exception.referenced_by)
        self.assertIn("`b`", str(cm.exception))

        with self.assertRaises(DependencyResolutionError) as cm:
            g.closure(["unknown"])
        self.assertIsNone(cm.exception.referenced_by)

    def test_closure_parent_packages(self) -> None:
        g = DependencyGraph(
            [
                Artifact("app", "/src/app/__init__.py", is_package=True),
                Artifact("app.sub", "/src/app/sub/__init__.py", is_package=True),
                Artifact("app.sub.mod", "/src/app/sub/mod.py"),
            ]
        )
        self.assertEqual(
            ["app.sub.mod", "app.sub", "app"], names(g.closure(["app.sub.mod"]))
        )

    def test_with_provided(self) -> None:
        g = graph(a="b", b="")
        self.assertEqual(["a"], names(g.with_provided(["b"]).closure(["a"])))
        self.assertEqual(2, len(g.with_provided(["b"])))

    def test_from_yaml(self) -> None:
        g = DependencyGraph.from_yaml(
            """
provided: [numpy]
artifacts:
  app:
    path: /src/app/__init__.py
    package: true
  app.main:
    path: /src/app/main.py
    dependencies: [app.util, numpy, pandas]
  app.util:
    path: /src/app/util.py
""",
            provided=["pandas"],
        )
        self.assertEqual(3, len(g))
        self.assertIn("app.util", g)
        self.assertTrue(g.get("app").is_package)
        self.assertEqual(
            ["app.main", "app", "app.util"], names(g.closure(["app.main"]))
        )

    def test_from_yaml_empty(self) -> None:
        self.assertEqual(0, len(DependencyGraph.from_yaml("")))


class ScanTest(TestWithTmpDir):
    def setUp(self) -> None:
        super().setUp()
        self.write("src/app/__init__.py", ["from .version import VERSION\n"])
        self.write("src/app/version.py", ['VERSION = "1.0"\n'])
        self.write(
            "src/app/main.py",
            [
                "import os\n",
                "from typing import TYPE_CHECKING\n",
                "from app import util\n",
                "from .sub.mod import helper\n",
                "if TYPE_CHECKING:\n",
                "    import app.typing_only\n",
                "def main():\n",
                "    import numpy\n",
            ],
        )
        self.write("src/app/util.py", ["from . import version\n"])
        self.write("src/app/sub/__init__.py", [""])
        self.write("src/app/sub/mod.py", ["from .. import util\n", "def helper(): pass\n"])
        self.write("src/app/__pycache__/stale.py", ["import missing\n"])
        self.write("src/app/data.txt", ["not python"])
        self.write("src/tool.py", ["import app.main\n"])

    def test_scan(self) -> None:
        g = DependencyGraph.scan(
            [str(self.tmpdir / "src" / "app"), str(self.tmpdir / "src" / "tool.py")],
            provided=["numpy"],
        )
        self.assertEqual(
            {"app", "app.version", "app.main", "app.util", "app.sub", "app.sub.mod", "tool"},
            {a.name for a in g.artifacts()},
        )
        self.assertTrue(g.get("app").is_package)
        self.assertFalse(g.get("app.main").is_package)

        main = g.get("app.main")
        self.assertEqual(
            ("os", "typing", "app", "app.util", "app.sub.mod", "numpy"),
            main.dependencies,
        )
        self.assertEqual(("app", "app.version"), g.get("app.util").dependencies)
        self.assertEqual(("app", "app.util"), g.get("app.sub.mod").dependencies)
        self.assertEqual(("app.version",), g.get("app").dependencies)

        self.assertEqual(
            ["tool", "app.main", "app", "app.util", "app.sub.mod", "app.version", "app.sub"],
            names(g.closure(["tool"])),
        )

    def test_scan_relative_beyond_top_level(self) -> None:
        self.write("src/bad/__init__.py", ["from ... import nope\n"])
        with self.assertRaises(ImportError):
            DependencyGraph.scan([str(self.tmpdir / "src" / "bad")])
