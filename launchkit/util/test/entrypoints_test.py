# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import unittest
from configparser import ConfigParser
from importlib.metadata import EntryPoint, EntryPoints
from types import ModuleType
from typing import List
from unittest.mock import MagicMock, patch

from launchkit.util.entrypoints import load_group


def entry_points_from_text(text: str) -> List[EntryPoint]:
    config = ConfigParser(delimiters="=")
    config.read_string(text)
    return [
        EntryPoint(name, value, group)
        for group in config.sections()
        for name, value in config.items(group)
    ]


def foobar() -> str:
    return "foobar"


def barbaz() -> str:
    return "barbaz"


_EPS: EntryPoints = EntryPoints(
    entry_points_from_text(
        """
[ep.grp.test]
foo = launchkit.util.test.entrypoints_test:foobar
bar = launchkit.util.test.entrypoints_test:barbaz

[ep.grp.mod.test]
baz = launchkit.util.test.entrypoints_test

[ep.grp.missing.attr.test]
baz = launchkit.util.test.entrypoints_test:missing_attr

[ep.grp.missing.mod.test]
baz = launchkit.util.test.entrypoints_test.missing_module
"""
    )
)


def _select(group: str) -> EntryPoints:
    return _EPS.select(group=group)


_METADATA_EPS: str = "launchkit.util.entrypoints.metadata.entry_points"


@patch(_METADATA_EPS, side_effect=_select)
class EntryPointsTest(unittest.TestCase):
    def test_load_group(self, _: MagicMock) -> None:
        eps = load_group("ep.grp.test")
        self.assertEqual(2, len(eps), eps)
        self.assertEqual("foobar", eps["foo"]())
        self.assertEqual("barbaz", eps["bar"]())

        self.assertIsNone(load_group("ep.grp.test.missing"))

    def test_load_group_module(self, _: MagicMock) -> None:
        eps = load_group("ep.grp.mod.test")
        module = eps["baz"]()
        self.assertEqual(ModuleType, type(module))
        self.assertEqual("launchkit.util.test.entrypoints_test", module.__name__)

        # module's deferred load function should ignore *args and **kwargs
        self.assertEqual(module, eps["baz"]("ignored", should="ignore"))

    def test_load_group_with_default(self, _: MagicMock) -> None:
        eps = load_group("ep.grp.test", {"foo": barbaz, "bar": foobar})
        self.assertEqual("foobar", eps["foo"]())
        self.assertEqual("barbaz", eps["bar"]())

        eps = load_group("ep.grp.test.missing", {"foo": barbaz})
        self.assertEqual({"foo": barbaz}, eps)

        eps = load_group("ep.grp.test.missing", {"foo": barbaz}, skip_defaults=True)
        self.assertIsNone(eps)

    def test_load_group_missing(self, _: MagicMock) -> None:
        with self.assertRaises(AttributeError):
            load_group("ep.grp.missing.attr.test")["baz"]()

        with self.assertRaises(ModuleNotFoundError):
            load_group("ep.grp.missing.mod.test")["baz"]()
