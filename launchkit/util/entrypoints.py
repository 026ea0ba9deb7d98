# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict
# pyre-ignore-all-errors[3, 2, 16]

from importlib import metadata
from importlib.metadata import EntryPoint
from typing import Any, Callable, Dict, Iterable, Optional


def _entry_points(group: str) -> Iterable[EntryPoint]:
    return metadata.entry_points(group=group)


def _defer_load_ep(ep: EntryPoint) -> Callable[..., object]:
    def run(*args: object, **kwargs: object) -> object:
        if ep.attr is None:  # this is a module
            return ep.load()
        else:
            return ep.load()(*args, **kwargs)

    return run


def load_group(
    group: str, default: Optional[Dict[str, Any]] = None, skip_defaults: bool = False
):
    """
    Loads all the entry points registered under ``group`` and returns them
    as a map of ``name (str) -> deferred_load_fn``. The ``deferred_load_fn``
    defers loading the entry point until the caller actually calls it.

    For the following ``entry_points.txt``:

    ::

     [launchkit.schedulers]
     yarn = my_company.launchkit.yarn:create_cluster_client

    1. ``load_group("launchkit.schedulers")["yarn"]("session")`` -> ``create_cluster_client("session")``
    1. ``load_group("unknown")`` -> ``None``
    1. ``load_group("unknown", default={"local": fn})`` -> ``{"local": fn}``
    1. ``load_group("unknown", default={"local": fn}, skip_defaults=True)`` -> ``None``

    Registered entry points replace the defaults entirely (they are not merged).
    """

    eps = {ep.name: _defer_load_ep(ep) for ep in _entry_points(group)}
    if not eps:
        return None if skip_defaults else default
    return eps
