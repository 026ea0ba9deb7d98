#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Cluster clients launch the application master once its artifacts are staged.
Additional clients are registered under the ``launchkit.schedulers`` entry
point group; a registered group replaces the defaults below.

::

 [launchkit.schedulers]
 yarn = my_company.launchkit.yarn:create_client

The entry point is called as ``create_client(session_name, **kwargs)`` and
must return a :py:class:`~launchkit.schedulers.api.ClusterClient`.
"""

import importlib
from typing import Dict, Mapping, Protocol

from launchkit.schedulers.api import ClusterClient
from launchkit.util.entrypoints import load_group

DEFAULT_CLUSTER_CLIENT_MODULES: Mapping[str, str] = {
    "local": "launchkit.schedulers.local_scheduler",
}


class ClusterClientFactory(Protocol):
    def __call__(self, session_name: str, **kwargs: object) -> ClusterClient: ...


def _defer_load_client(path: str) -> ClusterClientFactory:
    def run(*args: object, **kwargs: object) -> ClusterClient:
        module = importlib.import_module(path)
        return module.create_client(*args, **kwargs)

    return run


def get_cluster_client_factories(
    group: str = "launchkit.schedulers", skip_defaults: bool = False
) -> Dict[str, ClusterClientFactory]:
    """
    Returns the available cluster client names under ``group`` and the
    function that creates them. The first one is the default.
    """
    defaults: Dict[str, ClusterClientFactory] = {
        name: _defer_load_client(path)
        for name, path in DEFAULT_CLUSTER_CLIENT_MODULES.items()
    }
    return load_group(group, default=defaults, skip_defaults=skip_defaults) or {}


def get_default_cluster_client_name() -> str:
    return next(iter(get_cluster_client_factories().keys()))
