# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import importlib
from typing import Callable


def load_attr(path: str) -> Callable[..., object]:
    """
    Imports and returns the attribute referred to by ``path``. Both the
    entry point form ``full.module.path:attr`` and the dotted form
    ``full.module.path.attr`` (used for class names) are accepted.

    Raises:
        ImportError: if the module cannot be imported
        AttributeError: if the module has no such attribute
    """
    if ":" in path:
        module_path, _, attr = path.partition(":")
    else:
        module_path, _, attr = path.rpartition(".")
    if not module_path or not attr:
        raise ValueError(
            f"`{path}` is not of the form `module.path:attr` or `module.path.attr`"
        )
    module = importlib.import_module(module_path)
    obj = module
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj
