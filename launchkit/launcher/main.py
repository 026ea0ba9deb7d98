#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Bootstrap launcher of the master and worker processes.

This module is shipped as the ``__main__.py`` of ``launcher.zip`` and runs
before any application code is importable, so it may only import the
standard library.

usage::

 python launcher.zip [--max-memory-mb N] ARCHIVE ENTRYPOINT USE_CLASSPATH [ARGS ...]

Puts ``ARCHIVE`` (and, when ``USE_CLASSPATH`` is ``true``, the paths listed
in the ``classpath`` entry of the launcher archive) on ``sys.path``, then
imports ``ENTRYPOINT`` (``module.path:function``) and calls it with ``ARGS``.
"""

import argparse
import importlib
import logging
import os
import sys
import zipfile
from typing import Callable, List, Optional

log: logging.Logger = logging.getLogger("launchkit.launcher")

CLASSPATH_ENTRY = "classpath"


def _str2bool(s: str) -> bool:
    if s.lower() in ("true", "1", "yes"):
        return True
    if s.lower() in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got: {s}")


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="launcher")
    parser.add_argument(
        "--max-memory-mb",
        type=int,
        default=0,
        help="address space ceiling of the process in MB (0 for no limit)",
    )
    parser.add_argument("archive", help="zip archive with the code to run")
    parser.add_argument("entrypoint", help="module.path:function to call")
    parser.add_argument(
        "use_classpath",
        type=_str2bool,
        help="whether to add the paths listed in the launcher's classpath entry",
    )
    parser.add_argument("args", nargs=argparse.REMAINDER)
    return parser.parse_args(argv)


def read_classpath(launcher_archive: str) -> List[str]:
    """
    Returns the absolute paths listed in the ``classpath`` entry of
    ``launcher_archive``. Relative paths are relative to the working directory.
    """
    if not zipfile.is_zipfile(launcher_archive):
        return []
    with zipfile.ZipFile(launcher_archive) as zf:
        if CLASSPATH_ENTRY not in zf.namelist():
            return []
        content = zf.read(CLASSPATH_ENTRY).decode("utf-8")
    return [os.path.abspath(p) for p in content.splitlines() if p.strip()]


def set_memory_limit(max_memory_mb: int) -> None:
    import resource

    limit = max_memory_mb * 1024 * 1024
    resource.setrlimit(resource.RLIMIT_AS, (limit, limit))
    log.info(f"Set max memory to {max_memory_mb}MB")


def load_entrypoint(entrypoint: str) -> Callable[[List[str]], object]:
    module_name, _, fn_name = entrypoint.partition(":")
    if not fn_name:
        raise ValueError(f"`{entrypoint}` is not of the form `module.path:function`")
    module = importlib.import_module(module_name)
    return getattr(module, fn_name)


def main(argv: Optional[List[str]] = None) -> None:
    launcher_archive = sys.argv[0]
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.max_memory_mb > 0:
        set_memory_limit(args.max_memory_mb)

    paths = [os.path.abspath(args.archive)]
    if args.use_classpath:
        paths += read_classpath(launcher_archive)
    sys.path[0:0] = paths
    log.info(f"Launching {args.entrypoint} with sys.path prefix: {paths}")

    load_entrypoint(args.entrypoint)(args.args)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
