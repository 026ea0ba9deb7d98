#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import logging
import posixpath
import shutil
from typing import Dict, List
from urllib.parse import urlparse

import fsspec
from launchkit.specs.api import AppSpec, LocalFile, ResourceStagingError
from launchkit.staging.location import Location, LocationFactory

log: logging.Logger = logging.getLogger(__name__)

_COMPOUND_EXTENSIONS = ("tar.gz", "tar.bz2", "tar.xz")


def get_extension(name: str) -> str:
    """
    Returns the extension of ``name`` without the leading dot, treating
    compound archive extensions as one.

    #. ``get_extension("data.tar.gz")`` -> ``"tar.gz"``
    #. ``get_extension("cfg.yaml")`` -> ``"yaml"``
    #. ``get_extension("README")`` -> ``""``
    """
    base = posixpath.basename(name)
    for ext in _COMPOUND_EXTENSIONS:
        if base.endswith(f".{ext}") and len(base) > len(ext) + 1:
            return ext
    _, _, ext = base.rpartition(".")
    return ext if "." in base.lstrip(".") else ""


def _uri_path(uri: str) -> str:
    return urlparse(uri).path or uri


class ResourceLocalizer:
    """
    Makes the local files of every runnable reachable from the cluster.

    Files that already live on the staging file system are referenced where
    they are (after checking they exist). All other files are copied under
    ``run_location`` as ``<runnable>/<name><random>.<ext>``.
    """

    def __init__(
        self, location_factory: LocationFactory, run_location: Location
    ) -> None:
        self._location_factory = location_factory
        self._run_location = run_location

    def localize(self, spec: AppSpec) -> Dict[str, List[LocalFile]]:
        """
        Returns the staged local files of each runnable, in declaration order.

        Raises:
            ResourceStagingError: if a file cannot be read or written
        """
        localized: Dict[str, List[LocalFile]] = {}
        for runnable_name, runtime_spec in spec.runnables.items():
            localized[runnable_name] = [
                self._localize_file(runnable_name, local_file)
                for local_file in runtime_spec.local_files
            ]
        return localized

    def _localize_file(self, runnable_name: str, local_file: LocalFile) -> LocalFile:
        try:
            if self._location_factory.is_native(local_file.uri):
                return self._reference(local_file)
            return self._copy(runnable_name, local_file)
        except ResourceStagingError:
            raise
        except (OSError, ValueError) as e:
            raise ResourceStagingError(
                f"Failed to localize `{local_file.name}` ({local_file.uri})"
                f" of runnable `{runnable_name}`: {e}",
                local_file.name,
                runnable_name,
            ) from e

    def _reference(self, local_file: LocalFile) -> LocalFile:
        location = self._location_factory.create(local_file.uri)
        if not location.exists():
            raise FileNotFoundError(f"{local_file.uri} does not exist")
        log.debug(f"Referencing `{local_file.name}` in place at {local_file.uri}")
        return LocalFile(
            name=local_file.name,
            uri=local_file.uri,
            last_modified=location.last_modified(),
            size=location.length(),
            archive=local_file.archive,
            pattern=local_file.pattern,
        )

    def _copy(self, runnable_name: str, local_file: LocalFile) -> LocalFile:
        ext = get_extension(_uri_path(local_file.uri))
        suffix = f".{ext}" if ext else ""
        name = local_file.name
        if suffix and name.endswith(suffix):
            name = name[: -len(suffix)]

        dst = self._run_location.append(runnable_name).append(name).temp_file(suffix)
        log.debug(f"Create and copy {local_file.uri} to {dst.uri}")
        with fsspec.open(local_file.uri, "rb") as src, dst.open("wb") as out:
            shutil.copyfileobj(src, out)
        log.debug(f"Done {local_file.name}")

        return LocalFile(
            name=local_file.name,
            uri=dst.uri,
            last_modified=dst.last_modified(),
            size=dst.length(),
            archive=local_file.archive,
            pattern=local_file.pattern,
        )
