#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import logging
import posixpath
import zipfile
from typing import Iterable, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

import fsspec
from launchkit.bundler.graph import Artifact, DependencyGraph, STDLIB_MODULES
from launchkit.specs.api import DependencyResolutionError, ResourceStagingError
from launchkit.staging.location import Location

log: logging.Logger = logging.getLogger(__name__)

RESOURCES_DIR = "resources"

# zip timestamps cannot predate 1980
_EPOCH = (1980, 1, 1, 0, 0, 0)


def _read(path: str) -> bytes:
    with fsspec.open(path, "rb") as f:
        return f.read()


def _resource_names(resources: Sequence[str]) -> List[str]:
    names: List[str] = []
    for resource in resources:
        name = posixpath.basename(urlparse(resource).path or resource)
        if name in names:
            raise ResourceStagingError(
                f"Resource `{resource}` clashes with another resource named `{name}`."
                f" Resources are bundled as `{RESOURCES_DIR}/<basename>`",
                name,
            )
        names.append(name)
    return names


def _write_entry(zf: zipfile.ZipFile, arcname: str, data: bytes) -> None:
    info = zipfile.ZipInfo(arcname, date_time=_EPOCH)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    zf.writestr(info, data)


class ApplicationBundler:
    """
    Writes self-contained zip bundles of the code reachable from a set of
    entry modules. A bundle is importable as is (``sys.path.insert(0, "bundle.zip")``).

    Bundles are reproducible: the same graph, entry points and resources
    produce byte identical archives.

    Args:
        graph: the dependency graph to resolve entry points against
        excludes: module name prefixes that are never bundled even if reachable
    """

    def __init__(self, graph: DependencyGraph, excludes: Iterable[str] = ()) -> None:
        self._graph = graph
        self._excludes: List[str] = list(excludes)

    def _excluded(self, name: str) -> bool:
        return any(name == e or name.startswith(f"{e}.") for e in self._excludes)

    def resolve(self, entrypoints: Iterable[str]) -> List[Artifact]:
        """
        Returns the artifacts to bundle for ``entrypoints``.

        Raises:
            DependencyResolutionError: if a reachable module cannot be found
        """
        return [
            a for a in self._graph.closure(entrypoints) if not self._excluded(a.name)
        ]

    def create_bundle(
        self,
        location: Location,
        entrypoints: Iterable[str],
        resources: Sequence[str] = (),
        extra_entries: Optional[Mapping[str, bytes]] = None,
    ) -> Location:
        """
        Resolves the closure of ``entrypoints`` and writes it to ``location``
        along with each of the ``resources`` (paths or URIs) under
        ``resources/<basename>`` and the ``extra_entries`` at the archive root.
        Nothing is written if the closure cannot be resolved or two resources
        share a basename.

        Raises:
            DependencyResolutionError: if a reachable module cannot be found
            ResourceStagingError: if two resources have the same basename
        """
        artifacts = self.resolve(entrypoints)
        names = _resource_names(resources)

        log.debug(f"Create and copy {location.uri}")
        with location.open("wb") as f, zipfile.ZipFile(f, "w") as zf:
            for artifact in artifacts:
                _write_entry(zf, artifact.archive_path, _read(artifact.path))
            for name, resource in zip(names, resources):
                _write_entry(zf, f"{RESOURCES_DIR}/{name}", _read(resource))
            for arcname, data in (extra_entries or {}).items():
                _write_entry(zf, arcname, data)
        log.debug(f"Done {location.name} ({len(artifacts)} modules, {len(resources)} resources)")
        return location

    def create_launcher(
        self,
        location: Location,
        module: str,
        classpath: Sequence[str] = (),
    ) -> Location:
        """
        Writes the bootstrap launcher: ``module`` as the ``__main__.py`` of an
        archive directly runnable by ``python launcher.zip``. The launcher
        runs before any application code is on ``sys.path`` hence ``module``
        may only import the standard library. ``classpath`` entries are
        written, one per line, to the ``classpath`` entry of the archive.

        Raises:
            DependencyResolutionError: if ``module`` is unknown or imports
                anything outside of the standard library
        """
        artifact = self._graph.get(module)
        if artifact is None:
            raise DependencyResolutionError(module)
        for dep in artifact.dependencies:
            if dep.partition(".")[0] not in STDLIB_MODULES:
                raise DependencyResolutionError(dep, referenced_by=module)

        log.debug(f"Create and copy {location.uri}")
        with location.open("wb") as f, zipfile.ZipFile(f, "w") as zf:
            _write_entry(zf, "__main__.py", _read(artifact.path))
            _write_entry(zf, "classpath", "\n".join(classpath).encode("utf-8"))
        log.debug(f"Done {location.name}")
        return location
