#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
The static dependency graph of the code that can be shipped to the cluster.

The graph is built ahead of time, either by scanning Python sources
(:py:meth:`DependencyGraph.scan`) or from a declared manifest
(:py:meth:`DependencyGraph.from_yaml`). Nodes are modules keyed by their
dotted name, edges are imports. Top-level names listed as *provided* (the
standard library plus whatever the cluster nodes have installed) are never
bundled.

A manifest looks like:

.. code-block:: yaml

 provided: [numpy]
 artifacts:
   app.main:
     path: /src/app/main.py
     dependencies: [app.util, numpy]
   app:
     path: /src/app/__init__.py
     package: true

"""

import ast
import logging
import os
import sys
from collections import deque
from dataclasses import dataclass
from typing import (
    Any,
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

import yaml
from launchkit.specs.api import DependencyResolutionError

log: logging.Logger = logging.getLogger(__name__)

STDLIB_MODULES: FrozenSet[str] = frozenset(sys.stdlib_module_names) | {"__future__"}


@dataclass(frozen=True)
class Artifact:
    """
    A single module of the dependency graph.

    Args:
        name: dotted module name (e.g. ``app.util``)
        path: path (or fsspec URI) of the module's source file
        dependencies: names of the modules this module imports
        is_package: whether this is a package (its source is the ``__init__.py``)
    """

    name: str
    path: str
    dependencies: Tuple[str, ...] = ()
    is_package: bool = False

    @property
    def archive_path(self) -> str:
        """
        Path of the source inside a bundle such that it is importable
        when the bundle is on ``sys.path``.
        """
        base = self.name.replace(".", "/")
        return f"{base}/__init__.py" if self.is_package else f"{base}.py"

    @property
    def parent(self) -> Optional[str]:
        parent, _, _ = self.name.rpartition(".")
        return parent or None


def _top_level(name: str) -> str:
    return name.partition(".")[0]


class DependencyGraph:
    def __init__(
        self, artifacts: Iterable[Artifact] = (), provided: Iterable[str] = ()
    ) -> None:
        self._artifacts: Dict[str, Artifact] = {}
        for artifact in artifacts:
            self.add(artifact)
        self._provided: FrozenSet[str] = STDLIB_MODULES | frozenset(provided)

    @property
    def provided(self) -> FrozenSet[str]:
        return self._provided

    def add(self, artifact: Artifact) -> None:
        self._artifacts[artifact.name] = artifact

    def get(self, name: str) -> Optional[Artifact]:
        return self._artifacts.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)

    def artifacts(self) -> List[Artifact]:
        return list(self._artifacts.values())

    def with_provided(self, provided: Iterable[str]) -> "DependencyGraph":
        """
        Returns a graph with the same artifacts but ``provided`` (plus the
        standard library) as the provided names.
        """
        return DependencyGraph(self._artifacts.values(), provided)

    def is_provided(self, name: str) -> bool:
        return _top_level(name) in self._provided

    def closure(self, entrypoints: Iterable[str]) -> List[Artifact]:
        """
        Returns every artifact reachable from the ``entrypoints`` module
        names, each exactly once, in breadth first order. The parent packages
        of a reachable module are reachable too. Provided names are skipped.

        Raises:
            DependencyResolutionError: if a reachable name is neither an
                artifact of this graph nor provided
        """
        entrypoints = list(entrypoints)
        queue: Deque[Tuple[str, Optional[str]]] = deque(
            (name, None) for name in entrypoints
        )
        visited: Set[str] = set()
        result: List[Artifact] = []

        while queue:
            name, referenced_by = queue.popleft()
            if name in visited:
                continue
            visited.add(name)

            if self.is_provided(name):
                continue
            artifact = self._artifacts.get(name)
            if artifact is None:
                raise DependencyResolutionError(name, referenced_by)

            result.append(artifact)
            if artifact.parent:
                queue.append((artifact.parent, name))
            for dep in artifact.dependencies:
                queue.append((dep, name))

        log.debug(
            f"Resolved {len(result)} artifacts from {entrypoints}: {[a.name for a in result]}"
        )
        return result

    @staticmethod
    def from_manifest(
        manifest: Mapping[str, Any], provided: Iterable[str] = ()
    ) -> "DependencyGraph":
        artifacts = [
            Artifact(
                name=name,
                path=entry["path"],
                dependencies=tuple(entry.get("dependencies", ())),
                is_package=bool(entry.get("package", False)),
            )
            for name, entry in manifest.get("artifacts", {}).items()
        ]
        return DependencyGraph(
            artifacts, [*manifest.get("provided", ()), *provided]
        )

    @staticmethod
    def from_yaml(text: str, provided: Iterable[str] = ()) -> "DependencyGraph":
        return DependencyGraph.from_manifest(yaml.safe_load(text) or {}, provided)

    @staticmethod
    def scan(roots: Iterable[str], provided: Iterable[str] = ()) -> "DependencyGraph":
        """
        Builds the graph of the modules found under ``roots``. Each root is
        either a package directory (``/src/app`` yields ``app``, ``app.util``, ...)
        or a single module file (``/src/tool.py`` yields ``tool``).

        Raises:
            SyntaxError: if a source file cannot be parsed
        """
        sources: Dict[str, Tuple[str, bool]] = {}
        for root in roots:
            root = os.path.abspath(root)
            if os.path.isfile(root):
                name, _ = os.path.splitext(os.path.basename(root))
                sources[name] = (root, False)
            else:
                sources.update(_find_modules(root))

        known = set(sources.keys())
        artifacts = []
        for name, (path, is_package) in sources.items():
            with open(path, "rb") as f:
                tree = ast.parse(f.read(), filename=path)
            visitor = ImportVisitor(name, is_package, known)
            visitor.visit(tree)
            artifacts.append(
                Artifact(name, path, tuple(visitor.imports), is_package)
            )
        return DependencyGraph(artifacts, provided)


def _find_modules(package_dir: str) -> Dict[str, Tuple[str, bool]]:
    top = os.path.basename(package_dir.rstrip(os.sep))
    base = os.path.dirname(package_dir.rstrip(os.sep))
    found: Dict[str, Tuple[str, bool]] = {}
    for dirpath, dirnames, filenames in os.walk(package_dir):
        dirnames[:] = sorted(
            d for d in dirnames if d != "__pycache__" and not d.startswith(".")
        )
        rel = os.path.relpath(dirpath, base)
        package = ".".join(rel.split(os.sep))
        for filename in sorted(filenames):
            if not filename.endswith(".py"):
                continue
            path = os.path.join(dirpath, filename)
            if filename == "__init__.py":
                found[package] = (path, True)
            else:
                found[f"{package}.{filename[:-3]}"] = (path, False)
    log.debug(f"Found {len(found)} modules under {top}")
    return found


def _is_type_checking(test: ast.expr) -> bool:
    if isinstance(test, ast.Name):
        return test.id == "TYPE_CHECKING"
    if isinstance(test, ast.Attribute):
        return test.attr == "TYPE_CHECKING"
    return False


class ImportVisitor(ast.NodeVisitor):
    """
    Collects the names of the modules imported by a module. Imports under
    ``if TYPE_CHECKING:`` are skipped since they never execute.
    ``from pkg import name`` also records ``pkg.name`` when that is a known module.
    """

    def __init__(self, module: str, is_package: bool, known: Iterable[str]) -> None:
        self.module = module
        self.package: str = module if is_package else module.rpartition(".")[0]
        self.known: Set[str] = set(known)
        self.imports: List[str] = []

    def _add(self, name: str) -> None:
        if name and name != self.module and name not in self.imports:
            self.imports.append(name)

    def _resolve_relative(self, level: int, module: Optional[str]) -> str:
        parts = self.package.split(".") if self.package else []
        if level - 1 > len(parts):
            raise ImportError(
                f"Relative import beyond top-level package in {self.module}"
            )
        base = parts[: len(parts) - (level - 1)]
        if module:
            base.append(module)
        return ".".join(base)

    def visit_If(self, node: ast.If) -> None:
        if _is_type_checking(node.test):
            for child in node.orelse:
                self.visit(child)
        else:
            self.generic_visit(node)

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._add(alias.name)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.level:
            base = self._resolve_relative(node.level, node.module)
        else:
            base = node.module or ""
        self._add(base)
        for alias in node.names:
            candidate = f"{base}.{alias.name}" if base else alias.name
            if candidate in self.known:
                self._add(candidate)
