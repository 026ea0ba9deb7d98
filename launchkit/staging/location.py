#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Locations on the shared staging storage. Any file system supported by
``fsspec`` can be used (``file://``, ``memory://``, ``hdfs://``, ``s3://``, ...).
"""

import posixpath
from datetime import datetime
from typing import IO, Tuple

import fsspec
from fsspec import AbstractFileSystem
from launchkit.schedulers.ids import random_id


class Location:
    """
    A file (or directory) on a file system. Cheap to create; nothing is
    touched on the file system until one of the I/O methods is called.
    """

    def __init__(self, fs: AbstractFileSystem, path: str) -> None:
        self._fs = fs
        self._path = path

    @property
    def fs(self) -> AbstractFileSystem:
        return self._fs

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return posixpath.basename(self._path.rstrip("/"))

    @property
    def uri(self) -> str:
        return self._fs.unstrip_protocol(self._path)

    def append(self, child: str) -> "Location":
        return Location(self._fs, posixpath.join(self._path, child.lstrip("/")))

    def temp_file(self, suffix: str) -> "Location":
        """
        Returns a location next to this one whose name is this location's name
        followed by a random part and ``suffix``. The file is not created.
        """
        return Location(self._fs, f"{self._path}{random_id()}{suffix}")

    def open(self, mode: str = "rb") -> IO[bytes]:
        if "w" in mode or "a" in mode:
            parent = posixpath.dirname(self._path)
            if parent:
                self._fs.makedirs(parent, exist_ok=True)
        return self._fs.open(self._path, mode)

    def exists(self) -> bool:
        return self._fs.exists(self._path)

    def length(self) -> int:
        return int(self._fs.size(self._path))

    def last_modified(self) -> int:
        """
        Returns the modification time of the file in epoch millis.
        """
        info = self._fs.info(self._path)
        mtime = info.get("mtime")
        if mtime is None:
            try:
                mtime = self._fs.modified(self._path)
            except NotImplementedError:
                mtime = info.get("created", 0)
        if isinstance(mtime, datetime):
            mtime = mtime.timestamp()
        return int(float(mtime) * 1000)

    def delete(self, recursive: bool = False) -> None:
        self._fs.rm(self._path, recursive=recursive)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Location) and self.uri == other.uri

    def __hash__(self) -> int:
        return hash(self.uri)

    def __repr__(self) -> str:
        return f"Location({self.uri})"


_LOCAL_PROTOCOLS = ("file", "local")


def _protocols(fs: AbstractFileSystem) -> Tuple[str, ...]:
    protocol = fs.protocol
    return (protocol,) if isinstance(protocol, str) else tuple(protocol)


class LocationFactory:
    """
    Creates :py:class:`Location` objects relative to ``root_url``.

    .. code-block:: python

     factory = LocationFactory("memory:///staging")
     factory.create("app/r1/spec.json").uri  # memory:///staging/app/r1/spec.json
     factory.create("s3://bucket/cfg.yaml")  # absolute URIs are kept as is

    """

    def __init__(self, root_url: str) -> None:
        self._fs, self._root = fsspec.core.url_to_fs(root_url)

    @property
    def protocol(self) -> str:
        return _protocols(self._fs)[0]

    def is_native(self, uri: str) -> bool:
        """
        Returns ``True`` if ``uri`` names a file on the (shared) file system of
        this factory with an explicit scheme. Plain paths and ``file://`` URIs
        are local to the submitting host and never native.
        """
        scheme, sep, _ = uri.partition("://")
        if not sep or scheme in _LOCAL_PROTOCOLS:
            return False
        return scheme in _protocols(self._fs)

    def create(self, path_or_uri: str) -> Location:
        if "://" in path_or_uri:
            if self.is_native(path_or_uri):
                return Location(self._fs, self._fs._strip_protocol(path_or_uri))
            fs, path = fsspec.core.url_to_fs(path_or_uri)
            return Location(fs, path)
        return Location(
            self._fs, posixpath.join(self._root, path_or_uri.lstrip("/"))
        )
