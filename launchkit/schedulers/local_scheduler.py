#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
This contains the launchkit local cluster client which launches the
application master as a subprocess of the current host. Useful to try out
an application (and in tests) without a cluster.
"""

import io
import logging
import os
import posixpath
import shutil
import signal
import subprocess
import tempfile
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

import fsspec
from launchkit.schedulers.api import (
    AppState,
    ClusterClient,
    LaunchBuilder,
    ProcessController,
    ProcessLauncher,
)
from launchkit.schedulers.ids import make_unique
from launchkit.security.credentials import Credentials
from launchkit.specs.api import (
    AppSpec,
    env_keys,
    files,
    LocalFile,
    LOG_DIR,
    SubmissionRejected,
)
from launchkit.staging.localizer import get_extension
from launchkit.util.strings import normalize_str
from pyre_extensions import none_throws

log: logging.Logger = logging.getLogger(__name__)


class LocalProcessController(ProcessController):
    def __init__(
        self,
        app_id: str,
        # pyre-fixme[24]: Generic type `subprocess.Popen` expects 1 type parameter.
        proc: subprocess.Popen,
        workdir: str,
        streams: Sequence[io.FileIO] = (),
    ) -> None:
        self._app_id = app_id
        self._proc = proc
        self._streams = list(streams)
        self._cancelled = False
        self.workdir = workdir

    @property
    def app_id(self) -> str:
        return self._app_id

    @property
    def pid(self) -> int:
        return self._proc.pid

    def _close_streams(self) -> None:
        # the child keeps its own copies of the log file descriptors
        for stream in self._streams:
            stream.close()
        self._streams.clear()

    def status(self) -> AppState:
        returncode = self._proc.poll()
        if returncode is None:
            return AppState.RUNNING
        self._close_streams()
        if self._cancelled:
            return AppState.CANCELLED
        elif returncode == 0:
            return AppState.SUCCEEDED
        else:
            return AppState.FAILED

    def cancel(self) -> None:
        if self._proc.poll() is not None:
            self._close_streams()
            return
        self._cancelled = True
        try:
            os.killpg(self._proc.pid, signal.SIGTERM)
        except ProcessLookupError:
            log.debug(f"Process {self._proc.pid} already terminated")
        self._close_streams()

    def wait(self, timeout: Optional[float] = None) -> AppState:
        try:
            self._proc.wait(timeout)
        except subprocess.TimeoutExpired:
            log.debug(f"{self._app_id} still running after {timeout}s")
        return self.status()


class LocalLaunchBuilder(LaunchBuilder):
    def __init__(
        self,
        app_id: str,
        workdir: str,
        env: Mapping[str, str],
        files: Sequence[LocalFile],
        credentials: Credentials,
    ) -> None:
        super().__init__(app_id, env, files, credentials)
        self._workdir = workdir

    def _fetch(self, local_file: LocalFile) -> None:
        dst = os.path.join(self._workdir, local_file.name)
        if not local_file.archive:
            with fsspec.open(local_file.uri, "rb") as src, open(dst, "wb") as out:
                shutil.copyfileobj(src, out)
            return

        # shutil.unpack_archive infers the format from the file name
        ext = get_extension(urlparse(local_file.uri).path or local_file.uri)
        with tempfile.TemporaryDirectory(dir=self._workdir) as tmpdir:
            archive = os.path.join(tmpdir, f"archive.{ext}")
            with fsspec.open(local_file.uri, "rb") as src, open(archive, "wb") as out:
                shutil.copyfileobj(src, out)
            shutil.unpack_archive(archive, dst)

    def _expand(self, s: str, log_dir: str) -> str:
        return s.replace(LOG_DIR, log_dir)

    def _get_file_io(self, path: Optional[str], log_dir: str) -> Optional[io.FileIO]:
        if not path:
            return None
        path = self._expand(path, log_dir)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        return io.open(path, mode="wb", buffering=0)

    def launch(self) -> ProcessController:
        if not self.commands:
            raise SubmissionRejected(f"No command to launch for {self.app_id}")

        log_dir = os.path.join(self._workdir, "logs")
        os.makedirs(log_dir, exist_ok=True)

        for local_file in self.files:
            log.debug(f"Localizing {local_file.uri} as {local_file.name}")
            self._fetch(local_file)

        with open(os.path.join(self._workdir, files.CREDENTIALS), "w") as f:
            f.write(self.credentials.to_json())

        if self.memory_mb is not None:
            log.debug(
                f"Local launch of {self.app_id} ignores the requested"
                f" {self.memory_mb}MB, {self.vcores} vcores"
            )

        # inherit the parent's env vars, overridden by the launch env
        env = os.environ.copy()
        env.update(self.env)
        env[env_keys.APP_ID] = self.app_id

        cmd = self._expand(" ".join(self.commands), log_dir)
        stdout = self._get_file_io(self.stdout, log_dir)
        stderr = self._get_file_io(self.stderr, log_dir)
        streams = [s for s in (stdout, stderr) if s is not None]

        log.info(f"Launching {self.app_id} in {self._workdir}: {cmd}")
        try:
            proc = subprocess.Popen(
                cmd,
                shell=True,
                cwd=self._workdir,
                env=env,
                stdout=stdout,
                stderr=stderr,
                start_new_session=True,
            )
        except OSError as e:
            for s in streams:
                s.close()
            raise SubmissionRejected(f"Failed to launch {self.app_id}: {e}") from e
        return LocalProcessController(self.app_id, proc, self._workdir, streams)


class LocalProcessLauncher(ProcessLauncher):
    def __init__(self, app_id: str, workdir: str) -> None:
        self._app_id = app_id
        self._workdir = workdir

    @property
    def app_id(self) -> str:
        return self._app_id

    def prepare_launch(
        self,
        env: Mapping[str, str],
        files: Sequence[LocalFile],
        credentials: Credentials,
    ) -> LaunchBuilder:
        return LocalLaunchBuilder(self._app_id, self._workdir, env, files, credentials)


class LocalClusterClient(ClusterClient):
    """
    Launches the master as a local subprocess in a fresh working directory
    ``<base_dir>/<session_name>/<app_id>``. The staged files are copied (or,
    for archives, expanded) into the working directory under their
    localized names, the credentials are written to ``credentials.json``
    and ``<LOG_DIR>`` is expanded to ``<workdir>/logs``.

    .. note:: Memory and vcore requests are not enforced locally.
    """

    def __init__(self, session_name: str, base_dir: Optional[str] = None) -> None:
        super().__init__("local", session_name)
        self._base_dir = base_dir
        self._launched: Dict[str, str] = {}

    def _get_base_dir(self) -> str:
        if not self._base_dir:
            self._base_dir = tempfile.mkdtemp(prefix="launchkit_")
        return none_throws(self._base_dir)

    def create_launcher(self, user: str, spec: AppSpec) -> ProcessLauncher:
        app_id = make_unique(normalize_str(spec.name) or "app")
        workdir = posixpath.join(self._get_base_dir(), self.session_name, app_id)
        os.makedirs(workdir)
        log.debug(f"Allocated {app_id} for user `{user}` in {workdir}")
        self._launched[app_id] = workdir
        return LocalProcessLauncher(app_id, workdir)

    def workdirs(self) -> List[str]:
        return list(self._launched.values())


def create_client(session_name: str, **kwargs: Any) -> LocalClusterClient:
    return LocalClusterClient(session_name, base_dir=kwargs.get("base_dir"))
