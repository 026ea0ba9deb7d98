#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import abc
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, TYPE_CHECKING

from launchkit.specs.api import AppSpec, LocalFile, STDERR, STDOUT

if TYPE_CHECKING:
    from launchkit.security.credentials import Credentials


class AppState(str, Enum):
    """
    State of the launched application master as reported by its controller.
    """

    SUBMITTED = "SUBMITTED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


_TERMINAL_STATES = [AppState.SUCCEEDED, AppState.FAILED, AppState.CANCELLED]


def is_terminal(state: AppState) -> bool:
    return state in _TERMINAL_STATES


class ProcessController(abc.ABC):
    """
    Handle to a launched application master.
    """

    @property
    @abc.abstractmethod
    def app_id(self) -> str:
        raise NotImplementedError()

    @abc.abstractmethod
    def status(self) -> AppState:
        raise NotImplementedError()

    @abc.abstractmethod
    def cancel(self) -> None:
        """
        Requests the application to be killed. Safe to call on a finished application.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def wait(self, timeout: Optional[float] = None) -> AppState:
        """
        Blocks until the application reaches a terminal state (or ``timeout``
        seconds pass) and returns the last known state.
        """
        raise NotImplementedError()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(app_id={self.app_id})"


class LaunchBuilder(abc.ABC):
    """
    Collects how the master process is started. Implementors need only
    implement :py:meth:`launch`.
    """

    def __init__(
        self,
        app_id: str,
        env: Mapping[str, str],
        files: Sequence[LocalFile],
        credentials: "Credentials",
    ) -> None:
        self.app_id = app_id
        self.env: Dict[str, str] = dict(env)
        self.files: List[LocalFile] = list(files)
        self.credentials = credentials
        self.commands: List[str] = []
        self.stdout: Optional[str] = None
        self.stderr: Optional[str] = None
        self.memory_mb: Optional[int] = None
        self.vcores: Optional[int] = None

    def with_commands(self, *tokens: str) -> "LaunchBuilder":
        self.commands.extend(tokens)
        return self

    def redirect_output(self, path: str) -> "LaunchBuilder":
        self.stdout = path
        return self

    def redirect_error(self, path: str) -> "LaunchBuilder":
        self.stderr = path
        return self

    def with_resources(self, memory_mb: int, vcores: int) -> "LaunchBuilder":
        self.memory_mb = memory_mb
        self.vcores = vcores
        return self

    @abc.abstractmethod
    def launch(self) -> ProcessController:
        """
        Starts the process.

        Raises:
            SubmissionRejected: if the cluster refuses to launch the process
        """
        raise NotImplementedError()


class ProcessLauncher(abc.ABC):
    """
    A launcher for a single application. Creating it allocates the application id.
    """

    @property
    @abc.abstractmethod
    def app_id(self) -> str:
        raise NotImplementedError()

    @abc.abstractmethod
    def prepare_launch(
        self,
        env: Mapping[str, str],
        files: Sequence[LocalFile],
        credentials: "Credentials",
    ) -> LaunchBuilder:
        raise NotImplementedError()


class ClusterClient(abc.ABC):
    """
    Client of a cluster resource manager.
    """

    def __init__(self, backend: str, session_name: str) -> None:
        self.backend = backend
        self.session_name = session_name

    @abc.abstractmethod
    def create_launcher(self, user: str, spec: AppSpec) -> ProcessLauncher:
        """
        Allocates an application id for ``spec`` submitted as ``user``.

        Raises:
            SubmissionRejected: if the cluster refuses the application
        """
        raise NotImplementedError()

    def close(self) -> None:
        """
        Only for clients that hold local state. Safe to call multiple times.
        """
        pass


@dataclass
class LaunchDescriptor:
    """
    Everything the cluster needs to start the master. Built once by the
    preparer and consumed once by :py:meth:`launch`.
    """

    env: Dict[str, str]
    commands: List[str]
    memory_mb: int
    vcores: int
    files: List[LocalFile] = field(default_factory=list)
    stdout: str = STDOUT
    stderr: str = STDERR
    _consumed: bool = field(default=False, init=False, repr=False)

    def launch(
        self, launcher: ProcessLauncher, credentials: "Credentials"
    ) -> ProcessController:
        if self._consumed:
            raise RuntimeError(f"Launch of {launcher.app_id} was already submitted")
        self._consumed = True
        return (
            launcher.prepare_launch(self.env, self.files, credentials)
            .with_commands(*self.commands)
            .redirect_output(self.stdout)
            .redirect_error(self.stderr)
            .with_resources(self.memory_mb, self.vcores)
            .launch()
        )
