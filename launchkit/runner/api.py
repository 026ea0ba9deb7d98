#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import json
import logging
import shlex
from contextlib import contextmanager
from types import ModuleType
from typing import (
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    Union,
)

from launchkit.bundler import ApplicationBundler, DependencyGraph, launchkit_root
from launchkit.master.log_config import LOGGING_TEMPLATE
from launchkit.runner import config as config_files
from launchkit.runner.events import log_event
from launchkit.schedulers import get_cluster_client_factories
from launchkit.schedulers.api import (
    ClusterClient,
    LaunchDescriptor,
    ProcessController,
    ProcessLauncher,
)
from launchkit.schedulers.ids import generate_run_id
from launchkit.security.credentials import (
    check_store,
    CredentialPropagator,
    Credentials,
    DelegationTokenProvider,
    Identity,
    merge,
    SecureStore,
)
from launchkit.specs.api import (
    AppSpec,
    Arguments,
    ArtifactMap,
    CfgVal,
    env_keys,
    files,
    InvalidRunConfigException,
    LocalFile,
    MASTER_LOCALIZE_FILES,
    ResourceStagingError,
    runopts,
    STDERR,
    STDOUT,
    SubmissionError,
    SubmissionRejected,
)
from launchkit.specs.codec import (
    encode_arguments,
    encode_local_files,
    encode_spec,
    rewrite,
)
from launchkit.staging.localizer import get_extension, ResourceLocalizer
from launchkit.staging.location import Location, LocationFactory

log: logging.Logger = logging.getLogger(__name__)

MASTER_ENTRYPOINT = "launchkit.master.main:main"
CONTAINER_ENTRYPOINT = "launchkit.container.main:main"
LAUNCHER_MODULE = "launchkit.launcher.main"

# third-party packages launchkit's own runtime imports; installed on every cluster node
DEFAULT_PROVIDED_PACKAGES: List[str] = [
    "yaml",
    "fsspec",
    "pyre_extensions",
]

Dependency = Union[str, ModuleType, type]
ControllerFactory = Callable[
    [str, List[logging.Handler], Callable[[], ProcessController]], object
]


def namespaced_connect(connect: str, namespace: str) -> str:
    """
    Returns the coordination service connect string scoped under
    ``/<namespace>``, keeping any chroot already present in ``connect``.

    #. ``namespaced_connect("zk-1:2181", "wordcount")`` -> ``"zk-1:2181/wordcount"``
    #. ``namespaced_connect("zk-1:2181,zk-2:2181/apps", "wordcount")`` -> ``"zk-1:2181,zk-2:2181/apps/wordcount"``
    """
    return f"{connect.rstrip('/')}/{namespace.strip('/')}"


def _check_master_memory(cfg: Mapping[str, CfgVal]) -> None:
    memory_mb = cfg["master_memory_mb"]
    reserved_mb = cfg["master_reserved_memory_mb"]
    # pyre-ignore[58] cfg type checked by runopt.resolve()
    if memory_mb <= 0 or reserved_mb < 0 or reserved_mb >= memory_mb:
        raise InvalidRunConfigException(
            f"master_reserved_memory_mb ({reserved_mb}) must be non-negative and"
            f" less than master_memory_mb ({memory_mb})",
            "master_reserved_memory_mb",
            cfg,
        )


def _module_name(dependency: Dependency) -> str:
    if isinstance(dependency, str):
        return dependency.partition(":")[0]
    if isinstance(dependency, ModuleType):
        return dependency.__name__
    return dependency.__module__


class Preparer:
    """
    Prepares and launches one run of an application: bundles the code,
    stages every artifact under ``/<app name>/<run id>/`` of the
    ``location_factory`` and asks the cluster to start the master.

    .. code-block:: python

     controller = (
         Preparer(spec, client, LocationFactory("hdfs:///apps"), identity, cfg)
         .with_application_arguments("--verbose")
         .with_arguments("worker", "--shard", "3")
         .with_resources("file:///etc/app/extra.yaml")
         .start()
     )

    ``start()`` raises exactly one :py:class:`~launchkit.specs.api.SubmissionError`
    (tagged with the stage that failed) if the submission fails. Artifacts
    staged before the failure are left in place.
    """

    def __init__(
        self,
        spec: AppSpec,
        client: ClusterClient,
        location_factory: LocationFactory,
        identity: Identity,
        cfg: Optional[Mapping[str, CfgVal]] = None,
        run_id: Optional[str] = None,
        graph: Optional[DependencyGraph] = None,
        source_roots: Sequence[str] = (),
        token_providers: Sequence[DelegationTokenProvider] = (),
        controller_factory: Optional[ControllerFactory] = None,
    ) -> None:
        spec.validate()
        self._spec = spec
        self._client = client
        self._location_factory = location_factory
        self._identity = identity
        self._cfg: Dict[str, CfgVal] = Preparer.run_opts().resolve(cfg or {})
        _check_master_memory(self._cfg)
        self._run_id: str = run_id or generate_run_id()
        self._source_roots: List[str] = list(source_roots)
        self._graph = graph
        self._token_providers = token_providers
        self._controller_factory = controller_factory

        self._user: str = identity.user
        self._log_handlers: List[logging.Handler] = []
        self._arguments: List[str] = []
        self._runnable_arguments: Dict[str, List[str]] = {}
        self._dependencies: List[str] = []
        self._resources: List[str] = []
        self._class_paths: List[str] = []
        self._secure_stores: List[SecureStore] = []
        self._started = False

        # populated by start(), artifacts are only registered once fully staged
        self.artifacts: ArtifactMap = ArtifactMap()
        self.localized: Dict[str, List[LocalFile]] = {}

    @staticmethod
    def run_opts() -> runopts:
        opts = runopts()
        opts.add(
            "coordination_connect",
            type_=str,
            required=True,
            help="connect string of the coordination service the application registers with",
        )
        opts.add(
            "master_memory_mb",
            type_=int,
            default=512,
            help="memory (MB) of the master process",
        )
        opts.add(
            "master_reserved_memory_mb",
            type_=int,
            default=150,
            help="memory (MB) of the master held back from the interpreter for native overhead",
        )
        opts.add(
            "reserved_memory_mb",
            type_=int,
            default=200,
            help="memory (MB) of each worker held back from the interpreter for native overhead",
        )
        opts.add(
            "master_vcores",
            type_=int,
            default=1,
            help="virtual cores of the master process",
        )
        opts.add(
            "python",
            type_=str,
            default="python3",
            help="python interpreter to launch the master with",
        )
        opts.add(
            "runtime_options",
            type_=str,
            default="",
            help="extra interpreter options (e.g. `-X faulthandler`)",
        )
        opts.add(
            "provided_packages",
            type_=List[str],
            default=DEFAULT_PROVIDED_PACKAGES,
            help="top-level packages installed on the cluster that are never bundled",
        )
        return opts

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def cfg(self) -> Mapping[str, CfgVal]:
        return self._cfg

    def set_user(self, user: str) -> "Preparer":
        self._user = user
        return self

    def with_application_arguments(self, *args: str) -> "Preparer":
        self._arguments.extend(args)
        return self

    def with_arguments(self, runnable_name: str, *args: str) -> "Preparer":
        if runnable_name not in self._spec.runnables:
            raise ValueError(
                f"Unknown runnable: {runnable_name}. Runnables of {self._spec.name}:"
                f" {list(self._spec.runnables.keys())}"
            )
        self._runnable_arguments.setdefault(runnable_name, []).extend(args)
        return self

    def with_dependencies(self, *dependencies: Dependency) -> "Preparer":
        """
        Adds modules to bundle with the workers in addition to the ones
        reachable from the runnables' entry points. Accepts module names,
        modules, and classes (their defining module is bundled).
        """
        self._dependencies.extend(_module_name(d) for d in dependencies)
        return self

    def with_resources(self, *uris: str) -> "Preparer":
        self._resources.extend(uris)
        return self

    def with_class_paths(self, *paths: str) -> "Preparer":
        self._class_paths.extend(paths)
        return self

    def add_secure_store(self, secure_store: SecureStore) -> "Preparer":
        """
        Raises:
            UnsupportedCredentialType: if the store does not hold ``Credentials``
        """
        self._secure_stores.append(check_store(secure_store))
        return self

    def add_log_handler(self, handler: logging.Handler) -> "Preparer":
        self._log_handlers.append(handler)
        return self

    def start(self) -> object:
        """
        Allocates the application on the cluster, stages its artifacts and
        launches the master. Returns the ``ProcessController`` of the master,
        or whatever the ``controller_factory`` returns if one was given.

        Raises:
            SubmissionError: if any stage of the submission fails
        """
        if self._started:
            raise RuntimeError(f"Run {self._run_id} of {self._spec.name} already started")
        self._started = True

        with log_event(
            "start",
            self._client.backend,
            app_name=self._spec.name,
            run_id=self._run_id,
            runcfg=json.dumps(self._cfg),
        ) as ctx:
            try:
                with self._stage("create_launcher", SubmissionRejected):
                    launcher = self._client.create_launcher(self._user, self._spec)
                ctx.event.app_id = launcher.app_id

                def submit() -> ProcessController:
                    return self._submit(launcher)

                if self._controller_factory:
                    return self._controller_factory(
                        self._run_id, list(self._log_handlers), submit
                    )
                return submit()
            except Exception:
                log.error(f"Failed to submit application {self._spec.name}", exc_info=True)
                raise

    @contextmanager
    def _stage(
        self,
        name: str,
        error_type: Type[SubmissionError],
        artifact: Optional[str] = None,
    ) -> Iterator[None]:
        with log_event(
            name, self._client.backend, app_name=self._spec.name, run_id=self._run_id
        ):
            try:
                yield
            except SubmissionError as e:
                if e.stage is None:
                    e.stage = name
                raise
            except Exception as e:
                if error_type is ResourceStagingError:
                    err: SubmissionError = ResourceStagingError(
                        f"Failed to stage {artifact}: {e}", artifact or name
                    )
                else:
                    err = error_type(f"{type(e).__name__}: {e}", artifact)
                err.stage = name
                raise err from e

    def _run_location(self) -> Location:
        return self._location_factory.create(f"/{self._spec.name}/{self._run_id}")

    def _temp_location(self, file_name: str) -> Location:
        ext = get_extension(file_name)
        name = file_name[: -len(ext) - 1] if ext else file_name
        return self._run_location().append(name).temp_file(f".{ext}" if ext else "")

    def _register(self, artifacts: ArtifactMap, name: str, location: Location) -> None:
        artifacts.put(
            LocalFile(
                name=name,
                uri=location.uri,
                last_modified=location.last_modified(),
                size=location.length(),
            )
        )

    def _write(self, artifacts: ArtifactMap, name: str, content: str) -> None:
        location = self._temp_location(name)
        log.debug(f"Create and copy {name}")
        with location.open("wb") as f:
            f.write(content.encode("utf-8"))
        log.debug(f"Done {name}")
        self._register(artifacts, name, location)

    def _get_graph(self) -> DependencyGraph:
        # pyre-ignore[6] cfg type checked by runopt.resolve()
        provided: List[str] = self._cfg["provided_packages"] or []
        if self._graph is None:
            self._graph = DependencyGraph.scan(
                [launchkit_root(), *self._source_roots], provided
            )
        return self._graph

    def master_entrypoints(self) -> List[str]:
        entrypoints = [MASTER_ENTRYPOINT.partition(":")[0], type(self._client).__module__]
        if self._spec.event_handler:
            entrypoints.append(self._spec.event_handler.classname.rpartition(".")[0])
        return entrypoints

    def container_entrypoints(self) -> List[str]:
        return [
            CONTAINER_ENTRYPOINT.partition(":")[0],
            *(r.executable.module for r in self._spec.runnables.values()),
            *self._dependencies,
        ]

    def _gather_credentials(self) -> Credentials:
        identity = Identity(self._user, self._identity.credentials, self._identity.secure)
        result = CredentialPropagator(
            identity, self._location_factory, self._token_providers
        ).gather()
        credentials = result.credentials
        for store in self._secure_stores:
            merge(credentials, store)
        return credentials

    def _submit(self, launcher: ProcessLauncher) -> ProcessController:
        artifacts = self.artifacts
        # pyre-ignore[9] cfg type checked by runopt.resolve()
        runtime_options: str = self._cfg["runtime_options"]

        with self._stage("credentials", SubmissionRejected):
            credentials = self._gather_credentials()

        with self._stage(
            "stage_master_archive", ResourceStagingError, files.APP_MASTER_ARCHIVE
        ):
            bundler = ApplicationBundler(self._get_graph())
            location = bundler.create_bundle(
                self._temp_location(files.APP_MASTER_ARCHIVE), self.master_entrypoints()
            )
            self._register(artifacts, files.APP_MASTER_ARCHIVE, location)

        with self._stage(
            "stage_container_archive", ResourceStagingError, files.CONTAINER_ARCHIVE
        ):
            location = bundler.create_bundle(
                self._temp_location(files.CONTAINER_ARCHIVE),
                self.container_entrypoints(),
                self._resources,
            )
            self._register(artifacts, files.CONTAINER_ARCHIVE, location)

        with self._stage("localize_resources", ResourceStagingError):
            log.debug("Populating runnable local files")
            localized = ResourceLocalizer(
                self._location_factory, self._run_location()
            ).localize(self._spec)
            log.debug("Done runnable local files")

        with self._stage("stage_spec", ResourceStagingError, files.SPEC):
            self._write(artifacts, files.SPEC, encode_spec(rewrite(self._spec, localized)))

        with self._stage(
            "stage_logging_template", ResourceStagingError, files.LOGGING_TEMPLATE
        ):
            self._write(artifacts, files.LOGGING_TEMPLATE, LOGGING_TEMPLATE)

        with self._stage("stage_launcher", ResourceStagingError, files.LAUNCHER_ARCHIVE):
            location = bundler.create_launcher(
                self._temp_location(files.LAUNCHER_ARCHIVE),
                LAUNCHER_MODULE,
                self._class_paths,
            )
            self._register(artifacts, files.LAUNCHER_ARCHIVE, location)

        if runtime_options:
            with self._stage(
                "stage_runtime_options", ResourceStagingError, files.RUNTIME_OPTIONS
            ):
                self._write(artifacts, files.RUNTIME_OPTIONS, runtime_options)

        with self._stage("stage_arguments", ResourceStagingError, files.ARGUMENTS):
            arguments = Arguments(
                list(self._arguments),
                {k: list(v) for k, v in self._runnable_arguments.items()},
            )
            self._write(artifacts, files.ARGUMENTS, encode_arguments(arguments))

        with self._stage(
            "stage_localize_files", ResourceStagingError, files.LOCALIZE_FILES
        ):
            self._write(
                artifacts,
                files.LOCALIZE_FILES,
                encode_local_files(artifacts.filter(MASTER_LOCALIZE_FILES)),
            )

        self.localized = localized

        descriptor = self._launch_descriptor(artifacts, runtime_options)
        log.debug(f"Submit master of {self._spec.name}: {launcher.app_id}")
        with self._stage("launch", SubmissionRejected):
            return descriptor.launch(launcher, credentials)

    def _launch_descriptor(
        self, artifacts: ArtifactMap, runtime_options: str
    ) -> LaunchDescriptor:
        # pyre-ignore[9] cfg type checked by runopt.resolve()
        memory_mb: int = self._cfg["master_memory_mb"]
        # pyre-ignore[9]
        reserved_mb: int = self._cfg["master_reserved_memory_mb"]
        # pyre-ignore[9]
        vcores: int = self._cfg["master_vcores"]

        env = {
            env_keys.FS_USER: self._user,
            env_keys.APP_DIR: self._run_location().uri,
            env_keys.COORDINATION_CONNECT: namespaced_connect(
                # pyre-ignore[6]
                self._cfg["coordination_connect"],
                self._spec.name,
            ),
            env_keys.RUN_ID: self._run_id,
            env_keys.RESERVED_MEMORY_MB: str(self._cfg["reserved_memory_mb"]),
            env_keys.APP_NAME: self._spec.name,
        }
        # python launcher.zip --max-memory-mb N master.zip launchkit.master.main:main false
        commands = [
            # pyre-ignore[6]
            self._cfg["python"],
            *shlex.split(runtime_options),
            files.LAUNCHER_ARCHIVE,
            "--max-memory-mb",
            str(memory_mb - reserved_mb),
            files.APP_MASTER_ARCHIVE,
            MASTER_ENTRYPOINT,
            "false",
        ]
        return LaunchDescriptor(
            env=env,
            commands=commands,
            memory_mb=memory_mb,
            vcores=vcores,
            files=artifacts.values(),
            stdout=STDOUT,
            stderr=STDERR,
        )


def get_preparer(
    spec: AppSpec,
    location_factory: LocationFactory,
    scheduler: str = "local",
    cfg: Optional[Mapping[str, CfgVal]] = None,
    identity: Optional[Identity] = None,
    session_name: str = "launchkit",
    client_kwargs: Optional[Mapping[str, object]] = None,
    **kwargs: object,
) -> Preparer:
    """
    Creates a :py:class:`Preparer` for ``spec`` with the cluster client
    registered as ``scheduler``. ``cfg`` is completed with the options found in
    ``.launchkitconfig`` files and the submitting identity defaults to the
    user running this process. Remaining ``kwargs`` are passed to the preparer.

    Raises:
        ValueError: if ``scheduler`` is not a registered cluster client
    """
    factories = get_cluster_client_factories()
    if scheduler not in factories:
        raise ValueError(
            f"`{scheduler}` is not a registered cluster client."
            f" Valid names: {list(factories.keys())}"
        )
    client = factories[scheduler](session_name, **(client_kwargs or {}))

    resolved: Dict[str, CfgVal] = dict(cfg or {})
    config_files.apply(resolved, Preparer.run_opts(), scheduler)

    return Preparer(
        spec,
        client,
        location_factory,
        identity or Identity.current(),
        resolved,
        # pyre-ignore[6]
        **kwargs,
    )
