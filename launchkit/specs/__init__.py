#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
This contains the launchkit ``AppSpec`` and related definitions. An ``AppSpec``
describes the runnables of a distributed application, which the preparer
(:py:mod:`launchkit.runner`) turns into a staged, self-contained deployment.
"""

from launchkit.specs.api import (  # noqa: F401
    AppSpec,
    Arguments,
    ArtifactMap,
    CfgVal,
    CredentialAcquisitionWarning,
    DependencyResolutionError,
    env_keys,
    EventHandlerSpec,
    ExecutableSpec,
    files,
    get_type_name,
    IncompatibleSpecificationVersion,
    InvalidRunConfigException,
    LocalFile,
    LOG_DIR,
    MASTER_LOCALIZE_FILES,
    Order,
    OrderType,
    Resource,
    ResourceStagingError,
    runopt,
    runopts,
    RuntimeSpec,
    STDERR,
    STDOUT,
    SubmissionError,
    SubmissionRejected,
    UnsupportedCredentialType,
)
