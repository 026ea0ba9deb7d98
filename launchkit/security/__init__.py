#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

from launchkit.security.credentials import (  # noqa: F401
    CredentialPropagator,
    CredentialResult,
    Credentials,
    DelegationTokenProvider,
    Identity,
    merge,
    SecureStore,
    Token,
)
