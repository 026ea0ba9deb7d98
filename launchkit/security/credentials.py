#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Credentials handed to the launched application.

The submitting identity is passed explicitly to the pipeline (there is no
process-wide "current user" consulted while preparing a launch). Gathering
credentials is best-effort: a missing or failing credential source degrades
to fewer credentials plus a :py:class:`~launchkit.specs.api.CredentialAcquisitionWarning`
and never fails the submission.
"""

import base64
import getpass
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from launchkit.specs.api import CredentialAcquisitionWarning, UnsupportedCredentialType
from launchkit.staging.location import LocationFactory

log: logging.Logger = logging.getLogger(__name__)

CREDENTIALS_VERSION = "1.0"


@dataclass(frozen=True)
class Token:
    """
    An opaque delegation token.

    Args:
        kind: the type of the token (e.g. ``HDFS_DELEGATION_TOKEN``)
        service: the service the token grants access to
        identifier: the token identifier bytes
        password: the token secret bytes
    """

    kind: str
    service: str
    identifier: bytes = b""
    password: bytes = b""

    @property
    def alias(self) -> str:
        return self.service or self.kind


class Credentials:
    """
    A set of tokens and secret keys, each keyed by alias. Adding an entry with
    an alias that is already present replaces it; entries are never removed.
    """

    def __init__(self) -> None:
        self.tokens: Dict[str, Token] = {}
        self.secret_keys: Dict[str, bytes] = {}

    def add_token(self, token: Token, alias: Optional[str] = None) -> None:
        self.tokens[alias or token.alias] = token

    def add_secret_key(self, alias: str, key: bytes) -> None:
        self.secret_keys[alias] = key

    def add_all(self, other: "Credentials") -> None:
        self.tokens.update(other.tokens)
        self.secret_keys.update(other.secret_keys)

    def merge_all(self, others: Iterable["Credentials"]) -> "Credentials":
        """
        Adds every entry of ``others`` (in order) to this set and returns ``self``.
        """
        for other in others:
            self.add_all(other)
        return self

    def __len__(self) -> int:
        return len(self.tokens) + len(self.secret_keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Credentials):
            return False
        return self.tokens == other.tokens and self.secret_keys == other.secret_keys

    def __repr__(self) -> str:
        # never print the secrets themselves
        return (
            f"Credentials(tokens={sorted(self.tokens)},"
            f" secret_keys={sorted(self.secret_keys)})"
        )

    def to_json(self) -> str:
        def b64(data: bytes) -> str:
            return base64.b64encode(data).decode("ascii")

        return json.dumps(
            {
                "version": CREDENTIALS_VERSION,
                "tokens": {
                    alias: {
                        "kind": t.kind,
                        "service": t.service,
                        "identifier": b64(t.identifier),
                        "password": b64(t.password),
                    }
                    for alias, t in self.tokens.items()
                },
                "secret_keys": {
                    alias: b64(key) for alias, key in self.secret_keys.items()
                },
            },
            sort_keys=True,
        )

    @staticmethod
    def from_json(data: str) -> "Credentials":
        doc = json.loads(data)
        creds = Credentials()
        for alias, t in doc.get("tokens", {}).items():
            creds.add_token(
                Token(
                    kind=t["kind"],
                    service=t["service"],
                    identifier=base64.b64decode(t["identifier"]),
                    password=base64.b64decode(t["password"]),
                ),
                alias=alias,
            )
        for alias, key in doc.get("secret_keys", {}).items():
            creds.add_secret_key(alias, base64.b64decode(key))
        return creds


class SecureStore:
    """
    Wraps a caller supplied credential store. Only stores holding
    :py:class:`Credentials` can be attached to a launch.
    """

    def __init__(self, store: object) -> None:
        self._store = store

    @property
    def store(self) -> object:
        return self._store


@dataclass
class Identity:
    """
    The identity a launch is submitted as.

    Args:
        user: name of the submitting user, used as the file system user of the application
        credentials: the credentials the user already holds
        secure: whether the cluster has security enabled; when ``False`` no
            credentials are propagated at all
    """

    user: str
    credentials: Optional[Credentials] = None
    secure: bool = False

    @staticmethod
    def current(
        credentials: Optional[Credentials] = None, secure: bool = False
    ) -> "Identity":
        """
        Convenience constructor for the user running this process.
        """
        return Identity(getpass.getuser(), credentials, secure)


class DelegationTokenProvider(Protocol):
    """
    Obtains delegation tokens from a storage or cluster service on behalf of the submitting user.
    """

    def add_delegation_tokens(
        self, location_factory: LocationFactory, credentials: Credentials
    ) -> List[Token]: ...


@dataclass
class CredentialResult:
    credentials: Credentials
    warnings: List[CredentialAcquisitionWarning] = field(default_factory=list)


class CredentialPropagator:
    """
    Gathers the credentials to ship with a launch: the identity's own
    credentials plus the delegation tokens of every provider.

    .. code-block:: python

     result = CredentialPropagator(identity, location_factory, providers).gather()
     for w in result.warnings:
         ...  # already logged
     result.credentials

    """

    def __init__(
        self,
        identity: Identity,
        location_factory: LocationFactory,
        token_providers: Sequence[DelegationTokenProvider] = (),
    ) -> None:
        self._identity = identity
        self._location_factory = location_factory
        self._token_providers = token_providers

    def _warn(
        self, warnings: List[CredentialAcquisitionWarning], msg: str
    ) -> None:
        log.warning(msg)
        warnings.append(CredentialAcquisitionWarning(msg))

    def gather(self) -> CredentialResult:
        credentials = Credentials()
        warnings: List[CredentialAcquisitionWarning] = []

        if not self._identity.secure:
            self._warn(
                warnings,
                f"Security is not enabled, launching as `{self._identity.user}` without credentials",
            )
            return CredentialResult(credentials, warnings)

        if self._identity.credentials is None:
            self._warn(
                warnings,
                f"No credentials available for `{self._identity.user}`,"
                " launching with delegation tokens only",
            )
        else:
            credentials.add_all(self._identity.credentials)

        for provider in self._token_providers:
            try:
                tokens = provider.add_delegation_tokens(
                    self._location_factory, credentials
                )
            except Exception as e:
                self._warn(
                    warnings,
                    f"Failed to obtain delegation tokens from {type(provider).__name__}: {e}",
                )
                continue
            for token in tokens:
                log.debug(f"Adding delegation token `{token.kind}` for `{token.service}`")
                credentials.add_token(token)

        return CredentialResult(credentials, warnings)


def merge(credentials: Credentials, secure_store: SecureStore) -> Credentials:
    """
    Adds the content of ``secure_store`` to ``credentials`` and returns ``credentials``.

    Raises:
        UnsupportedCredentialType: if the store does not hold ``Credentials``
    """
    store = secure_store.store
    if not isinstance(store, Credentials):
        raise UnsupportedCredentialType(store)
    credentials.add_all(store)
    return credentials


def check_store(secure_store: SecureStore) -> SecureStore:
    """
    Returns ``secure_store`` if it can be merged, otherwise raises ``UnsupportedCredentialType``.
    """
    if not isinstance(secure_store.store, Credentials):
        raise UnsupportedCredentialType(secure_store.store)
    return secure_store
