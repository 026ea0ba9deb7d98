#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
The logging configuration template shipped with every application. The
template is a :py:func:`logging.config.dictConfig` document in YAML. Both
the master and the workers configure their logging from it.
"""

import logging
import logging.config

import yaml

LOGGING_TEMPLATE: str = """\
version: 1
disable_existing_loggers: false
formatters:
  default:
    format: "%(asctime)s %(levelname)s %(name)s: %(message)s"
handlers:
  console:
    class: logging.StreamHandler
    formatter: default
    stream: ext://sys.stderr
loggers:
  launchkit:
    level: INFO
root:
  level: WARNING
  handlers: [console]
"""


def configure_logging(template: str) -> None:
    """
    Configures logging from the YAML ``template``.

    Raises:
        ValueError: if the template is not a valid logging configuration
    """
    config = yaml.safe_load(template)
    if not isinstance(config, dict):
        raise ValueError(f"Invalid logging template: {template!r}")
    logging.config.dictConfig(config)
