#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
You can store the preparer options of your project in a ``.launchkitconfig``
file (INI format). Options go in the ``[preparer]`` section; options that only
apply to one cluster client go in a ``[preparer:<scheduler>]`` section which
takes precedence over ``[preparer]``.

.. code-block:: ini

 [preparer]
 coordination_connect = zk-1:2181,zk-2:2181
 master_memory_mb = 1024
 provided_packages = yaml;fsspec;numpy

 [preparer:local]
 master_memory_mb = 256

List options are ``;`` delimited. ``None`` maps to an unset option.

Config files are looked up in ``$HOME`` and then ``$CWD`` (values found
first win) unless ``$LAUNCHKITCONFIG`` points to a single config file.
Options passed to the preparer explicitly always take precedence over the
ones in config files.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

from launchkit.specs.api import CfgVal, get_type_name, runopt, runopts

CONFIG_FILE = ".launchkitconfig"
CONFIG_SECTION = "preparer"
CONFIG_PREFIX_DELIM = ":"
ENV_LAUNCHKITCONFIG = "LAUNCHKITCONFIG"

_NONE = "None"

log: logging.Logger = logging.getLogger(__name__)


def _configparser() -> configparser.ConfigParser:
    config = configparser.ConfigParser()
    # option keys are case-sensitive
    # pyre-ignore[8]
    config.optionxform = lambda option: option
    return config


def _fixme_placeholder(opt: runopt, max_len: int = 60) -> str:
    ph = f"#FIXME:({get_type_name(opt.opt_type)}) {opt.help}"
    return ph if len(ph) <= max_len else f"{ph[:max_len]}..."


def dump(f: TextIO, opts: runopts, required_only: bool = False) -> None:
    """
    Dumps an INI config template with the given ``opts`` into ``f``. Optional
    opts are pre-filled with their defaults, required ones with a ``#FIXME`` placeholder.
    """
    config = _configparser()
    config.add_section(CONFIG_SECTION)
    for name, opt in opts:
        if opt.is_required:
            val = _fixme_placeholder(opt)
        else:
            if required_only:
                continue
            if opt.opt_type == List[str]:
                # pyre-ignore[6] opt.default type checked already as List[str]
                val = ";".join(opt.default) if opt.default else _NONE
            else:
                val = f"{opt.default}"
        config.set(CONFIG_SECTION, name, val)
    config.write(f, space_around_delimiters=True)


def find_configs(dirs: Optional[Iterable[str]] = None) -> List[str]:
    """
    Returns the ``.launchkitconfig`` files to load: the file named by
    ``$LAUNCHKITCONFIG`` if set (``dirs`` are then NOT searched), otherwise
    the existing config files in ``dirs`` (``[$HOME, $CWD]`` if not given).

    Raises:
        FileNotFoundError: if ``$LAUNCHKITCONFIG`` is not a file
    """
    config = os.getenv(ENV_LAUNCHKITCONFIG)
    if config is not None:
        configfile = Path(config)
        if not configfile.is_file():
            raise FileNotFoundError(
                f"`{ENV_LAUNCHKITCONFIG}={config}` does not exist or is not a file."
            )
        return [str(configfile)]

    if not dirs:
        dirs = [str(Path.home()), str(Path.cwd())]
    config_files = []
    for d in dirs:
        configfile = Path(d) / CONFIG_FILE
        if configfile.exists() and str(configfile) not in config_files:
            config_files.append(str(configfile))
    return config_files


def _parse(config: configparser.ConfigParser, section: str, name: str, opt: runopt) -> CfgVal:
    value = config.get(section, name)
    if value == _NONE:
        return None
    if opt.opt_type is bool:
        # bool("False") is True
        return config.getboolean(section, name)
    if opt.opt_type == List[str]:
        return [v.strip() for v in value.split(";") if v.strip()]
    # pyre-ignore[29]
    return opt.opt_type(value)


def load(
    f: TextIO, cfg: Dict[str, CfgVal], opts: runopts, scheduler: Optional[str] = None
) -> None:
    """
    Loads the ``[preparer:<scheduler>]`` and ``[preparer]`` sections of the
    config file ``f`` into ``cfg``, only adding options that are NOT already
    in ``cfg``. Unknown options are ignored with a warning.
    """
    config = _configparser()
    config.read_file(f)

    sections = [CONFIG_SECTION]
    if scheduler:
        sections.insert(0, f"{CONFIG_SECTION}{CONFIG_PREFIX_DELIM}{scheduler}")

    for section in sections:
        if not config.has_section(section):
            continue
        for name, _ in config.items(section):
            if name in cfg:
                # DO NOT OVERRIDE existing configs
                continue
            opt = opts.get(name)
            if opt is None:
                log.warning(
                    f"`{name}` was declared in the [{section}] section of the config file"
                    f" but is not a preparer option. Remove the entry from the config file"
                    f" to no longer see this warning"
                )
                continue
            cfg[name] = _parse(config, section, name, opt)


def apply(
    cfg: Dict[str, CfgVal],
    opts: runopts,
    scheduler: Optional[str] = None,
    dirs: Optional[List[str]] = None,
) -> None:
    """
    Loads the config files found by :py:func:`find_configs` (in order) into
    ``cfg``. Values already in ``cfg`` and values from earlier files win.
    """
    for configfile in find_configs(dirs):
        with open(configfile, "r") as f:
            load(f, cfg, opts, scheduler)
        log.info(f"loaded configs from {configfile}")
