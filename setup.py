#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

import os
import re
import sys

from setuptools import find_packages, setup


def get_version():
    # get version string from version.py
    version_file = os.path.join(os.path.dirname(__file__), "launchkit/version.py")
    version_regex = r"__version__ = ['\"]([^'\"]*)['\"]"
    with open(version_file, "r") as f:
        version = re.search(version_regex, f.read(), re.M).group(1)
        return version


if __name__ == "__main__":
    if sys.version_info < (3, 10):
        sys.exit("python >= 3.10 required for launchkit")

    with open("README.md", encoding="utf8") as f:
        readme = f.read()

    with open("requirements.txt") as f:
        reqs = f.read()

    with open("dev-requirements.txt") as f:
        dev_reqs = f.read()

    version = get_version()
    print(f"-- launchkit building version: {version}")

    setup(
        # Metadata
        name="launchkit",
        version=version,
        author="launchkit Devs",
        description="Prepares, stages and launches distributed Python applications on a cluster",
        long_description=readme,
        long_description_content_type="text/markdown",
        license="BSD-3",
        keywords=["cluster", "distributed", "launcher"],
        python_requires=">=3.10",
        install_requires=reqs.strip().split("\n"),
        include_package_data=True,
        packages=find_packages(exclude=("examples", "*.test")),
        extras_require={
            "dev": dev_reqs.strip().split("\n"),
        },
        # PyPI package information.
        classifiers=[
            "Development Status :: 3 - Alpha",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: BSD License",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3.10",
            "Topic :: System :: Distributed Computing",
        ],
    )
