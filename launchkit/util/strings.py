# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

import re


def normalize_str(data: str) -> str:
    """
    Lower-cases ``data`` and drops every character outside of ``[a-z0-9\\-]``
    (and a leading ``-``). Used to derive application ids and file names
    from free-form application names.
    """
    data = data.lstrip("-")
    return "".join(re.findall(r"[a-z0-9\-]", data.lower()))
