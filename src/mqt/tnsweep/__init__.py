# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""TNSweep init file.

TNSweep, a part of the Munich Quantum Toolkit (MQT), builds sparse Hamiltonians from
sums of few-site operator terms via interaction trees and evolves Matrix Product States
in time with the two-site Time-Dependent Variational Principle (TDVP).
"""

from __future__ import annotations

from ._version import version as __version__
from ._version import version_tuple as version_info

__all__ = ["__version__", "version_info"]
