# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""topobox - Declarative multi-machine topologies rendered onto Vagrant or Docker."""

__version__ = "0.1.0"
