# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
stackup: reproducible CPU-only PyTorch environments on Linux, via conda or venv.
"""

__version__ = "0.1.0"
