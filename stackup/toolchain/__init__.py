# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Host toolchain requirements and the version checks behind them.
"""
