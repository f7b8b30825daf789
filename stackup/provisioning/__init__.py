# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Backend selection, the single active-environment slot, and the fallback
state machine that ties them together.
"""
