# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Provisioning backends. Each one turns "give me an environment" into an
ordered list of steps that either all succeed or stop at a named failure stage.
"""
