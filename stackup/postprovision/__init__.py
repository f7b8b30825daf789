# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Everything that happens inside the environment once it exists: package
installs, the torch safeguard, verification and the final report.
"""
