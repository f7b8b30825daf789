# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

Success is 0 and every failure is 1: unknown argument, bad ENV_MANAGER or
config file, non-Linux host, or no environment could be provisioned. The
names exist so call sites say which kind of failure they mean.
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 1
PLATFORM_ERROR: int = 1
PROVISION_ERROR: int = 1
