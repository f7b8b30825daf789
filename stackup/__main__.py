# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

from stackup.cli.main import main

main()
