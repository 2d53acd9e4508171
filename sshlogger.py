#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# sshlogger.py
#
# The login logging wrapper used with sshauth --authlog
#
# SPDX-License-Identifier: Apache-2.0

"""SSHLOGGER is a bash script that logs the login with the key
   name, bucket and object key passed by the command="..." option
   and then runs the command the client asked for."""

import sys

SSHLOGGER = """#!/bin/bash
# sshlogger

logger -p auth.info "SSH login: user=$1 bucket=$2 key=$3"

if [ -z "${SSH_ORIGINAL_COMMAND}" ]; then
	# No command, give pty to user
	${SHELL}
else
	# Execute command for user
	${SHELL} -c "${SSH_ORIGINAL_COMMAND}"
fi
exit
"""


def print_sshlogger(output=None):
    "Write the sshlogger script to output, default stdout"
    if output is None:
        output = sys.stdout
    output.write(SSHLOGGER)
    output.flush()


if __name__ == "__main__":
    print_sshlogger()
