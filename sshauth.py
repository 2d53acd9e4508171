#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# sshauth.py
#
# Reads the authorized keys of a user from S3, for use with
# AuthorizedKeysCommand in sshd_config
#
# SPDX-License-Identifier: Apache-2.0

"sshauth.py writes the ssh authorized keys stored in s3://bucket/key/username to stdout"

import os
import errno
import sys
import getopt
import signal
import logging
import logging.handlers
import objstore
import keyfetch
import authkeys
import sshauthcfg
import sshlogger

LOG = logging.getLogger("sshauth")

SYSLOG_TAG = "sshauth"
SYSLOG_SOCKET = "/dev/log"


def usage(out=None):
    "Help"
    if out is None:
        out = sys.stderr
    print("Usage: sshauth [options] -b|--bucket NAME [-k|--key PREFIX] USERNAME", file=out)
    print("Read authorized keys from S3 to be used with AuthorizedKeysCommand in sshd.", file=out)
    print("Options: -b/--bucket NAME     S3 bucket name (required)", file=out)
    print("         -k/--key PREFIX      S3 key prefix", file=out)
    print("         -r/--region REGION   AWS region, eg. eu-west-1", file=out)
    print("         -a/--authlog PATH    Set path to sshlogger script", file=out)
    print("         -s/--syslog          Log via syslog", file=out)
    print("         -S/--sshlogger       Print sshlogger script to stdout and exit", file=out)
    print("         -n/--no-logging      Disable logging", file=out)
    print("         -d/--debug           Enable debug output", file=out)
    print("         -w/--workers N       Fetch at most N keys in parallel (default: whole page)", file=out)
    print("         -h/--help            This help", file=out)
    print("The final S3 path will be: s3://bucket/key/username", file=out)
    print(f"Defaults are read from {sshauthcfg.CFGNAME} in "
          f"{' or '.join(sshauthcfg.SEARCHPATH)} and from options in "
          f"{sshauthcfg.FLAGFILE}; command line options override both.", file=out)
    print("With --authlog, every key gets a command=\"PATH KEYNAME BUCKET KEY\" option,", file=out)
    print("the command the client asked for is in SSH_ORIGINAL_COMMAND.", file=out)
    print("Create the wrapper with: sshauth --sshlogger > /usr/local/bin/sshlogger.sh", file=out)
    return 1


def usage_error(msg):
    "Print msg and usage, return exit code"
    print(msg, file=sys.stderr)
    return usage()


class LogFormatter(logging.Formatter):
    "Prefix debug messages with ' * '"
    def format(self, record):
        msg = super().format(record)
        if record.levelno < logging.INFO:
            return " * " + msg
        return msg


def setup_logging(cfg):
    """Send sshauth log messages to stderr or syslog.
       Raises OSError if syslog can not be reached."""
    for handler in LOG.handlers[:]:
        LOG.removeHandler(handler)
        handler.close()
    LOG.disabled = not cfg.logging
    if not cfg.logging:
        return
    if cfg.syslog:
        # SysLogHandler silently drops messages if the socket is missing
        if not os.path.exists(SYSLOG_SOCKET):
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), SYSLOG_SOCKET)
        handler = logging.handlers.SysLogHandler(
            address=SYSLOG_SOCKET, facility=logging.handlers.SysLogHandler.LOG_AUTH)
        handler.setFormatter(LogFormatter(f"{SYSLOG_TAG}: %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(LogFormatter("%(message)s"))
    LOG.addHandler(handler)
    LOG.setLevel(logging.DEBUG if cfg.debug else logging.INFO)


def parse_args(cfg, argv):
    """Apply options from argv to cfg, return the positional args.
       Raises getopt.GetoptError on invalid options."""
    optlist, args = getopt.gnu_getopt(argv, "b:k:r:a:sSndw:h",
        ("bucket=", "key=", "region=", "authlog=", "syslog", "sshlogger",
         "no-logging", "debug", "workers=", "help"))
    for opt, val in optlist:
        if opt in ("-h", "--help"):
            usage(sys.stdout)
            sys.exit(0)
        elif opt in ("-b", "--bucket"):
            cfg.bucket = val
        elif opt in ("-k", "--key"):
            cfg.key = val
        elif opt in ("-r", "--region"):
            cfg.region = val
        elif opt in ("-a", "--authlog"):
            cfg.authlog = val
        elif opt in ("-s", "--syslog"):
            cfg.syslog = True
        elif opt in ("-S", "--sshlogger"):
            cfg.sshlogger = True
        elif opt in ("-n", "--no-logging"):
            cfg.logging = False
        elif opt in ("-d", "--debug"):
            cfg.debug = True
        elif opt in ("-w", "--workers"):
            try:
                cfg.workers = int(val)
            except ValueError:
                raise getopt.GetoptError(f"option {opt} needs a number, not {val}", opt) from None
            if cfg.workers < 1:
                raise getopt.GetoptError(f"option {opt} needs to be at least 1", opt)
        else:
            raise RuntimeError("option parser error")
    return args


def main(argv):
    "Entry point for main program"
    try:
        cfg = sshauthcfg.load_config()
        flags = sshauthcfg.read_flagfile()
    except sshauthcfg.ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    try:
        args = parse_args(cfg, flags + argv)
    except getopt.GetoptError as exc:
        return usage_error(f"Error: {exc}")
    try:
        setup_logging(cfg)
    except OSError as exc:
        print(f"unable to initialize syslog: {exc}", file=sys.stderr)
        return 1
    if cfg.sshlogger:
        sshlogger.print_sshlogger(sys.stdout)
        return 0
    if not cfg.bucket:
        return usage_error("Error: S3 bucket is required")
    if len(args) != 1:
        return usage_error("Error: Username is required")
    if cfg.region:
        LOG.debug("Setting region: %s", cfg.region)
    store = objstore.connect(cfg.region)
    fetcher = keyfetch.KeyFetcher(store, cfg.authlog)
    keys = authkeys.AuthorizedKeys(store, fetcher, sys.stdout.buffer, cfg.workers)
    try:
        if not keys.print_authorized_keys(cfg.bucket, cfg.key, args[0]):
            LOG.debug("Output closed by reader, stopping")
    except authkeys.ListingError:
        return 1
    return 0


def run():
    "Console script entry"
    # Write errors report a closed pipe, the signal must not kill us
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    ret = main(sys.argv[1:])
    try:
        sys.stdout.flush()
    except BrokenPipeError:
        # Interpreter shutdown would flush the closed pipe again
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    sys.exit(ret)


if __name__ == "__main__":
    run()
