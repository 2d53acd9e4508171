#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# sshauthcfg.py
#
# Default settings for sshauth from sshauth.yaml and the
# flag file /etc/sshauth/sshauth.conf
#
# SPDX-License-Identifier: Apache-2.0

"""Collect sshauth default settings.
   sshauth.yaml is looked up in ~/.config/sshauth and /etc/sshauth,
   the first one found provides defaults. The flag file contains
   command line options that are put in front of the real ones."""

import os
import sys
import logging
import yaml

LOG = logging.getLogger("sshauth")

FLAGFILE = "/etc/sshauth/sshauth.conf"
CFGNAME = "sshauth.yaml"
SEARCHPATH = ("~/.config/sshauth", "/etc/sshauth")


class ConfigError(Exception):
    "Invalid configuration file contents"

# Flags of the original Go sshauth, which wrote flag files as -name=value
_goflags_value = ("bucket", "key", "region", "authlog")
_goflags_bool = ("syslog", "sshlogger", "logging", "debug")
_true = ("1", "t", "T", "TRUE", "true", "True")
_false = ("0", "f", "F", "FALSE", "false", "False")


def translate_goflag(word, origin):
    """Return the getopt words for a Go style flag word such as
       -bucket=name or -logging=false, [word] for anything else."""
    if word[:1] != "-" or word[:2] == "--" or len(word) < 3:
        return [word]
    name, sep, val = word[1:].partition("=")
    if name in _goflags_value:
        if sep:
            return [f"--{name}={val}"]
        return [f"--{name}"]
    if name not in _goflags_bool:
        return [word]
    if not sep or val in _true:
        enable = True
    elif val in _false:
        enable = False
    else:
        raise ConfigError(f"{origin}: invalid boolean value {val!r} for -{name}")
    if name == "logging":
        return [] if enable else ["--no-logging"]
    return [f"--{name}"] if enable else []


class Config:
    "resolved sshauth settings"
    _types = {"bucket": str, "key": str, "region": str, "authlog": str,
              "syslog": bool, "debug": bool, "logging": bool, "workers": int}

    def __init__(self):
        "defaults"
        self.bucket = ""
        self.key = ""
        self.region = ""
        self.authlog = ""
        self.syslog = False
        self.debug = False
        self.logging = True
        self.workers = None
        self.sshlogger = False

    def update(self, settings, origin):
        "Take over settings from dict, origin is used in messages"
        for name, val in settings.items():
            if name not in self._types:
                LOG.info("Ignoring unknown setting %s in %s", name, origin)
                continue
            wanted = self._types[name]
            if val is None and wanted is str:
                val = ""
            if not isinstance(val, wanted) or (wanted is int and isinstance(val, bool)):
                raise ConfigError(f"{origin}: {name} should be {wanted.__name__}, got {val!r}")
            if name == "workers" and val < 1:
                raise ConfigError(f"{origin}: workers needs to be at least 1")
            setattr(self, name, val)
        return self

    def __str__(self):
        "string representation for debugging"
        return f"bucket={self.bucket}, key={self.key}, region={self.region}, " \
            f"authlog={self.authlog}, syslog={self.syslog}, debug={self.debug}, " \
            f"logging={self.logging}, workers={self.workers}"


def find_cfgfile(searchpath=None):
    "Return the first readable sshauth.yaml in searchpath or None"
    if searchpath is None:
        searchpath = SEARCHPATH
    for path in searchpath:
        fname = os.path.join(os.path.expanduser(path), CFGNAME)
        if os.access(fname, os.R_OK):
            return fname
    return None


def load_config(searchpath=None):
    "Return Config with defaults, updated from sshauth.yaml if found"
    cfg = Config()
    fname = find_cfgfile(searchpath)
    if not fname:
        return cfg
    LOG.debug("Reading config file: %s", fname)
    try:
        with open(fname, "r", encoding="UTF-8") as cfile:
            settings = yaml.safe_load(cfile)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{fname}: {exc}") from exc
    if settings is None:
        return cfg
    if not isinstance(settings, dict):
        raise ConfigError(f"{fname}: expected a mapping of settings")
    return cfg.update(settings, fname)


def read_flagfile(fname=None):
    """Return the words from flag file fname, to be put in front
       of the command line arguments so those take precedence.
       Go style -name=value flags are translated, an invalid boolean
       value raises ConfigError."""
    if fname is None:
        fname = FLAGFILE
    try:
        with open(fname, "r", encoding="UTF-8") as ffile:
            words = ffile.read().split()
    except OSError as exc:
        LOG.debug("Unable to open flag file %s: %s", fname, exc)
        return []
    LOG.debug("Read %d words from flag file %s", len(words), fname)
    args = []
    for word in words:
        args.extend(translate_goflag(word, fname))
    return args


def main(argv):
    "Main entry point for testing"
    try:
        cfg = load_config()
        flags = read_flagfile()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"{cfg}")
    print(f"{flags}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
