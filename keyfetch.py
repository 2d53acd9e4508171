#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# keyfetch.py
#
# Read one authorized key object from S3 and turn it into a
# well formed authorized_keys record
#
# SPDX-License-Identifier: Apache-2.0

"""keyfetch contains class KeyFetcher which reads a single key
   object from the store and returns it as an authorized_keys
   record: newline terminated and, with authlog set, prefixed
   with a command="..." option that runs the logging wrapper.
   A key that can not be read yields an empty record."""

import sys
import logging
import posixpath
import objstore

LOG = logging.getLogger("sshauth")

_logheader = 'command="%s %s %s %s" '


def ensure_newline(body):
    "Terminate body with a newline if it lacks one"
    if not body.endswith(b"\n"):
        return body + b"\n"
    return body


def authlog_header(authlog, bucket, key):
    "authorized_keys command option calling the authlog wrapper for key"
    return (_logheader % (authlog, posixpath.basename(key), bucket, key)).encode("UTF-8")


class KeyFetcher:
    "fetch key objects from store, optionally wrapping them for authlog"
    def __init__(self, store, authlog=None):
        self.store = store
        self.authlog = authlog

    def record(self, body, bucket, key):
        "Turn object body into the record written out for key"
        body = ensure_newline(body)
        # An empty object has no key to wrap
        if self.authlog and body != b"\n":
            return authlog_header(self.authlog, bucket, key) + body
        return body

    def fetch(self, bucket, key):
        """Read key from bucket and return the record.
           Errors are logged and result in an empty record, so one
           broken key does not keep the others from being used."""
        LOG.debug("Reading authorized key from bucket: %s, path: %s", bucket, key)
        try:
            body = self.store.get_object(bucket, key)
        except objstore.ServiceError as exc:
            LOG.info("Unable to get authorized key from S3: %s: %s", exc.code, exc.message)
            return b""
        except objstore.ObjectStoreError as exc:
            LOG.info("Unable to get authorized key from S3: %s", exc)
            return b""
        return self.record(body, bucket, key)


def main(argv):
    "Entry point for testing: keyfetch.py BUCKET KEY [AUTHLOG]"
    if len(argv) < 2:
        print("Usage: keyfetch.py BUCKET KEY [AUTHLOG]", file=sys.stderr)
        return 1
    authlog = None
    if len(argv) > 2:
        authlog = argv[2]
    logging.basicConfig(level=logging.DEBUG, format="%(message)s")
    fetcher = KeyFetcher(objstore.connect(), authlog)
    sys.stdout.buffer.write(fetcher.fetch(argv[0], argv[1]))
    return 0

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
