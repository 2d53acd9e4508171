#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# authkeys.py
#
# Collect all authorized keys of a user from S3 and write them out
#
# SPDX-License-Identifier: Apache-2.0

"""AuthorizedKeys lists the objects below bucket/prefix/user and
   writes their contents to the output stream, in listing order.

   Keys of one listing page are fetched concurrently by a thread pool,
   then the results are collected in the order the keys were listed,
   so output order never depends on which fetch finishes first.
   Each page gets its own pool with one thread per key, capped by
   workers if set. The next page is only requested after the current
   one has been written, which bounds the fetches in flight to one page.
   A closed output pipe (the ssh client went away) ends the run
   quietly; failing to list the keys at all raises ListingError.
"""

import sys
import logging
import posixpath
from concurrent.futures import ThreadPoolExecutor
from objstore import ObjectStoreError, ServiceError

LOG = logging.getLogger("sshauth")

class ListingError(Exception):
    "Listing the keys of a user failed"
    def __init__(self, path, error):
        super().__init__(f"Unable to list authorized keys below {path}: {error}")
        self.path = path
        self.error = error


def listing_prefix(prefix, user):
    "Return the cleaned up path prefix/user, just user for an empty prefix"
    if not prefix:
        return user
    path = posixpath.normpath(posixpath.join(prefix, user))
    # normpath keeps a leading double slash
    if path.startswith("//"):
        path = path[1:]
    return path


class AuthorizedKeys:
    "write the authorized keys found in the object store to output"
    def __init__(self, store, fetcher, output, workers=None):
        self.store = store
        self.fetcher = fetcher
        self.output = output
        self.workers = workers

    def write(self, record):
        """Write one record. Returns False if the reader closed the pipe,
           other write errors are logged and otherwise ignored."""
        if not record:
            return True
        try:
            self.output.write(record)
            self.output.flush()
        except BrokenPipeError:
            return False
        except OSError as exc:
            LOG.info("Unable to copy authorized key to stdout: %s", exc)
        return True

    def pool_size(self, count):
        "Threads for a page with count keys to fetch"
        if self.workers:
            return min(count, self.workers)
        return count

    def process_page(self, bucket, path, keys):
        """Fetch all keys of one listing page and write them in order.
           Returns False once the output pipe is closed."""
        # The prefix itself is a folder placeholder, not a key
        fetch = [key for key in keys if key != path]
        if not fetch:
            return True
        pool = ThreadPoolExecutor(max_workers=self.pool_size(len(fetch)),
                                  thread_name_prefix="keyfetch")
        try:
            pending = []
            for key in keys:
                if key == path:
                    pending.append(None)
                    continue
                pending.append(pool.submit(self.fetcher.fetch, bucket, key))
            for idx, fut in enumerate(pending):
                record = b""
                if fut is not None:
                    record = fut.result()
                if not self.write(record):
                    LOG.debug("Output closed, skipping %d remaining keys", len(pending) - idx - 1)
                    return False
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return True

    def print_authorized_keys(self, bucket, prefix, user):
        """Write all keys below bucket/prefix/user to output.
           Returns True when all pages were processed and False when
           the reader closed the output early."""
        path = listing_prefix(prefix, user)
        LOG.debug("Listing authorized keys from bucket: %s, path: %s", bucket, path)
        try:
            for keys in self.store.list_pages(bucket, path):
                LOG.debug("Got listing page with %d objects", len(keys))
                if not self.process_page(bucket, path, keys):
                    return False
        except ObjectStoreError as exc:
            if isinstance(exc, ServiceError):
                LOG.info("Unable to list authorized keys: %s, message: %s", exc.code, exc.message)
            else:
                LOG.info("Error listing authorized keys: %s", exc)
            raise ListingError(path, exc) from exc
        return True


def main(argv):
    "Entry point for testing: authkeys.py BUCKET PREFIX USER"
    import objstore
    import keyfetch
    if len(argv) != 3:
        print("Usage: authkeys.py BUCKET PREFIX USER", file=sys.stderr)
        return 1
    logging.basicConfig(level=logging.DEBUG, format="%(message)s")
    store = objstore.connect()
    keys = AuthorizedKeys(store, keyfetch.KeyFetcher(store), sys.stdout.buffer)
    try:
        keys.print_authorized_keys(*argv)
    except ListingError:
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
