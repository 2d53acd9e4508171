#!/usr/bin/env python3
"""Key fetcher tests"""

import logging
from keyfetch import KeyFetcher, ensure_newline, authlog_header
from objstore import ServiceError, TransportError


def test_newline_added():
    """A key without trailing newline gets exactly one."""
    assert ensure_newline(b"asdfghjkl") == b"asdfghjkl\n"


def test_newline_kept():
    """A key that ends in a newline stays unchanged."""
    assert ensure_newline(b"asdfghjkl\n") == b"asdfghjkl\n"
    assert ensure_newline(ensure_newline(b"x")) == b"x\n"


def test_empty_body():
    """An empty object becomes an empty line."""
    assert ensure_newline(b"") == b"\n"


def test_fetch_empty_authlog(fake_store):
    """An empty object is not wrapped in a command option."""
    store = fake_store([], {"keys/alice/empty": b""})
    assert KeyFetcher(store, "/bin/logger.sh").fetch("b", "keys/alice/empty") == b"\n"


def test_fetch(fake_store):
    """Fetching reads the key from the store and terminates it."""
    store = fake_store([], {"/a/path": b"ssh-ed25519 AAAA"})
    assert KeyFetcher(store).fetch("bucket", "/a/path") == b"ssh-ed25519 AAAA\n"
    assert store.fetched == ["/a/path"]


def test_authlog_header():
    """The header carries wrapper path, key name, bucket and key."""
    header = authlog_header("/usr/local/bin/sshlogger.sh", "b", "keys/alice/k1")
    assert header == b'command="/usr/local/bin/sshlogger.sh k1 b keys/alice/k1" '


def test_fetch_authlog(fake_store):
    """With authlog the record is wrapped in a command option."""
    store = fake_store([], {"keys/alice/k1": b"ssh-rsa AAA"})
    fetcher = KeyFetcher(store, "/usr/local/bin/sshlogger.sh")
    assert fetcher.fetch("b", "keys/alice/k1") == \
        b'command="/usr/local/bin/sshlogger.sh k1 b keys/alice/k1" ssh-rsa AAA\n'


def test_service_error(fake_store, caplog):
    """A service error gives an empty record and is logged with its code."""
    caplog.set_level(logging.INFO, logger="sshauth")
    store = fake_store([], {"k": ServiceError("Access Denied", "AccessDenied")})
    assert KeyFetcher(store).fetch("b", "k") == b""
    assert "AccessDenied: Access Denied" in caplog.text


def test_transport_error(fake_store, caplog):
    """A transport error gives an empty record as well."""
    caplog.set_level(logging.INFO, logger="sshauth")
    store = fake_store([], {"k": TransportError("Could not connect")})
    assert KeyFetcher(store, "/bin/logger.sh").fetch("b", "k") == b""
    assert "Could not connect" in caplog.text
