"""Shared test helpers: an in-memory object store and log reset"""

import io
import time
import logging
import threading
import pytest


class FakeStore:
    """Object store double. pages is a list of key lists, bodies maps
       keys to bytes or to an exception to raise."""
    def __init__(self, pages, bodies, delays=None, list_error=None):
        self.pages = pages
        self.bodies = bodies
        self.delays = delays or {}
        self.list_error = list_error
        self.prefixes = []
        self.pages_listed = 0
        self.fetched = []
        self.lock = threading.Lock()

    def list_pages(self, bucket, prefix):
        self.prefixes.append((bucket, prefix))
        for page in self.pages:
            self.pages_listed += 1
            yield list(page)
        if self.list_error:
            raise self.list_error

    def get_object(self, bucket, key):
        with self.lock:
            self.fetched.append(key)
        time.sleep(self.delays.get(key, 0))
        body = self.bodies[key]
        if isinstance(body, Exception):
            raise body
        return body


class BrokenOutput(io.BytesIO):
    "Output stream failing with exc after good writes"
    def __init__(self, good, exc):
        super().__init__()
        self.good = good
        self.exc = exc
        self.writes = 0

    def write(self, data):
        self.writes += 1
        if self.writes > self.good:
            raise self.exc
        return super().write(data)


@pytest.fixture(name="fake_store")
def fixture_fake_store():
    "Factory for FakeStore objects"
    return FakeStore


@pytest.fixture(autouse=True)
def reset_sshauth_logger():
    "Undo logging setup done by sshauth.main"
    yield
    log = logging.getLogger("sshauth")
    for handler in log.handlers[:]:
        log.removeHandler(handler)
    log.disabled = False
    log.setLevel(logging.NOTSET)
