#!/usr/bin/env python3
# vim: set ts=4 sw=4 et:
#
# objstore.py
#
# Narrow access to the S3 object store: list keys below a prefix
# and read object bodies.
#
# SPDX-License-Identifier: Apache-2.0

"""Implements class S3Store which wraps a boto3 S3 client and
   exposes the two calls needed to collect authorized keys:
   list_pages() yields the object keys below a prefix, one list
   per listing page, and get_object() returns an object body.
   Errors from botocore are translated into ObjectStoreError
   subclasses so callers never need to know about botocore.
"""

import sys
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

MAX_RETRIES = 10


class ObjectStoreError(Exception):
    "Base class for errors talking to the object store"
    def __init__(self, msg, code=None):
        super().__init__(msg)
        self.code = code
        self.message = msg

    def __str__(self):
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message


class ServiceError(ObjectStoreError):
    "The service answered with an error code and message"


class TransportError(ObjectStoreError):
    "The request did not get a proper answer (network, credentials, ...)"


def translate(exc):
    "Return the ObjectStoreError matching the botocore exception exc"
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        return ServiceError(err.get("Message") or str(exc), err.get("Code"))
    return TransportError(str(exc))


class S3Store:
    "object store access via a boto3 S3 client"
    def __init__(self, client):
        self.client = client

    def list_pages(self, bucket, prefix):
        """Generator yielding a list of object keys per listing page.
           The next page is only requested once the caller is done
           with the current one."""
        paginator = self.client.get_paginator("list_objects")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                yield [obj["Key"] for obj in page.get("Contents", [])]
        except (ClientError, BotoCoreError) as exc:
            raise translate(exc) from exc

    def get_object(self, bucket, key):
        "Return the body of object key as bytes"
        try:
            body = self.client.get_object(Bucket=bucket, Key=key)["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as exc:
            raise translate(exc) from exc
        except OSError as exc:
            raise TransportError(f"reading {key}: {exc}") from exc


def connect(region=None):
    """Create an S3Store. With a region, use it and raise the
       retry limit; otherwise rely on the boto3 defaults."""
    if region:
        cfg = Config(region_name=region,
                     retries={"max_attempts": MAX_RETRIES, "mode": "standard"})
        return S3Store(boto3.client("s3", config=cfg))
    return S3Store(boto3.client("s3"))


def main(argv):
    "main entry point for testing: list keys below bucket [prefix]"
    if not argv:
        print("Usage: objstore.py BUCKET [PREFIX]", file=sys.stderr)
        return 1
    prefix = ""
    if len(argv) > 1:
        prefix = argv[1]
    store = connect()
    try:
        for page in store.list_pages(argv[0], prefix):
            for key in page:
                print(key)
    except ObjectStoreError as exc:
        print(f"Listing failed: {exc}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
