"""
Tests for bucket/prefix lifecycle operations and volume metadata I/O.
"""

import os
import sys
import unittest

from botocore.exceptions import EndpointConnectionError

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from common.errors import ConfigurationError, EvictionError
from persistence.fsmeta import FSMeta
from storage.base import S3Client
from storage.config import S3Config
from fake_s3 import FakeS3, client_error


def make_client(s3, region="eu-west-1"):
    config = S3Config(access_key_id="AK", secret_access_key="SK", region=region, endpoint="http://s3.local")
    return S3Client(config, "http://s3.local", False, client=s3)


class TestBucketLifecycle(unittest.IsolatedAsyncioTestCase):

    async def test_bucket_exists(self):
        s3 = FakeS3()
        s3.add_bucket("present")
        client = make_client(s3)

        self.assertTrue(await client.bucket_exists("present"))
        self.assertFalse(await client.bucket_exists("absent"))

    async def test_bucket_exists_propagates_other_errors(self):
        s3 = FakeS3()
        s3.head_error = client_error("403", "Forbidden", 403, "HeadBucket")
        client = make_client(s3)

        with self.assertRaises(Exception) as ctx:
            await client.bucket_exists("b")
        self.assertIs(ctx.exception, s3.head_error)

    async def test_create_bucket_uses_region(self):
        s3 = FakeS3()
        await make_client(s3, region="eu-west-1").create_bucket("b")

        self.assertEqual(s3.bucket_config["b"], {"LocationConstraint": "eu-west-1"})

    async def test_create_bucket_default_region(self):
        s3 = FakeS3()
        await make_client(s3, region="us-east-1").create_bucket("b1")
        await make_client(s3, region="").create_bucket("b2")

        self.assertIsNone(s3.bucket_config["b1"])
        self.assertIsNone(s3.bucket_config["b2"])

    async def test_create_bucket_does_not_hide_already_exists(self):
        s3 = FakeS3()
        s3.add_bucket("b")

        with self.assertRaises(Exception) as ctx:
            await make_client(s3).create_bucket("b")
        self.assertEqual(ctx.exception.response["Error"]["Code"], "BucketAlreadyOwnedByYou")

    async def test_remove_bucket(self):
        s3 = FakeS3()
        s3.add_objects("b", [f"k{i}" for i in range(30)])

        report = await make_client(s3).remove_bucket("b")

        self.assertEqual(report.deleted, 30)
        self.assertNotIn("b", s3.buckets)
        self.assertEqual(s3.calls["delete_bucket"], 1)
        self.assertEqual(s3.calls["list_objects_v2"], 1)

    async def test_remove_bucket_with_failing_bulk_delete(self):
        s3 = FakeS3(page_size=1000)
        s3.add_objects("b", [f"k{i:05d}" for i in range(10000)])
        s3.bulk_error = EndpointConnectionError(endpoint_url="http://s3.local")

        report = await make_client(s3).remove_bucket("b")

        self.assertEqual(report.path, "one-by-one")
        self.assertEqual(s3.calls["delete_object"], 10000)
        self.assertEqual(s3.calls["delete_bucket"], 1)
        self.assertNotIn("b", s3.buckets)

    async def test_bucket_kept_when_an_object_cannot_be_deleted(self):
        s3 = FakeS3(page_size=1000)
        names = [f"k{i:05d}" for i in range(10000)]
        s3.add_objects("b", names)
        s3.bulk_error = EndpointConnectionError(endpoint_url="http://s3.local")
        s3.fail_keys = {names[1234]}

        with self.assertRaises(EvictionError) as ctx:
            await make_client(s3).remove_bucket("b")

        self.assertEqual(ctx.exception.fallback_error.failed, 1)
        self.assertEqual(ctx.exception.fallback_error.total, 10000)
        self.assertEqual(s3.calls["delete_object"], 10000)
        self.assertEqual(s3.calls["delete_bucket"], 0)
        self.assertEqual(s3.keys("b"), [names[1234]])

    async def test_requires_open_client(self):
        client = S3Client(S3Config(endpoint="http://s3.local"), "http://s3.local", False)

        with self.assertRaises(RuntimeError):
            await client.bucket_exists("b")


class TestPrefixLifecycle(unittest.IsolatedAsyncioTestCase):

    async def test_create_prefix_writes_empty_marker(self):
        s3 = FakeS3()
        s3.add_bucket("b")

        await make_client(s3).create_prefix("b", "vol-a")

        self.assertEqual(s3.keys("b"), ["vol-a/"])
        self.assertEqual(s3.buckets["b"]["vol-a/"][1], b"")

    async def test_create_empty_prefix_is_noop(self):
        s3 = FakeS3()
        s3.add_bucket("b")

        await make_client(s3).create_prefix("b", "")

        self.assertEqual(s3.calls["put_object"], 0)

    async def test_remove_prefix_keeps_bucket(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        client = make_client(s3)
        await client.create_prefix("b", "vol-a")
        s3.add_objects("b", ["vol-a/f1", "vol-a/f2", "vol-a/f3", "vol-ab/f1"])

        report = await client.remove_prefix("b", "vol-a")

        self.assertEqual(report.path, "bulk")
        self.assertEqual(s3.keys("b"), ["vol-ab/f1"])
        self.assertTrue(await client.bucket_exists("b"))
        self.assertEqual(s3.calls["delete_bucket"], 0)
        self.assertEqual(s3.calls["list_objects_v2"], 1)

    async def test_remove_prefix_failure_skips_marker_removal(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        client = make_client(s3)
        await client.create_prefix("b", "vol-a")
        s3.add_objects("b", ["vol-a/f1", "vol-a/f2"])
        s3.bulk_fail_keys = {"vol-a/f2"}
        s3.fail_keys = {"vol-a/f2"}

        with self.assertRaises(EvictionError):
            await client.remove_prefix("b", "vol-a")

        self.assertEqual(s3.keys("b"), ["vol-a/f2"])
        self.assertEqual(s3.calls["delete_object"], 1)

    async def test_trailing_slash_names_the_same_prefix(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        client = make_client(s3)
        await client.create_prefix("b", "vol-a/")
        s3.add_objects("b", ["vol-a/f1", "vol-a/f2", "vol-ab/f1"])

        self.assertIn("vol-a/", s3.keys("b"))
        self.assertNotIn("vol-a//", s3.keys("b"))

        report = await client.remove_prefix("b", "vol-a/")

        self.assertEqual(report.scope, "b/vol-a/")
        self.assertEqual(report.deleted, 3)
        self.assertEqual(s3.keys("b"), ["vol-ab/f1"])

    async def test_remove_empty_prefix_empties_bucket(self):
        s3 = FakeS3()
        s3.add_objects("b", ["x", "y/z"])

        await make_client(s3).remove_prefix("b", "")

        self.assertEqual(s3.keys("b"), [])
        self.assertIn("b", s3.buckets)


class TestVolumeMetadata(unittest.IsolatedAsyncioTestCase):

    async def test_round_trip(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        client = make_client(s3)
        meta = FSMeta(bucket_name="b", prefix="p", mounter="m", mount_options=["--opt1"], capacity_bytes=1024)

        await client.set_fs_meta(meta)
        loaded = await client.get_fs_meta("b", "p")

        self.assertIn("p/.metadata.json", s3.keys("b"))
        self.assertEqual(loaded, meta)

    async def test_bucket_root_metadata(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        client = make_client(s3)

        await client.set_fs_meta(FSMeta(bucket_name="b", mounter="geesefs"))

        self.assertEqual(s3.keys("b"), [".metadata.json"])
        self.assertEqual((await client.get_fs_meta("b", "")).mounter, "geesefs")

    async def test_malformed_metadata(self):
        s3 = FakeS3()
        s3.add_bucket("b")
        await s3.put_object(Bucket="b", Key="p/.metadata.json", Body=b"{not json")

        with self.assertRaises(ConfigurationError):
            await make_client(s3).get_fs_meta("b", "p")


if __name__ == '__main__':
    unittest.main()
