import io
import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from palmcosmic.storage import InMemoryStorageClient, S3StorageClient


class InMemoryStorageTests(unittest.TestCase):
    def test_upload_read_delete(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("palm-images/u1/a.jpg", b"abc", "image/jpeg")
        self.assertEqual(storage.get_bytes("palm-images/u1/a.jpg"), b"abc")
        self.assertEqual(storage.content_types["palm-images/u1/a.jpg"], "image/jpeg")

        storage.delete("palm-images/u1/a.jpg")
        with self.assertRaises(FileNotFoundError):
            storage.get_bytes("palm-images/u1/a.jpg")

    def test_delete_prefix_and_url_paths(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("palm-images/u1/a.jpg", b"a")
        storage.upload_bytes("palm-images/u1/b.jpg", b"b")
        storage.upload_bytes("palm-images/u10/c.jpg", b"c")

        self.assertEqual(storage.delete_prefix("palm-images/u1/"), 2)
        self.assertEqual(list(storage.stored_objects), ["palm-images/u10/c.jpg"])
        self.assertEqual(
            storage.path_from_url(storage.public_url("palm-images/u10/c.jpg")),
            "palm-images/u10/c.jpg",
        )
        self.assertIsNone(storage.path_from_url("https://other.example/palm-images/u10/c.jpg"))


class S3StorageTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("palmcosmic.storage.boto3.client")
        self.mock_client = patcher.start().return_value
        self.addCleanup(patcher.stop)

    def _storage(self, **overrides):
        fields = dict(
            bucket="palms",
            region="us-east-1",
            endpoint="",
            access_key_id="id",
            secret_access_key="secret",
        )
        fields.update(overrides)
        return S3StorageClient(**fields)

    def test_public_urls(self):
        self.assertEqual(
            self._storage().public_url("a/b.jpg"),
            "https://palms.s3.us-east-1.amazonaws.com/a/b.jpg",
        )
        self.assertEqual(
            self._storage(endpoint="https://cos.example.com/").public_url("a/b.jpg"),
            "https://palms.cos.example.com/a/b.jpg",
        )
        self.assertEqual(
            self._storage(public_base_url="https://cdn.example.com/").public_url("a.jpg"),
            "https://cdn.example.com/a.jpg",
        )

    def test_upload_and_download(self):
        storage = self._storage()
        storage.upload_bytes("a.png", b"png", "image/png")
        self.mock_client.put_object.assert_called_once_with(
            Bucket="palms", Key="a.png", Body=b"png", ContentType="image/png"
        )

        self.mock_client.get_object.return_value = {"Body": io.BytesIO(b"png")}
        self.assertEqual(storage.get_bytes("a.png"), b"png")

    def test_missing_object_raises_file_not_found(self):
        self.mock_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )
        with self.assertRaises(FileNotFoundError):
            self._storage().get_bytes("palm-images/u1/gone.jpg")

    def test_other_client_errors_propagate(self):
        self.mock_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject"
        )
        with self.assertRaises(ClientError):
            self._storage().get_bytes("palm-images/u1/a.jpg")

    def test_delete_prefix_removes_every_page(self):
        self.mock_client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "palm-images/u1/a.jpg"}, {"Key": "palm-images/u1/b.jpg"}]},
            {},
        ]
        self.assertEqual(self._storage().delete_prefix("palm-images/u1/"), 2)
        self.mock_client.get_paginator.assert_called_once_with("list_objects_v2")
        self.mock_client.delete_objects.assert_called_once_with(
            Bucket="palms",
            Delete={
                "Objects": [{"Key": "palm-images/u1/a.jpg"}, {"Key": "palm-images/u1/b.jpg"}],
                "Quiet": True,
            },
        )

    def test_path_from_url(self):
        storage = self._storage()
        self.assertEqual(
            storage.path_from_url("https://palms.s3.us-east-1.amazonaws.com/a/b.jpg"), "a/b.jpg"
        )
        self.assertIsNone(storage.path_from_url("https://elsewhere.example.com/a/b.jpg"))

    def test_presigned_upload_is_jpeg(self):
        self._storage().presign_put("palm-images/u1/a.jpg", expires_in=60)
        kwargs = self.mock_client.generate_presigned_url.call_args.kwargs
        self.assertEqual(kwargs["ClientMethod"], "put_object")
        self.assertEqual(kwargs["Params"]["ContentType"], "image/jpeg")
        self.assertEqual(kwargs["ExpiresIn"], 60)


if __name__ == "__main__":
    unittest.main()
