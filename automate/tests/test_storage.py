import unittest

from botocore.stub import ANY, Stubber

from automate.errors import StorageError
from automate.storage import InMemoryStorageClient, S3StorageClient


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        self.storage = S3StorageClient(
            bucket="vehicle-docs",
            region="us-east-1",
            endpoint="https://storage.example.test",
            access_key_id="key",
            secret_access_key="secret",
            public_base_url="https://cdn.example.test/vehicle-docs/",
        )
        self.stubber = Stubber(self.storage._client)
        self.stubber.activate()
        self.addCleanup(self.stubber.deactivate)

    def test_upload_refuses_to_overwrite(self):
        self.stubber.add_response(
            "put_object",
            {},
            {
                "Bucket": "vehicle-docs",
                "Key": "uid/v1/1_itv.pdf",
                "Body": ANY,
                "IfNoneMatch": "*",
                "ContentType": "application/pdf",
            },
        )
        self.storage.upload_bytes("uid/v1/1_itv.pdf", b"data", "application/pdf")
        self.stubber.assert_no_pending_responses()

    def test_existing_key_is_storage_error(self):
        self.stubber.add_client_error(
            "put_object",
            service_error_code="PreconditionFailed",
            service_message="At least one of the pre-conditions you specified did not hold",
            http_status_code=412,
        )
        with self.assertRaises(StorageError):
            self.storage.upload_bytes("uid/v1/1_itv.pdf", b"data")

    def test_public_url(self):
        self.assertEqual(
            self.storage.public_url("uid/v1/1_itv.pdf"),
            "https://cdn.example.test/vehicle-docs/uid/v1/1_itv.pdf",
        )


class InMemoryStorageClientTests(unittest.TestCase):
    def test_existing_key_is_storage_error(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("a/b.pdf", b"one")
        with self.assertRaises(StorageError):
            storage.upload_bytes("a/b.pdf", b"two")
        self.assertEqual(storage.get_bytes("a/b.pdf"), b"one")

    def test_no_public_url_without_base(self):
        self.assertIsNone(InMemoryStorageClient(base_url=None).public_url("a/b.pdf"))


if __name__ == "__main__":
    unittest.main()
