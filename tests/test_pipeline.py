import io
import json
import os
import unittest
from unittest.mock import patch

import requests
from botocore.exceptions import ClientError, EndpointConnectionError

from draw_fixtures import MemoryStorage, RecordingDispatcher
from mazayago.errors import ExternalDependencyError
from mazayago.pipeline import (
    PackageKeys,
    PipelineStorage,
    PublishPipeline,
    RenderDispatcher,
    get_pipeline_storage,
    get_render_dispatcher,
)


class StubS3Client:
    def __init__(self):
        self.objects = {}
        self.fail_with = None

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_with is not None:
            raise self.fail_with
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def get_object(self, Bucket, Key):
        if self.fail_with is not None:
            raise self.fail_with
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
            )
        body, _ = self.objects[(Bucket, Key)]
        return {"Body": io.BytesIO(body)}


class DummyResponse:
    def __init__(self, status_code: int = 204, text: str = ""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


class DummySession:
    def __init__(self, response=None, error=None):
        self.response = response or DummyResponse()
        self.error = error
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append(
            {"url": url, "headers": headers, "json": json, "timeout": timeout}
        )
        if self.error is not None:
            raise self.error
        return self.response


class PipelineStorageTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = StubS3Client()
        self.storage = PipelineStorage(
            self.client, "giveaways", "https://pub.example.com/"
        )

    def test_put_and_get_json(self):
        url = self.storage.put_json("giveaway/abc/manifest.json", {"title": "Café"})
        self.assertEqual(url, "https://pub.example.com/giveaway/abc/manifest.json")
        body, content_type = self.client.objects[("giveaways", "giveaway/abc/manifest.json")]
        self.assertEqual(json.loads(body.decode("utf-8")), {"title": "Café"})
        self.assertTrue(content_type.startswith("application/json"))
        self.assertEqual(
            self.storage.get_json("giveaway/abc/manifest.json"), {"title": "Café"}
        )

    def test_missing_object_reads_as_none(self):
        self.assertIsNone(self.storage.get_json("giveaway/abc/render-status.json"))

    def test_read_failure_reads_as_none(self):
        self.client.fail_with = EndpointConnectionError(endpoint_url="https://r2")
        with self.assertLogs("mazayago.pipeline.storage", level="WARNING"):
            self.assertIsNone(self.storage.get_json("giveaway/abc/manifest.json"))

    def test_write_failure_raises(self):
        self.client.fail_with = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(ExternalDependencyError):
            self.storage.put_json("giveaway/abc/manifest.json", {})

    def test_requires_bucket(self):
        with self.assertRaises(ValueError):
            PipelineStorage(self.client, "", "https://pub.example.com")

    @patch("mazayago.pipeline.storage.load_dotenv")
    def test_unconfigured_environment(self, _load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(get_pipeline_storage())

    @patch("mazayago.pipeline.storage.boto3.client")
    @patch("mazayago.pipeline.storage.load_dotenv")
    def test_configured_from_environment(self, _load_dotenv, mock_client):
        env = {
            "R2_ACCOUNT_ID": "acct",
            "R2_BUCKET": "giveaways",
            "R2_ACCESS_KEY_ID": "key",
            "R2_SECRET_ACCESS_KEY": "secret",
            "R2_PUBLIC_BASE": "https://pub.example.com",
        }
        with patch.dict(os.environ, env, clear=True):
            storage = get_pipeline_storage()
        self.assertIsNotNone(storage)
        self.assertEqual(storage.bucket, "giveaways")
        kwargs = mock_client.call_args.kwargs
        self.assertEqual(kwargs["endpoint_url"], "https://acct.r2.cloudflarestorage.com")
        self.assertEqual(kwargs["region_name"], "auto")


class RenderDispatcherTests(unittest.TestCase):
    @patch("mazayago.pipeline.dispatch.load_dotenv")
    def test_requires_repo_and_token(self, _load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                RenderDispatcher()
            self.assertIsNone(get_render_dispatcher())

    @patch("mazayago.pipeline.dispatch.load_dotenv")
    def test_dispatch_payload(self, _load_dotenv):
        session = DummySession()
        with patch.dict(os.environ, {}, clear=True):
            dispatcher = RenderDispatcher("mazayago/render", "pat", session=session)
        dispatcher.dispatch(7, "abc123")

        call = session.calls[0]
        self.assertEqual(
            call["url"],
            "https://api.github.com/repos/mazayago/render/actions/workflows/"
            "giveaway-render.yml/dispatches",
        )
        self.assertEqual(
            call["json"], {"ref": "main", "inputs": {"drawId": "7", "slug": "abc123"}}
        )
        self.assertEqual(call["headers"]["Authorization"], "token pat")

    @patch("mazayago.pipeline.dispatch.load_dotenv")
    def test_workflow_and_ref_from_environment(self, _load_dotenv):
        env = {
            "GITHUB_RENDER_REPO": "org/repo",
            "GITHUB_RENDER_PAT": "pat",
            "GITHUB_RENDER_WORKFLOW": "render.yml",
            "GITHUB_RENDER_REF": "release",
        }
        with patch.dict(os.environ, env, clear=True):
            dispatcher = get_render_dispatcher()
        self.assertEqual(dispatcher.ref, "release")
        self.assertTrue(dispatcher.url.endswith("/workflows/render.yml/dispatches"))

    @patch("mazayago.pipeline.dispatch.load_dotenv")
    def test_rejected_dispatch(self, _load_dotenv):
        session = DummySession(DummyResponse(422, "No ref found"))
        dispatcher = RenderDispatcher("org/repo", "pat", session=session)
        with self.assertRaises(ExternalDependencyError) as ctx:
            dispatcher.dispatch(1, "slug")
        self.assertIn("422", str(ctx.exception))

    @patch("mazayago.pipeline.dispatch.load_dotenv")
    def test_network_error(self, _load_dotenv):
        session = DummySession(error=requests.ConnectionError("boom"))
        dispatcher = RenderDispatcher("org/repo", "pat", session=session)
        with self.assertRaises(ExternalDependencyError):
            dispatcher.dispatch(1, "slug")


class PublishPipelineTests(unittest.TestCase):
    def test_package_keys(self):
        keys = PackageKeys("abc")
        self.assertEqual(keys.manifest, "giveaway/abc/manifest.json")
        self.assertEqual(keys.render_status, "giveaway/abc/render-status.json")
        self.assertEqual(keys.video, "giveaway/abc/video.mp4")

    def test_status_defaults_to_packaged(self):
        storage = MemoryStorage()
        storage.objects["giveaway/abc/manifest.json"] = {"slug": "abc"}
        status = PublishPipeline(storage).get_status("abc")
        self.assertEqual(status["status"], "packaged")
        self.assertIsNone(status["render_status"])

    def test_status_tolerates_unreachable_storage(self):
        client = StubS3Client()
        client.fail_with = EndpointConnectionError(endpoint_url="https://r2")
        pipeline = PublishPipeline(PipelineStorage(client, "b", "https://pub.example.com"))
        with self.assertLogs("mazayago.pipeline.storage", level="WARNING"):
            status = pipeline.get_status("abc")
        self.assertEqual(status["status"], "packaged")

    def test_dispatch_without_dispatcher(self):
        pipeline = PublishPipeline(MemoryStorage())
        with self.assertRaises(ExternalDependencyError):
            pipeline.dispatch_render(1, "abc")

    def test_retry_without_storage(self):
        pipeline = PublishPipeline(None, RecordingDispatcher())
        with self.assertRaises(ExternalDependencyError):
            pipeline.retry(1, "abc")

    def test_record_render_status(self):
        storage = MemoryStorage()
        pipeline = PublishPipeline(storage)
        self.assertTrue(pipeline.record_render_status("abc", {"status": "rendering"}))
        self.assertEqual(
            storage.objects["giveaway/abc/render-status.json"], {"status": "rendering"}
        )
        self.assertFalse(PublishPipeline().record_render_status("abc", {}))


if __name__ == "__main__":
    unittest.main()
