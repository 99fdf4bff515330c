import unittest

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from draw_fixtures import (
    MemoryStorage,
    RecordingDispatcher,
    add_draw,
    add_entries,
    add_page,
    comment,
    make_memory_sessionmaker,
)
from mazayago.models import DrawStatus
from mazayago.pipeline import PublishPipeline
from mazayago.web import create_app

SECRET = "render-secret"


class WebAppTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.Session = make_memory_sessionmaker(
            connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        self.storage = MemoryStorage()
        self.dispatcher = RecordingDispatcher()
        self.pipeline = PublishPipeline(self.storage, self.dispatcher)
        self.app = create_app(self.Session, self.pipeline, SECRET, debug=False)
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        self.engine.dispose()

    def _drawn_draw_id(self, eligible: int = 3) -> int:
        with self.Session.begin() as session:
            draw = add_draw(
                session, status=DrawStatus.FROZEN, draw_code="FC-0123456789AB"
            )
            add_entries(session, draw, eligible)
            draw_id = draw.id
        resp = self.client.post(f"/draws/{draw_id}/draw")
        self.assertEqual(resp.status_code, 200, resp.text)
        return draw_id

    def test_full_lifecycle(self):
        with self.Session.begin() as session:
            page_id = add_page(session).id

        resp = self.client.post(
            "/draws", json={"title": "Eid giveaway", "winners_count": 1, "alternates_count": 1}
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        draw_id = resp.json()["data"]["id"]

        resp = self.client.post(
            f"/draws/{draw_id}/source",
            json={
                "social_page_id": page_id,
                "fb_post_id": "1000123_555",
                "post_url": "https://www.facebook.com/1000123/posts/555",
            },
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"]["platform"], "FACEBOOK")

        resp = self.client.post(f"/draws/{draw_id}/rules", json={"min_mentions": 0})
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertIsNone(resp.json()["data"]["warning"])

        resp = self.client.patch(
            f"/draws/{draw_id}", json={"locked_at": "2025-03-01T12:00:00+00:00"}
        )
        self.assertEqual(resp.status_code, 200, resp.text)

        resp = self.client.post(
            f"/draws/{draw_id}/entries/sync",
            json={"comments": [comment("c1"), comment("c2"), comment("c3")]},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"]["eligible"], 3)

        resp = self.client.post(f"/draws/{draw_id}/freeze")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"]["status"], "FROZEN")

        resp = self.client.post(f"/draws/{draw_id}/draw")
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]
        self.assertEqual([w["rank"] for w in data["winners"]], [1, 2])
        self.assertEqual(data["eligible_count"], 3)
        self.assertEqual(set(data["audit"]), {"seed", "hash_before", "hash_after"})

        resp = self.client.post(f"/draws/{draw_id}/publish")
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]
        slug = data["draw"]["public_view_slug"]
        self.assertTrue(data["dispatched"])
        self.assertEqual(self.dispatcher.calls, [(draw_id, slug)])

        resp = self.client.get(f"/r/{slug}")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(len(resp.json()["data"]["winners"]), 2)

        resp = self.client.get(f"/draws/{draw_id}")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"]["draw"]["status"], "PUBLISHED")

    def test_error_mapping(self):
        resp = self.client.get("/draws/404")
        self.assertEqual(resp.status_code, 404)
        self.assertIn("error", resp.json())

        resp = self.client.post("/draws", json={"title": "x", "winners_count": 0})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("details", resp.json())

        with self.Session.begin() as session:
            draw_id = add_draw(session, locked_at=None).id
        resp = self.client.post(f"/draws/{draw_id}/freeze")
        self.assertEqual(resp.status_code, 409)
        self.assertIn("locked_at", resp.json()["error"])

        resp = self.client.post(
            f"/draws/{draw_id}/source",
            json={"platform": "INSTAGRAM", "post_url": "https://www.instagram.com/p/x/"},
        )
        self.assertEqual(resp.status_code, 400)

    def test_insufficient_entries_is_conflict(self):
        with self.Session.begin() as session:
            draw = add_draw(
                session,
                status=DrawStatus.FROZEN,
                winners_count=3,
                alternates_count=2,
            )
            add_entries(session, draw, 4)
            draw_id = draw.id
        resp = self.client.post(f"/draws/{draw_id}/draw")
        self.assertEqual(resp.status_code, 409)
        body = resp.json()
        self.assertEqual((body["required"], body["available"]), (5, 4))

    def test_failed_request_rolls_back(self):
        with self.Session.begin() as session:
            draw_id = add_draw(session, locked_at=None).id
        resp = self.client.patch(
            f"/draws/{draw_id}", json={"title": "Renamed", "draw_mode": "RANDOM_CORRECT"}
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get(f"/draws/{draw_id}")
        self.assertEqual(resp.json()["data"]["draw"]["title"], "Spring giveaway")

    def test_dispatch_failure_keeps_publish(self):
        draw_id = self._drawn_draw_id()
        self.dispatcher.fail = True

        resp = self.client.post(f"/draws/{draw_id}/publish")
        self.assertEqual(resp.status_code, 502)
        body = resp.json()
        self.assertIn("error", body)
        slug = body["data"]["draw"]["public_view_slug"]
        self.assertTrue(slug)

        resp = self.client.get(f"/r/{slug}")
        self.assertEqual(resp.status_code, 200)

        self.dispatcher.fail = False
        resp = self.client.post(f"/draws/{draw_id}/publish/retry")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["data"], {"status": "queued"})

    def test_publish_status_and_callback(self):
        draw_id = self._drawn_draw_id()
        resp = self.client.get(f"/draws/{draw_id}/publish/status")
        self.assertEqual(resp.json()["data"], {"status": "not_published"})

        self.client.post(f"/draws/{draw_id}/publish")
        resp = self.client.post(
            f"/draws/{draw_id}/publish/callback",
            json={"status": "published", "videoUrl": "https://cdn.example.com/v.mp4"},
            headers={"x-render-secret": "nope"},
        )
        self.assertEqual(resp.status_code, 401)
        resp = self.client.get(f"/draws/{draw_id}/publish/status")
        self.assertEqual(resp.json()["data"]["status"], "queued")

        resp = self.client.post(
            f"/draws/{draw_id}/publish/callback",
            json={"status": "published", "videoUrl": "https://cdn.example.com/v.mp4"},
            headers={"x-render-secret": SECRET},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        resp = self.client.get(f"/draws/{draw_id}/publish/status")
        self.assertEqual(resp.json()["data"]["status"], "published")
        resp = self.client.get(f"/draws/{draw_id}")
        self.assertEqual(
            resp.json()["data"]["assets"]["video_url"], "https://cdn.example.com/v.mp4"
        )

    def test_patch_null_for_required_column_is_bad_request(self):
        with self.Session.begin() as session:
            draw_id = add_draw(session, locked_at=None).id
        for field in ("alternates_count", "draw_mode", "video_format", "show_logo"):
            with self.subTest(field=field):
                resp = self.client.patch(f"/draws/{draw_id}", json={field: None})
                self.assertEqual(resp.status_code, 400, resp.text)
                self.assertIn("details", resp.json())

    def test_callback_checks_secret_before_body(self):
        draw_id = self._drawn_draw_id()
        self.client.post(f"/draws/{draw_id}/publish")

        resp = self.client.post(
            f"/draws/{draw_id}/publish/callback",
            content=b"not json",
            headers={"x-render-secret": "wrong", "content-type": "application/json"},
        )
        self.assertEqual(resp.status_code, 401, resp.text)
        self.assertNotIn("details", resp.json())
        resp = self.client.get(f"/draws/{draw_id}/publish/status")
        self.assertEqual(resp.json()["data"]["status"], "queued")

        resp = self.client.post(
            f"/draws/{draw_id}/publish/callback",
            content=b"not json",
            headers={"x-render-secret": SECRET, "content-type": "application/json"},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        resp = self.client.get(f"/draws/{draw_id}/publish/status")
        self.assertEqual(resp.json()["data"]["status"], "rendering")

    def test_summary_route(self):
        with self.Session.begin() as session:
            draw_id = add_draw(session).id
        resp = self.client.get(f"/draws/{draw_id}/summary")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertIsNone(resp.json()["data"])

        self.client.post(
            f"/draws/{draw_id}/entries/sync",
            json={"comments": [comment("c1"), comment("c2")]},
        )
        resp = self.client.get(f"/draws/{draw_id}/summary")
        self.assertEqual(resp.json()["data"]["eligible"], 2)

        resp = self.client.get("/draws/999/summary")
        self.assertEqual(resp.status_code, 404)

    def test_unknown_public_slug(self):
        resp = self.client.get("/r/does-not-exist")
        self.assertEqual(resp.status_code, 404)


if __name__ == "__main__":
    unittest.main()
