import json
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from mazayago.models import (
    Base,
    EntryStatus,
    FacebookSource,
    GiveawayDraw,
    GiveawayEntry,
    GiveawayRules,
    GiveawayWinner,
    InstagramSource,
    PublishAsset,
    SocialPage,
)
from mazayago.models.utils import make_draw_code, make_public_slug


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _draw(self, session, **fields) -> GiveawayDraw:
        draw = GiveawayDraw(title="Summer giveaway", winners_count=2, **fields)
        session.add(draw)
        session.flush()
        return draw

    def test_draw_defaults(self):
        with self.Session() as session:
            draw = self._draw(session)
            session.commit()
            self.assertEqual(draw.status, "DRAFT")
            self.assertEqual(draw.platform, "FACEBOOK")
            self.assertEqual(draw.draw_mode, "RANDOM_ALL")
            self.assertEqual(draw.answer_match, "NORMALIZED_EXACT")
            self.assertEqual(draw.video_format, "V_9_16")
            self.assertEqual(draw.total_to_pick, 2)
            self.assertIsNone(draw.source)

    def test_winners_count_check_constraint(self):
        with self.Session() as session:
            session.add(GiveawayDraw(title="Broken", winners_count=0))
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_unknown_status_rejected_by_database(self):
        with self.Session() as session:
            session.add(GiveawayDraw(title="Broken", winners_count=1, status="ARCHIVED"))
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_source_follows_platform(self):
        with self.Session() as session:
            page = SocialPage(fb_page_id="42", fb_page_name="Page")
            session.add(page)
            draw = self._draw(session, platform="INSTAGRAM")
            draw.facebook_source = FacebookSource(
                social_page_id=page.id, fb_page_id="42", fb_post_id="42_1"
            )
            draw.instagram_source = InstagramSource(
                post_url="https://www.instagram.com/p/abc/"
            )
            session.flush()
            self.assertIs(draw.source, draw.instagram_source)
            self.assertEqual(draw.source.to_json()["platform"], "INSTAGRAM")

    def test_get_active_facebook_page(self):
        with self.Session() as session:
            active = SocialPage(fb_page_id="1")
            inactive = SocialPage(fb_page_id="2", status="DISCONNECTED")
            other = SocialPage(fb_page_id="3", provider="INSTAGRAM")
            session.add_all([active, inactive, other])
            session.flush()
            self.assertIs(SocialPage.get_active_facebook(session, active.id), active)
            self.assertIsNone(SocialPage.get_active_facebook(session, inactive.id))
            self.assertIsNone(SocialPage.get_active_facebook(session, other.id))

    def test_entry_comment_unique_per_draw(self):
        with self.Session() as session:
            first = self._draw(session)
            second = self._draw(session)
            session.add_all(
                [
                    GiveawayEntry(draw_id=first.id, comment_id="c1"),
                    GiveawayEntry(draw_id=second.id, comment_id="c1"),
                ]
            )
            session.flush()
            session.add(GiveawayEntry(draw_id=first.id, comment_id="c1"))
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_winner_rank_unique_per_draw(self):
        with self.Session() as session:
            draw = self._draw(session)
            entries = [
                GiveawayEntry(draw_id=draw.id, comment_id=f"c{i}") for i in range(2)
            ]
            session.add_all(entries)
            session.flush()
            session.add_all(
                [
                    GiveawayWinner(
                        draw_id=draw.id, rank=1, winner_type="WINNER", entry_id=e.id
                    )
                    for e in entries
                ]
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_winners_ordered_by_rank(self):
        with self.Session() as session:
            draw = self._draw(session)
            entries = [
                GiveawayEntry(draw_id=draw.id, comment_id=f"c{i}") for i in range(3)
            ]
            session.add_all(entries)
            session.flush()
            for rank in (3, 1, 2):
                session.add(
                    GiveawayWinner(
                        draw_id=draw.id,
                        rank=rank,
                        winner_type="WINNER" if rank < 3 else "ALTERNATE",
                        entry_id=entries[rank - 1].id,
                    )
                )
            session.commit()

            session.expire(draw, ["winners"])
            self.assertEqual([w.rank for w in draw.winners], [1, 2, 3])

    def test_rules_defaults_are_transient(self):
        rules = GiveawayRules.defaults()
        self.assertTrue(rules.dedup_one_entry_per_user)
        self.assertTrue(rules.like_check_available)
        self.assertFalse(rules.requires_likes)
        rules.require_like_comment = True
        self.assertTrue(rules.requires_likes)

    def test_to_json_is_serializable(self):
        locked = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        with self.Session() as session:
            draw = self._draw(session, locked_at=locked)
            entry = GiveawayEntry(
                draw_id=draw.id,
                comment_id="c1",
                display_name="Amal",
                comment_url="https://fb.example/p?comment_id=c1",
                entry_status=EntryStatus.ELIGIBLE.value,
            )
            session.add(entry)
            session.flush()
            winner = GiveawayWinner(
                draw_id=draw.id, rank=1, winner_type="WINNER", entry_id=entry.id
            )
            asset = PublishAsset(draw_id=draw.id)
            session.add_all([winner, asset])
            session.flush()

            payload = {
                "draw": draw.to_json(),
                "entry": entry.to_json(),
                "winner": winner.to_json(),
                "public": winner.to_public_json(),
                "asset": asset.to_json(),
            }
            json.dumps(payload)
            self.assertEqual(payload["draw"]["locked_at"], "2025-03-01T12:00:00+00:00")
            self.assertEqual(
                payload["public"],
                {
                    "rank": 1,
                    "winner_type": "WINNER",
                    "display_name": "Amal",
                    "comment_url": "https://fb.example/p?comment_id=c1",
                },
            )
            self.assertIsNotNone(payload["asset"]["published_at"])

    def test_draw_code_retries_on_collision(self):
        with self.Session() as session:
            self._draw(session, draw_code="FC-AAAAAAAAAAAA")
            with patch(
                "mazayago.models.utils.secrets.token_hex",
                side_effect=["aaaaaaaaaaaa", "bbbbbbbbbbbb"],
            ):
                generated = make_draw_code(session)
            self.assertEqual(generated, "FC-BBBBBBBBBBBB")

    def test_public_slug_format(self):
        slug = make_public_slug()
        self.assertEqual(len(slug), 16)
        int(slug, 16)

    def test_get_by_slug(self):
        with self.Session() as session:
            draw = self._draw(session, public_view_slug="0123456789abcdef")
            self.assertIs(GiveawayDraw.get_by_slug(session, "0123456789abcdef"), draw)
            self.assertIsNone(GiveawayDraw.get_by_slug(session, "missing"))


if __name__ == "__main__":
    unittest.main()
