from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import sessionmaker

from mazayago.db.engine import make_engine
from mazayago.models import (
    Base,
    EntryStatus,
    FacebookSource,
    GiveawayDraw,
    GiveawayEntry,
    GiveawayRules,
    SocialPage,
)


def main() -> None:
    """Reset the development database and seed one draw ready to freeze."""
    engine = make_engine()

    # SQLite refuses to drop tables referenced by live foreign keys.
    with engine.connect() as conn:
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        if engine.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    locked_at = datetime.now(timezone.utc).replace(microsecond=0)

    with Session.begin() as session:
        page = SocialPage(
            provider="FACEBOOK",
            fb_page_id="104857600000001",
            fb_page_name="MazayaGo Demo Store",
        )
        session.add(page)
        session.flush()

        draw = GiveawayDraw(
            title="Ramadan mega giveaway",
            winners_count=3,
            alternates_count=2,
            locked_at=locked_at,
            main_color="#0F766E",
        )
        session.add(draw)
        session.flush()

        draw.facebook_source = FacebookSource(
            social_page_id=page.id,
            fb_page_id=page.fb_page_id,
            fb_page_name=page.fb_page_name,
            fb_post_id=f"{page.fb_page_id}_900000000000001",
            post_url="https://www.facebook.com/104857600000001/posts/900000000000001",
            post_text_snippet="Comment and tag a friend to win!",
        )
        draw.rules = GiveawayRules(min_mentions=1)

        post_url = draw.facebook_source.post_url
        for i in range(12):
            comment_id = f"9000000000000{i:02d}"
            session.add(
                GiveawayEntry(
                    draw_id=draw.id,
                    platform_user_id=f"fb-user-{i:02d}",
                    display_name=f"Participant {i:02d}",
                    comment_id=comment_id,
                    comment_url=f"{post_url}?comment_id={comment_id}",
                    comment_text=f"I'm in! @friend{i}",
                    comment_created_at=locked_at - timedelta(minutes=5 * (i + 1)),
                    entry_status=EntryStatus.ELIGIBLE.value,
                )
            )

    print(f"Seeded draw {draw.id} ({draw.title}) with 12 eligible entries.")


if __name__ == "__main__":
    main()
