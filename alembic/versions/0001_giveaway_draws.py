"""giveaway draws, sources, entries, winners and publish assets

Revision ID: 0001_giveaway_draws
Revises:
Create Date: 2025-03-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_giveaway_draws"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _id() -> sa.Column:
    return sa.Column("id", ID, autoincrement=True, nullable=False)


def _draw_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["draw_id"],
        ["giveaway_draws.id"],
        name=f"fk_{table}_draw_id_giveaway_draws",
        ondelete="CASCADE",
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "social_pages",
        _id(),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("fb_page_id", sa.String(length=255), nullable=False),
        sa.Column("fb_page_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_social_pages"),
    )

    op.create_table(
        "giveaway_draws",
        _id(),
        sa.Column("platform", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("winners_count", sa.Integer(), nullable=False),
        sa.Column("alternates_count", sa.Integer(), nullable=False),
        sa.Column("draw_mode", sa.String(length=20), nullable=False),
        sa.Column("correct_answer", sa.String(length=300), nullable=True),
        sa.Column("answer_match", sa.String(length=20), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("draw_code", sa.String(length=32), nullable=True),
        sa.Column("public_view_slug", sa.String(length=64), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("contest_image_url", sa.Text(), nullable=True),
        sa.Column("show_logo", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "show_contest_image", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("main_color", sa.String(length=40), nullable=True),
        sa.Column("video_format", sa.String(length=10), nullable=False),
        sa.Column("animation_type", sa.String(length=80), nullable=True),
        sa.Column(
            "animation_enable_sounds",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("animation_duration_sec", sa.Integer(), nullable=True),
        sa.Column(
            "animation_pick_one_by_one",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("winners_count >= 1", name="ck_giveaway_draws_winners_count_min"),
        sa.CheckConstraint(
            "alternates_count >= 0", name="ck_giveaway_draws_alternates_count_min"
        ),
        sa.CheckConstraint(
            "platform IN ('FACEBOOK','INSTAGRAM','TIKTOK')",
            name="ck_giveaway_draws_platform_enum",
        ),
        sa.CheckConstraint(
            "status IN ('DRAFT','FROZEN','DRAWN','PUBLISHED')",
            name="ck_giveaway_draws_status_enum",
        ),
        sa.CheckConstraint(
            "draw_mode IN ('RANDOM_ALL','RANDOM_CORRECT')",
            name="ck_giveaway_draws_draw_mode_enum",
        ),
        sa.CheckConstraint(
            "answer_match IN ('EXACT','CONTAINS','NORMALIZED_EXACT')",
            name="ck_giveaway_draws_answer_match_enum",
        ),
        sa.CheckConstraint(
            "video_format IN ('V_9_16','S_1_1','H_16_9')",
            name="ck_giveaway_draws_video_format_enum",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_draws"),
        sa.UniqueConstraint("draw_code", name="uq_giveaway_draws_draw_code"),
        sa.UniqueConstraint("public_view_slug", name="uq_giveaway_draws_public_view_slug"),
    )
    op.create_index("ix_giveaway_draws_status", "giveaway_draws", ["status"])

    op.create_table(
        "giveaway_sources_facebook",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("social_page_id", ID, nullable=False),
        sa.Column("fb_page_id", sa.String(length=255), nullable=False),
        sa.Column("fb_page_name", sa.String(length=255), nullable=True),
        sa.Column("fb_post_id", sa.String(length=255), nullable=False),
        sa.Column("post_url", sa.Text(), nullable=True),
        sa.Column("post_text_snippet", sa.String(length=500), nullable=True),
        _created_at(),
        _draw_fk("giveaway_sources_facebook"),
        sa.ForeignKeyConstraint(
            ["social_page_id"],
            ["social_pages.id"],
            name="fk_giveaway_sources_facebook_social_page_id_social_pages",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_sources_facebook"),
        sa.UniqueConstraint("draw_id", name="uq_giveaway_sources_facebook_draw_id"),
    )

    op.create_table(
        "giveaway_sources_instagram",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("post_url", sa.Text(), nullable=False),
        sa.Column("ig_media_id", sa.String(length=255), nullable=True),
        sa.Column("ig_shortcode", sa.String(length=255), nullable=True),
        sa.Column("ig_username", sa.String(length=255), nullable=True),
        sa.Column("media_type", sa.String(length=100), nullable=True),
        sa.Column("media_cover_url", sa.Text(), nullable=True),
        sa.Column("caption_snippet", sa.String(length=500), nullable=True),
        sa.Column("post_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comments_count", sa.Integer(), nullable=True),
        _created_at(),
        _draw_fk("giveaway_sources_instagram"),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_sources_instagram"),
        sa.UniqueConstraint("draw_id", name="uq_giveaway_sources_instagram_draw_id"),
    )

    op.create_table(
        "giveaway_rules",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column(
            "dedup_one_entry_per_user",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "exclude_page_admins", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "include_replies", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("required_keyword", sa.String(length=120), nullable=True),
        sa.Column("banned_keyword", sa.String(length=120), nullable=True),
        sa.Column(
            "require_like_page", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "require_like_post", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "require_like_comment",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "like_check_available",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column("min_mentions", sa.Integer(), nullable=False),
        sa.Column("required_hashtag", sa.String(length=120), nullable=True),
        sa.Column("required_mention", sa.String(length=120), nullable=True),
        sa.Column("block_list", sa.JSON(), nullable=False),
        _draw_fk("giveaway_rules"),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_rules"),
        sa.UniqueConstraint("draw_id", name="uq_giveaway_rules_draw_id"),
    )

    op.create_table(
        "giveaway_entries",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("platform_user_id", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("comment_id", sa.String(length=255), nullable=False),
        sa.Column("comment_url", sa.Text(), nullable=True),
        sa.Column("comment_text", sa.Text(), nullable=True),
        sa.Column("comment_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entry_status", sa.String(length=20), nullable=False),
        sa.Column("exclusion_reason", sa.String(length=64), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        _created_at(),
        _draw_fk("giveaway_entries"),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_entries"),
        sa.UniqueConstraint("draw_id", "comment_id", name="uq_giveaway_entry_comment"),
    )
    op.create_index("ix_giveaway_entries_draw_id", "giveaway_entries", ["draw_id"])
    op.create_index(
        "ix_giveaway_entries_draw_status", "giveaway_entries", ["draw_id", "entry_status"]
    )

    op.create_table(
        "giveaway_eligibility_snapshots",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_comments_in_window", sa.Integer(), nullable=False),
        sa.Column("unique_users_count", sa.Integer(), nullable=False),
        sa.Column("eligible_count", sa.Integer(), nullable=False),
        sa.Column("excluded_count", sa.Integer(), nullable=False),
        sa.Column("exclusion_breakdown", sa.JSON(), nullable=False),
        sa.Column("latest_comment_at_in_window", sa.DateTime(timezone=True), nullable=True),
        _draw_fk("giveaway_eligibility_snapshots"),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_eligibility_snapshots"),
    )
    op.create_index(
        "ix_giveaway_eligibility_snapshots_draw_id",
        "giveaway_eligibility_snapshots",
        ["draw_id"],
    )

    op.create_table(
        "giveaway_winners",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("winner_type", sa.String(length=20), nullable=False),
        sa.Column("entry_id", ID, nullable=False),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("proof_comment_url", sa.Text(), nullable=True),
        sa.CheckConstraint("rank >= 1", name="ck_giveaway_winners_rank_min"),
        sa.CheckConstraint(
            "winner_type IN ('WINNER','ALTERNATE')",
            name="ck_giveaway_winners_winner_type_enum",
        ),
        _draw_fk("giveaway_winners"),
        sa.ForeignKeyConstraint(
            ["entry_id"],
            ["giveaway_entries.id"],
            name="fk_giveaway_winners_entry_id_giveaway_entries",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_winners"),
        sa.UniqueConstraint("draw_id", "rank", name="uq_giveaway_winner_rank"),
    )
    op.create_index("ix_giveaway_winners_draw_id", "giveaway_winners", ["draw_id"])

    op.create_table(
        "giveaway_publish_assets",
        _id(),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        _draw_fk("giveaway_publish_assets"),
        sa.PrimaryKeyConstraint("id", name="pk_giveaway_publish_assets"),
        sa.UniqueConstraint("draw_id", name="uq_giveaway_publish_assets_draw_id"),
    )


def downgrade() -> None:
    op.drop_table("giveaway_publish_assets")
    op.drop_index("ix_giveaway_winners_draw_id", table_name="giveaway_winners")
    op.drop_table("giveaway_winners")
    op.drop_index(
        "ix_giveaway_eligibility_snapshots_draw_id",
        table_name="giveaway_eligibility_snapshots",
    )
    op.drop_table("giveaway_eligibility_snapshots")
    op.drop_index("ix_giveaway_entries_draw_status", table_name="giveaway_entries")
    op.drop_index("ix_giveaway_entries_draw_id", table_name="giveaway_entries")
    op.drop_table("giveaway_entries")
    op.drop_table("giveaway_rules")
    op.drop_table("giveaway_sources_instagram")
    op.drop_table("giveaway_sources_facebook")
    op.drop_index("ix_giveaway_draws_status", table_name="giveaway_draws")
    op.drop_table("giveaway_draws")
    op.drop_table("social_pages")
