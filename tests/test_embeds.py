"""
Tests for embed utilities.
"""

import discord

from services.interfaces import Notice, NoticeKind
from utils.embeds import EMBED_LIMITS, build_notice_embed, mention_content, truncate_field


class TestTruncateField:
    def test_short_text_unchanged(self):
        assert truncate_field("Mozdok", 10) == "Mozdok"

    def test_long_text_is_cut_with_ellipsis(self):
        text = truncate_field("x" * 2000)

        assert len(text) == 1024
        assert text.endswith("...")


class TestBuildNoticeEmbed:
    def test_title_description_and_color(self):
        notice = Notice(kind=NoticeKind.FAILURE, title="❌ Session aborted", description="Lobby down")

        embed = build_notice_embed(notice)

        assert embed.title == "❌ Session aborted"
        assert embed.description == "Lobby down"
        assert embed.color == discord.Color.red()

    def test_empty_description_is_omitted(self):
        embed = build_notice_embed(Notice(kind=NoticeKind.ROUND_STARTED, title="Lobby Started"))

        assert embed.description is None

    def test_fields_are_capped_and_blank_values_filled(self):
        fields = [(f"Player {i}", "") for i in range(40)]

        embed = build_notice_embed(Notice(kind=NoticeKind.SESSION_CREATED, title="Session Created", fields=fields))

        assert len(embed.fields) == EMBED_LIMITS["max_fields"]
        assert embed.fields[0].value == "\u200b"
        assert embed.fields[0].inline

    def test_join_prompt_fields_are_stacked(self):
        notice = Notice(kind=NoticeKind.JOIN_PROMPT, title="Scrim Session", fields=[("🗺️ Map", "Mozdok")])

        assert not build_notice_embed(notice).fields[0].inline

    def test_oversized_description_fits_discord_limit(self):
        notice = Notice(kind=NoticeKind.POLL, title="t", description="y" * 5000)

        assert len(build_notice_embed(notice).description) == EMBED_LIMITS["description"]


class TestMentionContent:
    def test_no_mentions_unless_requested(self):
        notice = Notice(kind=NoticeKind.SLOT_CONFIRMED, title="t", description="<@1>, <@2>")

        assert mention_content(notice) is None

    def test_collects_unique_mentions_from_description_and_fields(self):
        notice = Notice(
            kind=NoticeKind.SESSION_CREATED,
            title="Session Created",
            description="Starts in 30 minutes!\n<@1>, <@2>, <@1>",
            fields=[("Invited ✅", "<@3>"), ("Map", "Mozdok")],
            mention_users=True,
        )

        assert mention_content(notice) == "<@1> <@2> <@3>"

    def test_requested_but_nobody_to_mention(self):
        notice = Notice(kind=NoticeKind.REMINDER, title="t", description="nobody", mention_users=True)

        assert mention_content(notice) is None
