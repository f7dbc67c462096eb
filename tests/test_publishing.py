"""
Publishing state machine and scheduled sweep tests.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import update

from vixenblog.errors import ValidationError
from vixenblog.extensions import db
from vixenblog.models import Post, utcnow
from vixenblog.publishing import (
    DRAFT,
    PUBLISHED,
    SCHEDULED,
    apply_publish_state,
    parse_schedule,
    publish_due_posts,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


class TestParseSchedule:

    @pytest.mark.parametrize('value', [None, '', '   '])
    def test_blank_means_no_schedule(self, value):
        assert parse_schedule(value) is None

    def test_utc_suffix(self):
        assert parse_schedule('2025-06-01T12:00:00Z') == NOW

    def test_offset_converted_to_utc(self):
        assert parse_schedule('2025-06-01T20:00:00+08:00') == NOW

    def test_naive_taken_as_utc(self):
        assert parse_schedule('2025-06-01T12:00:00') == NOW

    @pytest.mark.parametrize('value', ['tomorrow', '2025-13-01T00:00:00Z', 12345])
    def test_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_schedule(value)


class TestApplyPublishState:

    def test_future_schedule_wins_over_published_flag(self):
        post = Post(published=False)
        state = apply_publish_state(post, True, NOW + timedelta(hours=1), now=NOW)
        assert state == SCHEDULED
        assert post.published is False
        assert post.scheduled_at == NOW + timedelta(hours=1)
        assert post.status == SCHEDULED

    def test_publish_now(self):
        post = Post(published=False)
        assert apply_publish_state(post, True, None, now=NOW) == PUBLISHED
        assert post.published_at == NOW
        assert post.scheduled_at is None

    def test_republish_keeps_published_at(self):
        first = NOW - timedelta(days=30)
        post = Post(published=True, published_at=first)
        apply_publish_state(post, True, None, now=NOW)
        assert post.published_at == first

    def test_past_schedule_without_publish_is_draft(self):
        post = Post(published=False)
        assert apply_publish_state(post, False, NOW - timedelta(minutes=1), now=NOW) == DRAFT
        assert post.scheduled_at is None
        assert post.published is False

    def test_cancel_schedule(self):
        post = Post(published=False, scheduled_at=NOW + timedelta(days=1))
        assert apply_publish_state(post, False, None, now=NOW) == DRAFT
        assert post.scheduled_at is None

    def test_unpublish_keeps_history(self):
        post = Post(published=True, published_at=NOW - timedelta(days=1))
        assert apply_publish_state(post, False, None, now=NOW) == DRAFT
        assert post.published is False
        assert post.published_at == NOW - timedelta(days=1)


class TestPublishSweep:

    def test_due_post_published_at_its_scheduled_time(self, ctx, make_post):
        due_at = utcnow() - timedelta(minutes=5)
        post = make_post(title='Due', published=False, scheduled_at=due_at)

        published = publish_due_posts()

        assert [p.id for p in published] == [post.id]
        row = db.session.get(Post, post.id)
        assert row.published is True
        assert row.published_at == due_at
        assert row.scheduled_at is None

    def test_future_post_untouched(self, ctx, make_post):
        post = make_post(title='Later', published=False, scheduled_at=utcnow() + timedelta(hours=1))

        assert publish_due_posts() == []
        row = db.session.get(Post, post.id)
        assert row.published is False
        assert row.scheduled_at is not None

    def test_sweep_is_idempotent(self, ctx, make_post):
        make_post(title='One', published=False, scheduled_at=utcnow() - timedelta(minutes=2))
        make_post(title='Two', published=False, scheduled_at=utcnow() - timedelta(minutes=1))

        assert len(publish_due_posts()) == 2
        assert publish_due_posts() == []

    def test_lifecycle_with_explicit_clock(self, ctx, make_post):
        start = utcnow()
        post = make_post(title='Timed', published=False, scheduled_at=start + timedelta(minutes=10))

        assert publish_due_posts(now=start) == []
        assert [p.id for p in publish_due_posts(now=start + timedelta(minutes=10))] == [post.id]
        assert db.session.get(Post, post.id).status == PUBLISHED

    def test_drafts_ignored(self, ctx, make_post):
        make_post(title='Draft', published=False)
        assert publish_due_posts() == []

    def test_schedule_cancelled_after_scan_is_skipped(self, ctx, make_post, monkeypatch):
        """A post un-scheduled between the scan and the write stays a draft."""
        kept = make_post(title='Kept', published=False, scheduled_at=utcnow() - timedelta(minutes=2))
        cancelled = make_post(title='Cancelled', published=False, scheduled_at=utcnow() - timedelta(minutes=1))

        scalars = db.session.scalars
        scans = []

        def scan_then_cancel(stmt, *args, **kwargs):
            result = scalars(stmt, *args, **kwargs)
            if scans:
                return result
            scans.append(stmt)
            stale_ids = result.all()
            db.session.execute(update(Post).where(Post.id == cancelled.id).values(scheduled_at=None))
            return SimpleNamespace(all=lambda: stale_ids)

        monkeypatch.setattr(db.session, 'scalars', scan_then_cancel)

        assert [p.id for p in publish_due_posts()] == [kept.id]
        row = db.session.get(Post, cancelled.id)
        assert row.published is False
        assert row.published_at is None
