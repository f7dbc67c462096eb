"""Visitor engagement: like toggles, view counts and comment moderation."""
import logging
from dataclasses import dataclass

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError

from . import mailer
from .errors import NotFoundError
from .extensions import db
from .models import Comment, Post, PostLike

logger = logging.getLogger(__name__)


@dataclass
class LikeResult:
    liked: bool
    like_count: int

    def to_dict(self):
        return {'liked': self.liked, 'likeCount': self.like_count}


def _bump_like_count(post_id, delta):
    if delta > 0:
        new_value = Post.like_count + 1
    else:
        # Never let a stray decrement push the counter below zero
        new_value = case((Post.like_count > 0, Post.like_count - 1), else_=0)
    db.session.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(like_count=new_value)
        .execution_options(synchronize_session=False)
    )


def toggle_like(post_id, visitor_id):
    """Like the post if this visitor has not yet, otherwise take the like back.

    The PostLike row is the source of truth and the counter is only ever
    changed with atomic UPDATEs. If a concurrent request from the same visitor
    inserted the row first, the unique constraint rejects ours and the post is
    simply reported as liked.
    """
    removed = db.session.execute(
        delete(PostLike)
        .where(PostLike.visitor_id == visitor_id, PostLike.post_id == post_id)
        .execution_options(synchronize_session=False)
    ).rowcount

    if removed:
        _bump_like_count(post_id, -1)
        liked = False
    else:
        try:
            with db.session.begin_nested():
                db.session.add(PostLike(visitor_id=visitor_id, post_id=post_id))
        except IntegrityError:
            logger.info(f"[toggle_like] Visitor {visitor_id} already likes post {post_id}, reconciled.")
        else:
            _bump_like_count(post_id, +1)
        liked = True

    db.session.commit()
    like_count = db.session.scalar(select(Post.like_count).where(Post.id == post_id))
    return LikeResult(liked=liked, like_count=like_count or 0)


def has_liked(post_id, visitor_id):
    return db.session.scalar(
        select(PostLike.id).where(PostLike.visitor_id == visitor_id, PostLike.post_id == post_id)
    ) is not None


def record_view(post_id):
    db.session.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(view_count=Post.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def _best_effort(action, *args):
    # Notifications must never fail or roll back the moderation change
    try:
        action(*args)
    except Exception:
        logger.exception(f"[notify] {action.__name__} failed")


def submit_comment(post, author, email, content, website=None, parent_id=None):
    parent = None
    if parent_id is not None:
        parent = db.session.get(Comment, parent_id)
        if parent is None or parent.post_id != post.id:
            raise NotFoundError('Parent comment not found')
        # Only one level of replies; answering a reply attaches to its thread root
        if parent.parent_id is not None:
            parent = parent.parent

    comment = Comment(
        post_id=post.id,
        parent_id=parent.id if parent else None,
        author=author,
        email=email,
        website=website or None,
        content=content,
        approved=False,
    )
    db.session.add(comment)
    db.session.commit()
    logger.info(f"[submit_comment] Comment {comment.id} on post {post.id} awaiting moderation.")

    _best_effort(mailer.notify_new_comment, post, comment)
    return comment


def set_comment_approval(comment, approved):
    comment.approved = bool(approved)
    db.session.commit()
    logger.info(f"[moderate_comment] Comment {comment.id} approved={comment.approved}")

    if comment.approved and comment.parent_id is not None:
        parent = comment.parent
        if parent is not None and parent.email:
            _best_effort(mailer.notify_comment_reply, parent, comment)
    return comment


def public_comments(post_id):
    """Approved top-level comments, newest first, each with approved replies oldest first."""
    roots = db.session.scalars(
        select(Comment)
        .where(Comment.post_id == post_id, Comment.parent_id.is_(None), Comment.approved.is_(True))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    ).all()

    thread = []
    for root in roots:
        data = root.to_public_dict()
        replies = sorted((r for r in root.replies if r.approved), key=lambda r: (r.created_at, r.id))
        data['replies'] = [reply.to_public_dict() for reply in replies]
        thread.append(data)
    return thread
