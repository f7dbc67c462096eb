from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db


def utcnow():
    """Naive UTC "now"; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() + 'Z' if value else None


# Association table for Post and Tag (many-to-many)
post_tags = db.Table('post_tags',
    db.Column('post_id', db.Integer, db.ForeignKey('post.id', ondelete='CASCADE'), primary_key=True),
    db.Column('tag_id', db.Integer, db.ForeignKey('tag.id', ondelete='CASCADE'), primary_key=True)
)


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='admin')
    image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'image': self.image,
            'role': self.role,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.name}>'


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    posts = db.relationship('Post', backref='category', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
        }

    def __repr__(self):
        return f'<Category {self.name}>'


class Tag(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    # Posts are reachable through the backref declared on Post.tags

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'slug': self.slug}

    def __repr__(self):
        return f'<Tag {self.name}>'


class Series(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    cover_image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    posts = db.relationship('Post', backref='series', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'coverImage': self.cover_image,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<Series {self.name}>'


class Post(db.Model):
    __table_args__ = (
        # published implies a publish time and no pending schedule
        db.CheckConstraint(
            'NOT published OR (published_at IS NOT NULL AND scheduled_at IS NULL)',
            name='publish_state',
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    excerpt = db.Column(db.Text, nullable=True)
    cover_image = db.Column(db.String(500), nullable=True)
    published = db.Column(db.Boolean, default=False, nullable=False)
    published_at = db.Column(db.DateTime, nullable=True, index=True)
    scheduled_at = db.Column(db.DateTime, nullable=True, index=True)
    view_count = db.Column(db.Integer, default=0, nullable=False)
    like_count = db.Column(db.Integer, default=0, nullable=False)
    series_order = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category_id = db.Column(db.Integer, db.ForeignKey('category.id', ondelete='SET NULL'), nullable=True)
    series_id = db.Column(db.Integer, db.ForeignKey('series.id', ondelete='SET NULL'), nullable=True)
    author_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)

    # Many-to-many relationship with Tag
    tags = db.relationship('Tag', secondary=post_tags, lazy='subquery',
                           backref=db.backref('posts', lazy=True))

    author = db.relationship('User', backref=db.backref('posts', lazy=True))
    comments = db.relationship('Comment', backref='post', lazy=True,
                               cascade='all, delete-orphan')
    likes = db.relationship('PostLike', backref='post', lazy=True,
                            cascade='all, delete-orphan')

    @property
    def status(self):
        if self.published:
            return 'published'
        if self.scheduled_at is not None:
            return 'scheduled'
        return 'draft'

    def to_summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'excerpt': self.excerpt,
            'coverImage': self.cover_image,
            'publishedAt': isoformat(self.published_at),
            'seriesOrder': self.series_order,
        }

    def to_dict(self, include_content=True):
        data = self.to_summary()
        data.update({
            'published': self.published,
            'status': self.status,
            'scheduledAt': isoformat(self.scheduled_at),
            'viewCount': self.view_count,
            'likeCount': self.like_count,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
            'category': self.category.to_dict() if self.category else None,
            'series': {'id': self.series.id, 'name': self.series.name, 'slug': self.series.slug} if self.series else None,
            'tags': [tag.to_dict() for tag in self.tags],
            'author': {'id': self.author.id, 'name': self.author.name} if self.author else None,
        })
        if include_content:
            data['content'] = self.content
        return data

    def __repr__(self):
        return f'<Post {self.title}>'


class Comment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    author = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    website = db.Column(db.String(300), nullable=True)
    content = db.Column(db.Text, nullable=False)
    approved = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    post_id = db.Column(db.Integer, db.ForeignKey('post.id', ondelete='CASCADE'), nullable=False, index=True)
    # One level of threading: replies point at a top-level comment
    parent_id = db.Column(db.Integer, db.ForeignKey('comment.id', ondelete='CASCADE'), nullable=True)

    replies = db.relationship('Comment', backref=db.backref('parent', remote_side='Comment.id'),
                              cascade='all, delete-orphan', lazy=True)

    def to_public_dict(self):
        return {
            'id': self.id,
            'author': self.author,
            'website': self.website,
            'content': self.content,
            'parentId': self.parent_id,
            'createdAt': isoformat(self.created_at),
        }

    def to_dict(self):
        data = self.to_public_dict()
        data.update({
            'email': self.email,
            'approved': self.approved,
            'postId': self.post_id,
            'post': {'id': self.post.id, 'title': self.post.title, 'slug': self.post.slug} if self.post else None,
        })
        return data

    def __repr__(self):
        return f'<Comment {self.id} on post {self.post_id}>'


class PostLike(db.Model):
    __table_args__ = (
        db.UniqueConstraint('visitor_id', 'post_id', name='uq_post_like_visitor_id_post_id'),
    )

    id = db.Column(db.Integer, primary_key=True)
    visitor_id = db.Column(db.String(100), nullable=False)
    post_id = db.Column(db.Integer, db.ForeignKey('post.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Setting(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<Setting {self.key}>'


class LoginLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(80), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    success = db.Column(db.Boolean, nullable=False, default=False)
    message = db.Column(db.String(200), nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(300), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class OperationLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(80), nullable=True)
    action = db.Column(db.String(20), nullable=False)
    module = db.Column(db.String(40), nullable=False)
    target = db.Column(db.String(200), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(300), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
