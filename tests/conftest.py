"""
Shared pytest fixtures: a throwaway SQLite app, API clients and data factories.

The app fixture does not keep an application context pushed, so every test
client request gets its own ``g`` (settings cache, logged-in user) exactly as
in production. Tests that talk to the database directly use ``ctx``.
"""
from types import SimpleNamespace

import pytest

from vixenblog import create_app
from vixenblog.extensions import db
from vixenblog.models import Category, Comment, Post, Series, Tag, User, utcnow
from vixenblog.slugs import generate_slug

ADMIN_NAME = 'admin'
ADMIN_PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    app = create_app(
        TESTING=True,
        SECRET_KEY='test-secret',
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'blog.db'}",
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
        SITE_URL='http://blog.test',
        RESEND_API_KEY=None,
        ADMIN_EMAIL=None,
        CRON_SECRET=None,
        MAIL_SYNC=True,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """An application context for tests that call services directly."""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app):
    with app.app_context():
        user = User(name=ADMIN_NAME, email='admin@blog.test', role='admin')
        user.set_password(ADMIN_PASSWORD)
        db.session.add(user)
        db.session.commit()
        return SimpleNamespace(id=user.id, name=user.name, email=user.email)


@pytest.fixture
def admin_client(app, admin_user):
    client = app.test_client()
    r = client.post('/api/auth/login', json={'username': ADMIN_NAME, 'password': ADMIN_PASSWORD})
    assert r.status_code == 200, r.get_json()
    return client


@pytest.fixture
def make_post(app):
    """Insert a post straight into the database; returns its id and slug."""
    def _make(title='Hello World', content='# Hello\n\nWorld', slug=None, published=True,
              published_at=None, scheduled_at=None, **extra):
        with app.app_context():
            post = Post(
                title=title,
                slug=slug or generate_slug(title),
                content=content,
                published=published,
                published_at=published_at or (utcnow() if published else None),
                scheduled_at=scheduled_at,
                **extra,
            )
            db.session.add(post)
            db.session.commit()
            return SimpleNamespace(id=post.id, slug=post.slug)
    return _make


@pytest.fixture
def make_comment(app):
    def _make(post_id, content='Nice post', approved=True, parent_id=None,
              author='Visitor', email='visitor@example.com'):
        with app.app_context():
            comment = Comment(post_id=post_id, parent_id=parent_id, author=author,
                              email=email, content=content, approved=approved)
            db.session.add(comment)
            db.session.commit()
            return comment.id
    return _make


@pytest.fixture
def taxonomy(app):
    """One category, two tags and a series."""
    with app.app_context():
        category = Category(name='技术', slug='tech')
        python = Tag(name='Python', slug='python')
        flask = Tag(name='Flask', slug='flask')
        series = Series(name='Flask 入门', slug='flask-getting-started')
        db.session.add_all([category, python, flask, series])
        db.session.commit()
        return SimpleNamespace(category_id=category.id, tag_ids=[python.id, flask.id], series_id=series.id)