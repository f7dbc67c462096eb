"""
Flask CLI commands.
"""
from datetime import timedelta

from vixenblog.extensions import db
from vixenblog.models import Category, Post, Setting, User, utcnow


def test_seed_is_repeatable(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['seed'])
    assert result.exit_code == 0, result.output
    assert runner.invoke(args=['seed']).exit_code == 0

    with app.app_context():
        assert db.session.query(User).count() == 1
        assert {c.slug for c in db.session.query(Category)} == {'tech', 'life', 'projects'}
        welcome = db.session.query(Post).filter_by(slug='welcome').one()
        assert welcome.published and welcome.published_at is not None
        assert db.session.query(Setting).filter_by(key='enableComments').one().value == 'true'


def test_create_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['create-admin', '--name', 'root', '--email', 'root@example.com',
                                 '--password', 'longenough'])
    assert result.exit_code == 0, result.output
    assert "created successfully" in result.output

    result = runner.invoke(args=['create-admin', '--name', 'root', '--email', 'root@example.com',
                                 '--password', 'longenough'])
    assert 'already exists' in result.output


def test_create_admin_short_password(app):
    result = app.test_cli_runner().invoke(args=['create-admin', '--name', 'x', '--email', 'x@example.com',
                                                '--password', '123'])
    assert result.exit_code != 0


def test_publish_scheduled(app, make_post):
    make_post(title='Queued', published=False, scheduled_at=utcnow() - timedelta(minutes=1))
    result = app.test_cli_runner().invoke(args=['publish-scheduled'])
    assert result.exit_code == 0
    assert 'Published: Queued (queued)' in result.output
    assert '1 post(s) published.' in result.output
