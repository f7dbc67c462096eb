"""
Typed site settings and the Resend mailer.
"""
import pytest
import requests

from vixenblog import mailer
from vixenblog.extensions import db
from vixenblog.models import Comment, Post, Setting
from vixenblog.site_settings import SiteSettings, load_settings, parse_bool, parse_int, save_settings, setting_key


class TestParsing:

    @pytest.mark.parametrize('raw, expected', [
        ('true', True), ('TRUE', True), ('1', True), ('yes', True), (' on ', True),
        ('false', False), ('0', False), ('enabled', False), ('', False),
    ])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_parse_bool_default_for_missing(self):
        assert parse_bool(None, default=True) is True

    def test_parse_int(self):
        assert parse_int('25', 10, 1, 50) == 25
        assert parse_int('abc', 10, 1, 50) == 10
        assert parse_int('0', 10, 1, 50) == 1
        assert parse_int('99', 10, 1, 50) == 50

    def test_setting_key(self):
        assert setting_key('posts_per_page') == 'postsPerPage'
        assert setting_key('site_icp') == 'siteIcp'


class TestSiteSettings:

    def test_defaults_when_empty(self):
        settings = SiteSettings.from_rows({})
        assert settings.enable_comments is True
        assert settings.enable_rss is False
        assert settings.posts_per_page == 10

    def test_from_rows(self):
        settings = SiteSettings.from_rows({'enableRss': 'true', 'postsPerPage': 'lots', 'siteName': 'X'})
        assert settings.enable_rss is True
        assert settings.posts_per_page == 10
        assert settings.site_name == 'X'

    def test_save_invalidates_cache(self, ctx):
        assert load_settings().site_name == 'VixenAhri Blog'
        changed = save_settings({'siteName': 'Renamed', 'unknown': 'ignored'})
        assert changed == ['siteName']
        assert load_settings().site_name == 'Renamed'
        assert db.session.query(Setting).count() == 1

    def test_save_reports_only_changes(self, ctx):
        save_settings({'enableRss': True})
        assert save_settings({'enableRss': True}) == []
        assert db.session.query(Setting).filter_by(key='enableRss').one().value == 'true'


class FakeResponse:

    def __init__(self, status=200, payload=None):
        self.status_code = status
        self.payload = payload or {'id': 'email_123'}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        return self.payload


class TestMailer:

    @pytest.fixture
    def sent(self, app, monkeypatch):
        app.config.update(RESEND_API_KEY='re_test', ADMIN_EMAIL='owner@example.com', MAIL_SYNC=True)
        calls = []

        def fake_post(url, headers=None, json=None, timeout=None):
            calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
            return FakeResponse()

        monkeypatch.setattr(mailer.requests, 'post', fake_post)
        return calls

    def test_no_api_key_is_noop(self, ctx, monkeypatch):
        monkeypatch.setattr(mailer.requests, 'post', lambda *a, **k: pytest.fail('should not send'))
        assert mailer.send_email('a@example.com', 'Hi', '<p>Hi</p>') is None

    def test_send(self, ctx, sent):
        result = mailer.send_email('a@example.com', 'Hi', '<p>Hi</p>')
        assert result == {'success': True, 'data': {'id': 'email_123'}}
        assert sent[0]['headers'] == {'Authorization': 'Bearer re_test'}
        assert sent[0]['json']['to'] == ['a@example.com']
        assert sent[0]['timeout'] == mailer.REQUEST_TIMEOUT

    def test_failure_reported_not_raised(self, ctx, app, monkeypatch):
        app.config.update(RESEND_API_KEY='re_test', MAIL_SYNC=True)
        monkeypatch.setattr(mailer.requests, 'post', lambda *a, **k: FakeResponse(status=500))
        result = mailer.send_email('a@example.com', 'Hi', '<p>Hi</p>')
        assert result['success'] is False

    def test_new_comment_notification_escapes_content(self, ctx, sent, make_post):
        post = db.session.get(Post, make_post(title='Hello').id)
        comment = Comment(post_id=post.id, author='Eve', email='eve@example.com', content='<script>x</script>')

        mailer.notify_new_comment(post, comment)

        message = sent[0]['json']
        assert message['to'] == ['owner@example.com']
        assert 'Hello' in message['subject']
        assert '&lt;script&gt;' in message['html']
        assert 'http://blog.test/posts/hello' in message['html']

    def test_reply_notification_goes_to_parent_author(self, ctx, sent, make_post, make_comment):
        post_id = make_post(title='Hello').id
        parent = db.session.get(Comment, make_comment(post_id, 'Question?', email='asker@example.com'))
        reply = Comment(post_id=post_id, parent_id=parent.id, author='Admin', email='a@b.c', content='Answer.')

        mailer.notify_comment_reply(parent, reply)
        assert sent[0]['json']['to'] == ['asker@example.com']
        assert 'Answer.' in sent[0]['json']['html']
