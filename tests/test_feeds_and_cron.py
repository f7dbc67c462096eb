"""
RSS / sitemap switches and the cron publish endpoint.
"""
from datetime import timedelta

from vixenblog.extensions import db
from vixenblog.models import Post, utcnow
from vixenblog.site_settings import save_settings


class TestFeeds:

    def test_disabled_by_default(self, client):
        assert client.get('/feed.xml').status_code == 404
        assert client.get('/sitemap.xml').status_code == 404

    def test_rss(self, app, client, make_post):
        with app.app_context():
            save_settings({'enableRss': True, 'siteName': 'Test Blog', 'siteUrl': 'https://example.com'})
        make_post(title='Visible', content='Body with ]]> inside')
        make_post(title='Hidden', published=False)

        r = client.get('/feed.xml')
        assert r.status_code == 200
        assert r.mimetype == 'application/xml'
        body = r.get_data(as_text=True)
        assert '<rss version="2.0"' in body
        assert '<title>Test Blog</title>' in body
        assert '<link>https://example.com/posts/visible</link>' in body
        assert 'Hidden' not in body
        assert 'Body with ]]]]><![CDATA[> inside' in body

    def test_rss_limited_to_latest_twenty(self, app, client, make_post):
        with app.app_context():
            save_settings({'enableRss': True})
        for i in range(25):
            make_post(title=f'Entry {i}', published_at=utcnow() - timedelta(hours=i))

        body = client.get('/feed.xml').get_data(as_text=True)
        assert body.count('<item>') == 20
        assert 'entry-0<' in body and 'entry-24<' not in body

    def test_sitemap(self, app, client, make_post, taxonomy):
        with app.app_context():
            save_settings({'enableSitemap': 'true'})
        make_post(title='Mapped')

        body = client.get('/sitemap.xml').get_data(as_text=True)
        assert '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">' in body
        assert '<loc>http://blog.test/posts/mapped</loc>' in body
        assert '<loc>http://blog.test/category/tech</loc>' in body
        assert '<loc>http://blog.test/tag/python</loc>' in body


class TestCronPublish:

    def test_publishes_due_posts(self, app, client, make_post):
        due = make_post(title='Due', published=False, scheduled_at=utcnow() - timedelta(minutes=1))
        make_post(title='Later', published=False, scheduled_at=utcnow() + timedelta(hours=1))

        body = client.post('/api/cron/publish').get_json()
        assert body == {'success': True, 'published': 1, 'posts': [{'id': due.id, 'title': 'Due'}]}
        assert client.get('/api/cron/publish').get_json()['published'] == 0

        with app.app_context():
            assert db.session.get(Post, due.id).published is True

    def test_secret_required_when_configured(self, app, client, make_post):
        app.config['CRON_SECRET'] = 's3cret'
        make_post(title='Due', published=False, scheduled_at=utcnow() - timedelta(minutes=1))

        assert client.get('/api/cron/publish').status_code == 401
        assert client.get('/api/cron/publish', headers={'Authorization': 'Bearer wrong'}).status_code == 401

        r = client.get('/api/cron/publish', headers={'Authorization': 'Bearer s3cret'})
        assert r.status_code == 200
        assert r.get_json()['published'] == 1
