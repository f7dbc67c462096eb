"""RSS 2.0 feed and XML sitemap, each switched on from the site settings."""
from datetime import timezone
from email.utils import format_datetime

from flask import Blueprint, current_app, request
from markupsafe import escape
from sqlalchemy import select

from ..errors import NotFoundError
from ..extensions import db
from ..models import Category, Post, Tag, utcnow
from ..rendering import extract_excerpt
from ..site_settings import load_settings

feeds_bp = Blueprint('feeds', __name__)

FEED_SIZE = 20


def _rfc2822(dt):
    return format_datetime((dt or utcnow()).replace(tzinfo=timezone.utc))


def _w3c_date(dt):
    return (dt or utcnow()).strftime('%Y-%m-%d')


def _base_url(settings):
    return (settings.site_url or current_app.config.get('SITE_URL') or request.url_root).rstrip('/')


def _xml_response(body):
    response = current_app.response_class(body, mimetype='application/xml')
    response.headers['Cache-Control'] = 'public, max-age=3600'
    return response


def _cdata(text):
    # "]]>" cannot appear inside a CDATA section
    return '<![CDATA[' + (text or '').replace(']]>', ']]]]><![CDATA[>') + ']]>'


@feeds_bp.route('/feed.xml')
def rss_feed():
    settings = load_settings()
    if not settings.enable_rss:
        raise NotFoundError('RSS feed is disabled')

    base_url = _base_url(settings)
    posts = db.session.scalars(
        select(Post).where(Post.published.is_(True)).order_by(Post.published_at.desc()).limit(FEED_SIZE)
    ).all()

    items = []
    for post in posts:
        link = f"{base_url}/posts/{post.slug}"
        author = post.author.name if post.author else settings.site_author
        items.append(f"""
    <item>
      <title>{_cdata(post.title)}</title>
      <link>{escape(link)}</link>
      <guid isPermaLink="true">{escape(link)}</guid>
      <description>{_cdata(post.excerpt or extract_excerpt(post.content, 200))}</description>
      <pubDate>{_rfc2822(post.published_at)}</pubDate>
      <author>{escape(author or settings.site_name)}</author>
    </item>""")

    xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>{escape(settings.site_name)}</title>
    <link>{escape(base_url)}</link>
    <description>{escape(settings.site_description or settings.site_name)}</description>
    <language>zh-CN</language>
    <lastBuildDate>{_rfc2822(None)}</lastBuildDate>
    <atom:link href="{escape(base_url)}/feed.xml" rel="self" type="application/rss+xml"/>{"".join(items)}
  </channel>
</rss>"""
    return _xml_response(xml)


@feeds_bp.route('/sitemap.xml')
def sitemap():
    settings = load_settings()
    if not settings.enable_sitemap:
        raise NotFoundError('Sitemap is disabled')

    base_url = _base_url(settings)
    # (path, lastmod, changefreq, priority)
    entries = [
        ('', None, 'daily', '1.0'),
        ('/archive', None, 'weekly', '0.7'),
        ('/categories', None, 'weekly', '0.7'),
        ('/about', None, 'monthly', '0.5'),
    ]
    for post in db.session.scalars(select(Post).where(Post.published.is_(True)).order_by(Post.published_at.desc())):
        entries.append((f"/posts/{post.slug}", post.updated_at, 'weekly', '0.8'))
    for category in db.session.scalars(select(Category).order_by(Category.name)):
        entries.append((f"/category/{category.slug}", category.updated_at, 'weekly', '0.6'))
    for tag in db.session.scalars(select(Tag).order_by(Tag.name)):
        entries.append((f"/tag/{tag.slug}", tag.updated_at, 'weekly', '0.5'))

    urls = "".join(f"""
  <url>
    <loc>{escape(base_url + path)}</loc>
    <lastmod>{_w3c_date(lastmod)}</lastmod>
    <changefreq>{changefreq}</changefreq>
    <priority>{priority}</priority>
  </url>""" for path, lastmod, changefreq, priority in entries)

    xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}
</urlset>"""
    return _xml_response(xml)
