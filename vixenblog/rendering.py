"""Turns stored post content (Markdown or editor HTML) into display HTML.

Only structural changes are made: heading anchors for the table of contents,
lazy image loading and removal of auto-links inside code. This is not a
sanitizer; the HTML is rendered as trusted output by the front end.
"""
import html as htmllib
import math
import re
from dataclasses import dataclass, field

import markdown

MARKDOWN_EXTENSIONS = ['extra', 'sane_lists']

# One rate for the public page and the admin preview; counts characters so CJK text is measured sensibly
READING_CHARS_PER_MINUTE = 500

_TAG_RE = re.compile(r'<[^>]*>')
_WHITESPACE_RE = re.compile(r'\s+')
_GENERIC_TAG_RE = re.compile(r'<[a-z][\s\S]*>', re.IGNORECASE)
_HEADING_RE = re.compile(r'<h([1-3])>(.*?)</h\1>', re.IGNORECASE)
_IMG_RE = re.compile(r'<img\b(?![^>]*\bloading=)', re.IGNORECASE)
_WRAPPED_MARKDOWN_RE = re.compile(r'<p>\s*(#{1,6}\s|```|-\s)', re.IGNORECASE)
_FENCE_RE = re.compile(r'```([\s\S]*?)```')
_PRE_RE = re.compile(r'(<pre[^>]*>)([\s\S]*?)(</pre>)', re.IGNORECASE)
_CODE_LINK_RE = re.compile(r'<a[^>]*>([^<]*)</a>', re.IGNORECASE)


@dataclass
class TocItem:
    id: str
    text: str
    level: int

    def to_dict(self):
        return {'id': self.id, 'text': self.text, 'level': self.level}


@dataclass
class RenderedContent:
    html: str
    toc: list = field(default_factory=list)
    reading_time: int = 1

    def to_dict(self):
        return {
            'html': self.html,
            'toc': [item.to_dict() for item in self.toc],
            'readingTime': self.reading_time,
        }


def strip_tags(text):
    return _TAG_RE.sub('', text or '')


def is_html(content):
    """Editor output is HTML, anything else is treated as Markdown source."""
    if not content or not _GENERIC_TAG_RE.search(content):
        return False
    return '<p>' in content or '<h' in content or '<div' in content


def reading_time(content):
    """Minutes to read, rounded up, never less than one."""
    text = _WHITESPACE_RE.sub('', strip_tags(content))
    return max(1, math.ceil(len(text) / READING_CHARS_PER_MINUTE))


def _unwrap_markdown(content):
    # Rich-text editors sometimes wrap pasted Markdown in <p> tags
    if not _WRAPPED_MARKDOWN_RE.search(content):
        return content
    content = re.sub(r'<p>', '', content, flags=re.IGNORECASE)
    content = re.sub(r'</p>', '\n', content, flags=re.IGNORECASE)
    content = re.sub(r'<br\s*/?>', '\n', content, flags=re.IGNORECASE)
    return content.strip()


def _strip_code_links(content):
    def fence(match):
        return '```' + _CODE_LINK_RE.sub(r'\1', match.group(1)) + '```'
    return _FENCE_RE.sub(fence, content)


def _strip_pre_links(html):
    def pre(match):
        return match.group(1) + _CODE_LINK_RE.sub(r'\1', match.group(2)) + match.group(3)
    return _PRE_RE.sub(pre, html)


def markdown_to_html(text):
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS, output_format='html')


def add_heading_ids(html):
    """Give h1-h3 sequential ``heading-N`` ids; returns (html, toc)."""
    toc = []

    def replace(match):
        level, inner = match.group(1), match.group(2)
        heading_id = f"heading-{len(toc)}"
        toc.append(TocItem(heading_id, htmllib.unescape(strip_tags(inner)).strip(), int(level)))
        return f'<h{level} id="{heading_id}">{inner}</h{level}>'

    return _HEADING_RE.sub(replace, html), toc


def lazy_load_images(html):
    return _IMG_RE.sub('<img loading="lazy"', html)


def render_content(content):
    if not content:
        return RenderedContent(html='', toc=[], reading_time=1)

    source = _strip_code_links(_unwrap_markdown(content))
    if is_html(source):
        html = _strip_pre_links(source)
    else:
        html = markdown_to_html(source)

    html, toc = add_heading_ids(html)
    html = lazy_load_images(html)
    return RenderedContent(html=html, toc=toc, reading_time=reading_time(content))


def extract_excerpt(content, max_length=150):
    """Plain-text excerpt of Markdown or HTML content, cut on a word boundary."""
    text = strip_tags(content or '')
    # Remove headers (lines starting with #)
    text = re.sub(r'^#+ .*$', '', text, flags=re.MULTILINE)
    text = re.sub(r'```.*?```', '', text, flags=re.DOTALL)
    # Images and links: ![alt](url) and [text](url) keep only the text
    text = re.sub(r'!\[.*?\]\(.*?\)', '', text)
    text = re.sub(r'\[(.*?)\]\(.*?\)', r'\1', text)
    text = re.sub(r'([*_~`])\1*(.*?)\1*\1', r'\2', text)
    text = re.sub(r'^> ?', '', text, flags=re.MULTILINE)
    text = re.sub(r'^[-*_]{3,}\s*$', '', text, flags=re.MULTILINE)
    text = re.sub(r'^(\s*)[-*+]\s+', r'\1', text, flags=re.MULTILINE)
    text = re.sub(r'^(\s*)\d+\.\s+', r'\1', text, flags=re.MULTILINE)
    text = htmllib.unescape(text)

    text = _WHITESPACE_RE.sub(' ', text).strip()
    if len(text) <= max_length:
        return text

    summary = text[:max_length]
    # Avoid breaking a word when there is a space to cut on (CJK text has none)
    last_space = summary.rfind(' ')
    if last_space > max_length // 2:
        summary = summary[:last_space]
    return summary.rstrip() + '...'
