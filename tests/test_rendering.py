"""
Content renderer tests: format sniffing, heading anchors, lazy images, reading time.
"""
import pytest

from vixenblog.rendering import (
    READING_CHARS_PER_MINUTE,
    add_heading_ids,
    extract_excerpt,
    is_html,
    reading_time,
    render_content,
)


class TestIsHtml:

    @pytest.mark.parametrize('content', [
        '<p>Hello</p>',
        '<h2>Title</h2><p>body</p>',
        '<div class="x">block</div>',
    ])
    def test_editor_html(self, content):
        assert is_html(content)

    @pytest.mark.parametrize('content', [
        '',
        None,
        '# Title\n\nSome *markdown*',
        'a < b and c > d',
        '<span>inline only</span>',
    ])
    def test_markdown(self, content):
        assert not is_html(content)


class TestRenderMarkdown:

    def test_heading_gets_id_and_toc_entry(self):
        result = render_content('# Hello\n\nWorld')
        assert '<h1 id="heading-0">Hello</h1>' in result.html
        assert '<p>World</p>' in result.html
        assert [item.to_dict() for item in result.toc] == [{'id': 'heading-0', 'text': 'Hello', 'level': 1}]

    def test_headings_numbered_in_document_order(self):
        result = render_content('# One\n\n## Two\n\n### Three\n\n#### Four')
        assert [(t.id, t.text, t.level) for t in result.toc] == [
            ('heading-0', 'One', 1),
            ('heading-1', 'Two', 2),
            ('heading-2', 'Three', 3),
        ]
        assert '<h4>Four</h4>' in result.html

    def test_toc_text_is_plain(self):
        result = render_content('## Use `pip` & *friends*')
        assert result.toc[0].text == 'Use pip & friends'

    def test_fenced_code(self):
        result = render_content('```\nprint("hi")\n```')
        assert '<pre>' in result.html and '<code>' in result.html

    def test_images_are_lazy(self):
        result = render_content('![alt](/uploads/a.png)')
        assert 'loading="lazy"' in result.html

    def test_to_dict_keys(self):
        data = render_content('# Hi').to_dict()
        assert set(data) == {'html', 'toc', 'readingTime'}


class TestRenderHtml:

    def test_html_passes_through_with_ids(self):
        result = render_content('<h2>Intro</h2><p>Text</p><h3>Detail</h3>')
        assert result.html.startswith('<h2 id="heading-0">Intro</h2><p>Text</p>')
        assert '<h3 id="heading-1">Detail</h3>' in result.html
        assert [t.level for t in result.toc] == [2, 3]

    def test_existing_loading_attribute_kept(self):
        html = '<p><img src="a.png" loading="eager"><img src="b.png"></p>'
        result = render_content(html)
        assert result.html.count('loading=') == 2
        assert 'loading="eager"' in result.html

    def test_links_inside_pre_are_unwrapped(self):
        html = '<p>x</p><pre><code>see <a href="http://a.b">http://a.b</a></code></pre>'
        assert '<a ' not in render_content(html).html

    def test_markdown_wrapped_in_paragraphs(self):
        result = render_content('<p>## Pasted</p><p>text</p>')
        assert '<h2 id="heading-0">Pasted</h2>' in result.html


class TestAddHeadingIds:

    def test_no_headings(self):
        html, toc = add_heading_ids('<p>plain</p>')
        assert html == '<p>plain</p>'
        assert toc == []


class TestReadingTime:

    def test_minimum_one_minute(self):
        assert reading_time('') == 1
        assert reading_time('short') == 1

    def test_rounds_up(self):
        assert reading_time('字' * (READING_CHARS_PER_MINUTE + 1)) == 2

    def test_ignores_markup_and_whitespace(self):
        text = '<p>' + ' a' * READING_CHARS_PER_MINUTE + '</p>'
        assert reading_time(text) == 1

    def test_empty_render(self):
        result = render_content('')
        assert result.html == '' and result.toc == [] and result.reading_time == 1


class TestExtractExcerpt:

    def test_strips_markdown(self):
        assert extract_excerpt('# Title\n\nSome **bold** and [a link](http://x).') == 'Some bold and a link.'

    def test_strips_html(self):
        assert extract_excerpt('<p>Hello &amp; welcome</p>') == 'Hello & welcome'

    def test_truncates_on_word_boundary(self):
        excerpt = extract_excerpt('word ' * 100, max_length=50)
        assert excerpt.endswith('...')
        assert len(excerpt) <= 53
        assert 'wor...' not in excerpt
