"""Tests for HTML extraction into CrawledPage."""

import json

from conftest import html_page

ROOT = "https://example.com/"


def extract(html: str, url: str = "https://example.com/guide", **kwargs):
    from siteaudit.modules.technical_audit.extractor import PageExtractor

    return PageExtractor(ROOT).extract(html, url, **kwargs)


# ===========================================================================
# Head fields
# ===========================================================================
class TestHeadFields:

    def test_title_and_meta(self):
        head = (
            '<meta name="Description" content="  A  guide to   trail shoes. ">'
            '<meta name="keywords" content="trail, shoes">'
            '<meta name="robots" content="noindex, follow">'
            '<meta property="og:title" content="Trail Guide">'
            '<meta property="og:type" content="article">'
        )
        page = extract(html_page(title="  Trail   Guide \n", head=head))
        assert page.title == "Trail Guide"
        assert page.meta_description == "A guide to trail shoes."
        assert page.meta_keywords == "trail, shoes"
        assert page.robots_directive == "noindex, follow"
        assert page.og_tags == (("og:title", "Trail Guide"), ("og:type", "article"))
        assert page.og("og:type") == "article"
        assert page.lang == "en"

    def test_missing_fields_are_none(self):
        page = extract("<html><body><p>hello</p></body></html>")
        assert page.title is None
        assert page.meta_description is None
        assert page.canonical_url is None
        assert page.robots_directive is None
        assert page.lang is None

    def test_empty_title_is_none(self):
        page = extract("<html><head><title>   </title></head><body></body></html>")
        assert page.title is None

    def test_canonical_resolved_and_canonicalized(self):
        head = '<link rel="canonical" href="/Guide/?ref=nav">'
        page = extract(html_page(head=head))
        assert page.canonical_url == "https://example.com/Guide"

    def test_page_url_canonicalized(self):
        page = extract(html_page(), url="HTTPS://Example.com/guide/#top")
        assert page.url == "https://example.com/guide"

    def test_transport_fields_carried(self):
        html = html_page(body="<p>x</p>")
        page = extract(html, status_code=200, load_time_ms=321, depth=2, content_type="text/html; charset=utf-8")
        assert page.status_code == 200
        assert page.load_time_ms == 321
        assert page.depth == 2
        assert page.content_type == "text/html; charset=utf-8"
        assert page.html_size == len(html.encode("utf-8"))


# ===========================================================================
# Headings and text
# ===========================================================================
class TestHeadingsAndText:

    def test_headings_in_document_order(self):
        body = "<h2>Intro</h2><h1>Main  Topic</h1><h3>Detail</h3><h1>Second</h1>"
        page = extract(html_page(body=body))
        assert [(h.level, h.text) for h in page.headings] == [
            (2, "Intro"), (1, "Main Topic"), (3, "Detail"), (1, "Second"),
        ]
        assert page.h1 == ("Main Topic", "Second")

    def test_word_count_ignores_scripts_and_styles(self):
        body = (
            "<p>one two three</p>"
            "<script>var hidden = 'four five six';</script>"
            "<style>.x { color: red; }</style>"
            "<noscript>seven eight</noscript>"
            "<p>nine</p>"
        )
        page = extract(html_page(title="Ignored Title", body=body))
        assert page.word_count == 4


# ===========================================================================
# Images and links
# ===========================================================================
class TestImagesAndLinks:

    def test_images(self):
        body = (
            '<img src="/img/red-trail-shoe.jpg" alt="Red shoe" width="640" height="480px">'
            '<img src="/img/logo.png">'
            '<img data-src="/img/lazy.webp" alt="">'
            '<img src="/img/later.jpg" loading="lazy" alt="Later">'
            "<img>"
        )
        page = extract(html_page(body=body))
        assert len(page.images) == 4
        first, second, third, fourth = page.images
        assert first.src == "https://example.com/img/red-trail-shoe.jpg"
        assert first.alt == "Red shoe" and first.has_alt
        assert (first.width, first.height) == (640, 480)
        assert second.alt is None and not second.has_alt
        assert third.is_lazy and third.alt == "" and not third.has_alt
        assert fourth.is_lazy and fourth.has_alt

    def test_links_resolved_deduped_and_classified(self):
        links = (
            ("/about/", "About us"),
            ("https://example.com/about#team", "Team"),
            ("https://blog.example.com/post", "Blog"),
            ("https://other.org/", "Elsewhere"),
            ("mailto:hi@example.com", "Mail"),
            ("#top", "Top"),
            ("javascript:void(0)", "JS"),
        )
        page = extract(html_page(links=links))
        assert [(link.href, link.is_internal, link.anchor_text) for link in page.links] == [
            ("https://example.com/about", True, "About us"),
            ("https://blog.example.com/post", True, "Blog"),
            ("https://other.org/", False, "Elsewhere"),
        ]
        assert [link.href for link in page.internal_links] == [
            "https://example.com/about", "https://blog.example.com/post",
        ]
        assert [link.href for link in page.external_links] == ["https://other.org/"]

    def test_nofollow_and_image_anchor(self):
        body = (
            '<a href="/shop" rel="nofollow sponsored">Shop</a>'
            '<a href="/home"><img src="/logo.png" alt="Home logo"></a>'
            '<a href="/empty"></a>'
        )
        page = extract(html_page(body=body))
        shop, home, empty = page.links
        assert shop.is_nofollow
        assert home.anchor_text == "Home logo" and not home.is_nofollow
        assert empty.anchor_text == ""

    def test_base_href(self):
        head = '<base href="https://example.com/docs/">'
        page = extract(html_page(head=head, links=(("intro", "Intro"),)))
        assert page.links[0].href == "https://example.com/docs/intro"


# ===========================================================================
# Structured data
# ===========================================================================
class TestSchemaTypes:

    def test_json_ld_and_microdata(self):
        graph = {"@context": "https://schema.org", "@graph": [
            {"@type": "WebPage"}, {"@type": ["Organization", "Brand"]},
        ]}
        faq = {"@type": "FAQPage"}
        head = (
            f'<script type="application/ld+json">{json.dumps(graph)}</script>'
            f'<script type="application/ld+json">{json.dumps([faq, {"@type": "WebPage"}])}</script>'
            '<script type="application/ld+json">{not json</script>'
        )
        body = '<div itemscope itemtype="https://schema.org/Product"><span>Shoe</span></div>'
        page = extract(html_page(head=head, body=body))
        assert page.schema_types == ("WebPage", "Organization", "Brand", "FAQPage", "Product")

    def test_no_schema(self):
        assert extract(html_page()).schema_types == ()


# ===========================================================================
# Robustness
# ===========================================================================
class TestRobustness:

    def test_garbage_input_does_not_raise(self):
        page = extract("<<<>>> <html <body </p> \x00 unterminated")
        assert page.url == "https://example.com/guide"
        assert page.status_code == 200

    def test_parser_failure_yields_empty_page(self, monkeypatch):
        from siteaudit.modules.technical_audit import extractor as extractor_mod

        def boom(*args, **kwargs):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(extractor_mod, "BeautifulSoup", boom)
        page = extract(html_page(title="Anything"))
        assert page.title is None
        assert page.links == ()
        assert page.word_count == 0
        assert page.html_size > 0

    def test_deeply_nested_json_ld_keeps_other_fields(self):
        nested = "[" * 100000 + "]" * 100000
        body = (
            '<h1>Heading</h1>'
            f'<script type="application/ld+json">{nested}</script>'
            '<script type="application/ld+json">{"@type": "Article"}</script>'
        )
        page = extract(html_page("Real Title", body=body, links=(("/about", "About"),)))

        assert page.title == "Real Title"
        assert page.h1 == ("Heading",)
        assert [link.href for link in page.links] == ["https://example.com/about"]
        assert page.schema_types == ("Article",)
        assert page.word_count > 0

    def test_failing_field_leaves_the_rest(self, monkeypatch):
        from siteaudit.modules.technical_audit.extractor import PageExtractor

        def boom(soup):
            raise RuntimeError("og parsing exploded")

        monkeypatch.setattr(PageExtractor, "_og_tags", staticmethod(boom))
        page = extract(html_page("Real Title", body="<h1>Heading</h1>", links=(("/about", "About"),)))

        assert page.og_tags == ()
        assert page.title == "Real Title"
        assert page.h1 == ("Heading",)
        assert len(page.links) == 1
