from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

from bloglint import html_utils, utils


def test_slugify_and_titleize_strip_date():
    assert utils.slugify("2024-01-02-post-title") == "post-title"
    assert utils.slugify("Mixed Case_Slug") == "mixed-case-slug"
    assert utils.slugify("!!!") == "index"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("privacy_policy.md") == "Privacy Policy"
    assert utils.strip_date_prefix("2024-01-02-hello") == "hello"
    assert utils.strip_date_prefix("hello-world") == "hello-world"


def test_extract_date_from_name():
    assert utils.extract_date_from_name("2024-01-15-cool") == datetime(2024, 1, 15)
    assert utils.extract_date_from_name("invalid") is None
    assert utils.extract_date_from_name("2024-13-32-post") is None
    assert utils.extract_date_from_name("2024-01-15") is None


def test_path_classification():
    assert utils.is_internal_path(Path("_layouts/post.html"))
    assert utils.is_internal_path(Path("blog/_posts/a.md"))
    assert not utils.is_internal_path(Path("about.md"))
    assert utils.is_markdown(Path("a.MD"))
    assert utils.is_markdown(Path("a.markdown"))
    assert not utils.is_markdown(Path("a.html"))
    assert utils.is_html(Path("a.htm"))
    assert not utils.is_html(Path("a.txt"))


def test_number_prefixes_and_tags_index():
    assert utils.extract_number_from_name("01-intro") == 1
    assert utils.extract_number_from_name("2024-01-01-3-part") == 3
    assert utils.extract_number_from_name("2024-01-01-part") is None
    assert utils.extract_number_from_name("intro") is None
    assert utils.strip_number_prefix("01-intro") == "intro"
    assert utils.strip_number_prefix("2024-01-01-2-part") == "part"

    a = SimpleNamespace(tags=["python", "web"])
    b = SimpleNamespace(tags=["python"])
    index = utils.build_tags_index([a, b])
    assert index["python"] == [a, b]
    assert index["web"] == [a]


def test_html_helpers():
    text = '<a href="/about/">About</a><img data-src="lazy.png" src="x.png?a=1&amp;b=2">'
    assert html_utils.find_url_attributes(text) == ["/about/", "x.png?a=1&b=2"]
    assert html_utils.find_ids('<h2 id="intro">x</h2><a name="old"></a><p data-id="no">') == [
        "intro",
        "old",
    ]
    assert html_utils.is_skipped_url("mailto:me@example.com")
    assert html_utils.is_skipped_url(" JavaScript:void(0)")
    assert not html_utils.is_skipped_url("/about/")
    assert html_utils.strip_tags("<em>Hi</em> &amp; bye") == "Hi & bye"


def test_generate_heading_id_follows_kramdown():
    assert html_utils.generate_heading_id("Hello World!") == "hello-world"
    assert html_utils.generate_heading_id("<code>Setup</code> guide") == "setup-guide"
    assert html_utils.generate_heading_id("1. Introduction") == "introduction"
    assert html_utils.generate_heading_id("???") == "section"


def test_join_root_url():
    assert html_utils.join_root_url("https://example.com", "/about") == "https://example.com/about"
    assert html_utils.join_root_url("https://example.com/", "about") == "https://example.com/about"
    assert html_utils.join_root_url("", "about") == "/about"
    assert html_utils.join_root_url("/blog", "/css/main.css") == "/blog/css/main.css"
