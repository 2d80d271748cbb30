from pathlib import Path

from bloglint.check import DEFAULT_CONFIG
from bloglint.collections import SiteIndex
from bloglint.content import ContentProcessor
from bloglint.links import LinkRule
from bloglint.protocols import Rule
from bloglint.rules import (
    ERROR,
    WARNING,
    DuplicateUrlRule,
    FieldTypesRule,
    ImageRule,
    Issue,
    LayoutRule,
    PermalinkRule,
    PostNameRule,
    RequiredFieldsRule,
    RuleRegistry,
    create_default_registry,
)


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def load_site(source: Path, config=None):
    config = config or {}
    documents = ContentProcessor(source, config).load()
    return documents, SiteIndex(documents, source, config)


def run_rule(rule, source: Path, config=None):
    documents, site = load_site(source, config)
    issues = []
    for document in documents:
        issues.extend(rule.check(document, site))
    return issues


def test_layout_rule_reports_missing_and_unknown(tmp_path):
    write(tmp_path / "none.md", "---\ntitle: No layout\n---\n")
    write(tmp_path / "odd.md", "---\ntitle: Odd\nlayout: fancy\n---\n")
    write(tmp_path / "known.md", "---\nlayout: wide\n---\n")
    write(tmp_path / "raw.md", "---\nlayout: none\n---\n")
    write(tmp_path / "_layouts" / "wide.html", "{{ content }}")

    issues = run_rule(LayoutRule(), tmp_path)
    by_code = {(i.path.name, i.code) for i in issues}
    assert by_code == {("none.md", "missing-layout"), ("odd.md", "unknown-layout")}
    assert all(i.severity == WARNING for i in issues)
    unknown = next(i for i in issues if i.code == "unknown-layout")
    assert unknown.line == 3


def test_required_fields_follow_layout(tmp_path):
    write(tmp_path / "_posts" / "2024-01-01-a.md", "---\nlayout: post\ntitle: A\ntags: []\n---\n")
    write(tmp_path / "_posts" / "2024-01-02-b.md", "---\nlayout: post\ntitle: B\nauthor: Ann\ntags: x\n---\n")
    write(tmp_path / "page.md", "---\nlayout: page\ntitle: '  '\n---\n")
    rule = RequiredFieldsRule(DEFAULT_CONFIG["bloglint"]["layouts"])

    issues = run_rule(rule, tmp_path)
    found = sorted((i.path.name, i.message) for i in issues)
    assert found == [
        ("2024-01-01-a.md", "Layout 'post' requires 'author'"),
        ("2024-01-01-a.md", "Layout 'post' requires 'tags'"),
        ("page.md", "Layout 'page' requires 'title'"),
    ]
    assert all(i.code == "missing-field" and i.is_error for i in issues)
    tags_issue = next(i for i in issues if "'tags'" in i.message)
    assert tags_issue.line == 4
    author_issue = next(i for i in issues if "'author'" in i.message)
    assert author_issue.line == 1


def test_required_fields_count_defaults(tmp_path):
    write(tmp_path / "_posts" / "2024-01-01-a.md", "---\ntitle: A\ntags: [x]\n---\n")
    config = {
        "defaults": [
            {"scope": {"type": "posts"}, "values": {"layout": "post", "author": "Site Owner"}}
        ]
    }
    rule = RequiredFieldsRule({"post": {"required": ["title", "author", "tags"]}})
    assert run_rule(rule, tmp_path, config) == []
    assert rule.required_for("unknown") == []


def test_field_types_rule(tmp_path):
    write(
        tmp_path / "bad.md",
        "---\nlayout: [a]\ntitle: 2024\ntags: {a: 1}\nnav_exclude: 'yes'\ndate: soon\n---\n",
    )
    write(tmp_path / "good.md", "---\nlayout: page\ntags: [a, 1]\npublished: true\ndate: 2024-01-01\n---\n")

    issues = run_rule(FieldTypesRule(), tmp_path)
    assert {i.path.name for i in issues} == {"bad.md"}
    fields = {i.message.split("'")[1] for i in issues}
    assert fields == {"layout", "tags", "nav_exclude", "date"}
    assert all(i.code == "invalid-field" for i in issues)
    nav = next(i for i in issues if "'nav_exclude'" in i.message)
    assert nav.line == 5
    assert "must be true or false" in nav.message


def test_permalink_rule(tmp_path):
    write(tmp_path / "a.md", "---\npermalink: about/\n---\n")
    write(tmp_path / "b.md", "---\npermalink: /b/\n---\n")
    issues = run_rule(PermalinkRule(), tmp_path)
    assert len(issues) == 1
    assert issues[0].path.name == "a.md"
    assert issues[0].code == "invalid-permalink"
    assert issues[0].line == 2


def test_image_rule(tmp_path):
    write(tmp_path / "assets" / "img" / "hero.png", "png")
    write(tmp_path / "ok.md", "---\nimage: /assets/img/hero.png\n---\n")
    write(tmp_path / "relative.md", "---\nimage: assets/img/hero.png\n---\n")
    write(tmp_path / "base.md", "---\nimage: /blog/assets/img/hero.png\n---\n")
    write(tmp_path / "remote.md", "---\nimage: https://cdn.example.com/x.png\n---\n")
    write(tmp_path / "liquid.md", "---\nimage: '{{ site.logo }}'\n---\n")
    write(tmp_path / "missing.md", "---\ntitle: M\nimage: /assets/img/nope.png\n---\n")

    issues = run_rule(ImageRule(), tmp_path, {"baseurl": "/blog"})
    assert [(i.path.name, i.code, i.line) for i in issues] == [
        ("missing.md", "missing-image", 3)
    ]


def test_post_name_rule(tmp_path):
    write(tmp_path / "_posts" / "2024-01-01-ok.md", "---\n---\n")
    write(tmp_path / "_posts" / "no-date.md", "---\n---\n")
    write(tmp_path / "_posts" / "2024-02-30-bad.md", "---\n---\n")
    write(tmp_path / "page.md", "---\n---\n")
    issues = run_rule(PostNameRule(), tmp_path)
    assert sorted(i.path.name for i in issues) == ["2024-02-30-bad.md", "no-date.md"]
    assert all(i.severity == WARNING for i in issues)


def test_duplicate_url_rule(tmp_path):
    write(tmp_path / "about.md", "---\ntitle: About\n---\n")
    write(tmp_path / "about-us.md", "---\npermalink: /about.html\n---\n")
    write(tmp_path / "other.md", "---\n---\n")
    issues = run_rule(DuplicateUrlRule(), tmp_path)
    assert sorted(i.path.name for i in issues) == ["about-us.md", "about.md"]
    clash = next(i for i in issues if i.path.name == "about.md")
    assert "about-us.md" in clash.message
    assert clash.code == "duplicate-url"


def test_issue_serialization_and_ordering(tmp_path):
    issue = Issue(tmp_path / "a" / "b.md", "broken-link", "nope", ERROR, 4)
    assert issue.to_dict(tmp_path) == {
        "path": "a/b.md",
        "line": 4,
        "code": "broken-link",
        "severity": "error",
        "message": "nope",
    }
    assert issue.to_dict(Path("/elsewhere"))["path"] == (tmp_path / "a" / "b.md").as_posix()

    first = Issue(Path("a.md"), "x", "m", WARNING, None)
    second = Issue(Path("a.md"), "x", "m", ERROR, 2)
    third = Issue(Path("b.md"), "a", "m", ERROR, 1)
    assert sorted([third, second, first], key=Issue.sort_key) == [first, second, third]
    assert not first.is_error


def test_registry_runs_rules_in_order(tmp_path):
    write(tmp_path / "a.md", "---\ntitle: A\n---\n")
    documents, site = load_site(tmp_path)

    class AlwaysRule:
        def check(self, document, site):
            yield Issue(document.path, "always", "always", WARNING, 1)

    rule = AlwaysRule()
    assert isinstance(rule, Rule)
    registry = RuleRegistry([LayoutRule()])
    registry.register(rule)
    assert registry.rules[-1] is rule
    issues = registry.run(documents, site)
    assert [i.code for i in issues] == ["always", "missing-layout"]


def test_default_registry_contents():
    registry = create_default_registry(DEFAULT_CONFIG)
    names = [type(rule).__name__ for rule in registry.rules]
    assert names == [
        "LayoutRule",
        "RequiredFieldsRule",
        "FieldTypesRule",
        "PermalinkRule",
        "ImageRule",
        "PostNameRule",
        "DuplicateUrlRule",
        "LinkRule",
    ]
    link_rule = registry.rules[-1]
    assert isinstance(link_rule, LinkRule)
    assert link_rule.external_checker is None

    with_external = create_default_registry(DEFAULT_CONFIG, check_external=True)
    assert with_external.rules[-1].external_checker is not None
