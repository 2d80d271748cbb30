from pathlib import Path

import pytest

from bloglint.check import (
    DEFAULT_CONFIG,
    CheckError,
    CheckResult,
    check_site,
    load_config,
)
from bloglint.rules import ERROR, WARNING, Issue, RuleRegistry


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_blog(root: Path) -> Path:
    write(
        root / "_config.yml",
        "title: My Blog\n"
        "baseurl: /blog\n"
        "url: https://example.com\n"
        "exclude: [README.md]\n"
        "defaults:\n"
        "  - scope: {path: '', type: posts}\n"
        "    values: {layout: post}\n",
    )
    write(root / "README.md", "# readme\n")
    write(root / "_layouts" / "post.html", "{{ content }}")
    write(root / "assets" / "hero.png", "png")
    write(
        root / "index.md",
        "---\nlayout: home\n---\n"
        "[Hello]({% post_url 2024-01-15-hello %}) [About]({{ site.baseurl }}/about/)\n",
    )
    write(root / "about.md", "---\nlayout: page\ntitle: About\npermalink: /about/\n---\n## Team\n")
    write(
        root / "_posts" / "2024-01-15-hello.md",
        "---\ntitle: Hello\nauthor: Ann\ntags: [python]\nimage: /assets/hero.png\n---\n"
        "See [team](/about/#team).\n",
    )
    return root


def test_load_config_merges_defaults(tmp_path):
    write(
        tmp_path / "_config.yml",
        "baseurl: /blog\n"
        "bloglint:\n"
        "  check_external: true\n"
        "  layouts:\n"
        "    post: {required: [title]}\n"
        "    talk: {required: [title, video]}\n",
    )
    config = load_config(tmp_path)
    assert config["baseurl"] == "/blog"
    assert config["permalink"] == "date"
    assert config["bloglint"]["check_external"] is True
    assert config["bloglint"]["layouts"]["post"] == {"required": ["title"]}
    assert config["bloglint"]["layouts"]["talk"] == {"required": ["title", "video"]}
    assert config["bloglint"]["layouts"]["page"] == {"required": ["title"]}
    assert config["bloglint"]["ignore_links"] == DEFAULT_CONFIG["bloglint"]["ignore_links"]
    # Defaults are never mutated
    assert DEFAULT_CONFIG["bloglint"]["check_external"] is False
    assert "talk" not in DEFAULT_CONFIG["bloglint"]["layouts"]


def test_load_config_without_file_and_with_bad_yaml(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG

    write(tmp_path / "_config.yml", "title: [broken\n")
    with pytest.raises(CheckError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.source_path == tmp_path / "_config.yml"
    assert excinfo.value.message.startswith("Invalid YAML")
    assert excinfo.value.original_error is not None


@pytest.mark.parametrize(
    ("layouts", "message"),
    [
        ("    post: [title]\n", "bloglint.layouts.post must be a mapping"),
        ("    post: {required: title}\n", "bloglint.layouts.post.required must be a list"),
        ("    - post\n", "bloglint.layouts must be a mapping"),
    ],
)
def test_load_config_rejects_malformed_layouts(tmp_path, layouts, message):
    write(tmp_path / "_config.yml", "bloglint:\n  layouts:\n" + layouts)
    with pytest.raises(CheckError) as excinfo:
        load_config(tmp_path)
    assert excinfo.value.source_path == tmp_path / "_config.yml"
    assert excinfo.value.message == message


def test_load_config_accepts_empty_layout_entry(tmp_path):
    write(tmp_path / "_config.yml", "bloglint:\n  layouts:\n    talk:\n")
    config = load_config(tmp_path)
    assert config["bloglint"]["layouts"]["talk"] == {}


def test_load_config_ignores_non_mapping(tmp_path, caplog):
    write(tmp_path / "_config.yml", "- a\n- b\n")
    with caplog.at_level("WARNING"):
        config = load_config(tmp_path)
    assert config == DEFAULT_CONFIG
    assert "not a mapping" in caplog.text


def test_check_site_clean_blog(tmp_path):
    root = create_blog(tmp_path)
    result = check_site(root)
    assert isinstance(result, CheckResult)
    assert result.issues == []
    assert result.ok
    assert not result.failed(strict=True)
    assert result.source_dir == root
    assert sorted(d.rel_path for d in result.documents) == [
        "_posts/2024-01-15-hello.md",
        "about.md",
        "index.md",
    ]


def test_check_site_reports_non_utf8_files(tmp_path):
    root = create_blog(tmp_path)
    legacy = root / "legacy.md"
    legacy.write_bytes(b"---\ntitle: caf\xe9\n---\n")

    result = check_site(root)
    assert result.issues == [
        Issue(legacy, "frontmatter-invalid", "File is not valid UTF-8", ERROR, None)
    ]
    assert not result.ok
    assert len(result.documents) == 3


def test_check_site_reports_problems(tmp_path):
    root = create_blog(tmp_path)
    write(root / "_posts" / "2024-02-01-broken.md", "---\ntitle: [oops\n---\n")
    write(
        root / "_posts" / "2024-02-02-lazy.md",
        "---\ntitle: Lazy\ntags: [x]\n---\n[gone](/gone/) [team](/about/#people)\n",
    )
    write(root / "_drafts" / "wip.md", "---\ntitle: WIP\n---\n[gone](/gone/)\n")

    result = check_site(root)
    codes = [(Path(i.path).name, i.code) for i in result.issues]
    assert codes == [
        ("2024-02-01-broken.md", "frontmatter-invalid"),
        ("2024-02-02-lazy.md", "missing-field"),
        ("2024-02-02-lazy.md", "broken-link"),
        ("2024-02-02-lazy.md", "missing-anchor"),
    ]
    assert len(result.errors) == 3
    assert len(result.warnings) == 1
    assert result.failed()

    with_drafts = check_site(root, include_drafts=True)
    assert any(i.path.name == "wip.md" and i.code == "broken-link" for i in with_drafts.issues)


def test_check_site_strict_counts_warnings(tmp_path):
    root = create_blog(tmp_path)
    write(root / "notes.md", "---\ntitle: Notes\n---\n")
    result = check_site(root)
    assert [i.code for i in result.issues] == ["missing-layout"]
    assert result.ok
    assert not result.failed()
    assert result.failed(strict=True)


def test_check_site_custom_source_and_registry(tmp_path):
    write(tmp_path / "_config.yml", "source: src\n")
    write(tmp_path / "src" / "index.md", "---\ntitle: Home\n---\n")

    class Flag:
        def check(self, document, site):
            yield Issue(document.path, "flag", "flagged", WARNING)

    result = check_site(tmp_path, registry=RuleRegistry([Flag()]))
    assert result.source_dir == tmp_path / "src"
    assert [(i.code, i.severity) for i in result.issues] == [("flag", WARNING)]


def test_check_site_requires_source_dir(tmp_path):
    write(tmp_path / "_config.yml", "source: nowhere\n")
    with pytest.raises(FileNotFoundError):
        check_site(tmp_path)


def test_check_site_external_flag_overrides_config(tmp_path, monkeypatch):
    write(tmp_path / "_config.yml", "bloglint:\n  check_external: true\n")
    write(tmp_path / "index.md", "---\nlayout: home\n---\n[x](https://example.org/)\n")

    calls = []

    def fake_check(self, url):
        calls.append(url)
        return "HTTP 500"

    monkeypatch.setattr("bloglint.links.ExternalLinkChecker.check", fake_check)

    result = check_site(tmp_path, check_external=False)
    assert result.issues == []
    assert calls == []

    result = check_site(tmp_path)
    assert calls == ["https://example.org/"]
    assert [(i.code, i.severity) for i in result.issues] == [("external-link", WARNING)]
    assert result.ok


def test_check_result_partitions_issues(tmp_path):
    error = Issue(tmp_path / "a.md", "x", "m", ERROR)
    warning = Issue(tmp_path / "a.md", "y", "m", WARNING)
    result = CheckResult(documents=[], issues=[error, warning], config={}, source_dir=tmp_path)
    assert result.errors == [error]
    assert result.warnings == [warning]
    assert not result.ok
