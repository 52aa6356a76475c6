from __future__ import annotations

import pytest


@pytest.mark.parametrize(
    ("candidate", "target", "expected"),
    [
        ("https://github.com/", "github.com", True),
        ("https://www.example.com/page#frag", "example.com/page", True),
        ("example.com", "example.org", False),
        ("https://github.com/foo", "github.com", True),
        ("github.com", "https://github.com/foo/bar", True),
        ("HTTP://WWW.GitHub.com", "github.com", True),
        ("https://mail.google.com", "google.com", False),
    ],
)
def test_urls_match_scenarios(candidate: str, target: str, expected: bool) -> None:
    from url_switcher.url_match import urls_match

    assert urls_match(candidate, target) is expected
    assert urls_match(target, candidate) is expected


def test_prefix_match_is_not_host_aware() -> None:
    from url_switcher.url_match import urls_match

    # Observed behaviour: plain string prefixes, no host boundary.
    assert urls_match("https://a.com.evil.com/", "a.com") is True


def test_empty_url_is_a_prefix_of_everything() -> None:
    from url_switcher.tabs import TabDescriptor
    from url_switcher.url_match import find_best_match, urls_match

    assert urls_match("", "github.com") is True
    assert urls_match("https://github.com", "") is True
    assert urls_match(None, None) is True

    tabs = [TabDescriptor(id=1, url="https://example.com"), TabDescriptor(id=2, url="https://github.com")]
    match = find_best_match(tabs, "https://")
    assert match is not None and match.id == 1

    blank = [TabDescriptor(id=9, url=""), TabDescriptor(id=2, url="https://github.com")]
    match = find_best_match(blank, "github.com")
    assert match is not None and match.id == 9


@pytest.mark.parametrize(
    "url",
    [
        "https://www.example.com/page#frag",
        "a.com/#x/",
        "https://https://www.www.a.com//",
        "WWW.Example.COM/",
        "#only-fragment",
        "http://",
        "",
        "plain text with spaces",
    ],
)
def test_normalize_is_idempotent(url: str) -> None:
    from url_switcher.url_match import normalize_url

    once = normalize_url(url)
    assert normalize_url(once) == once


def test_normalize_url_steps() -> None:
    from url_switcher.url_match import normalize_url

    assert normalize_url("https://www.Example.com/Page/#top") == "example.com/page"
    assert normalize_url("http://github.com/") == "github.com"
    assert normalize_url("ftp://host/") == "ftp://host"


def test_find_best_match_first_in_directory_order() -> None:
    from url_switcher.tabs import TabDescriptor
    from url_switcher.url_match import find_best_match

    tabs = [
        TabDescriptor(id=1, window_id=1, url="https://example.org/"),
        TabDescriptor(id=2, window_id=1, url="https://github.com/foo"),
        TabDescriptor(id=3, window_id=2, url="https://github.com/"),
    ]
    match = find_best_match(tabs, "github.com")
    assert match is not None and match.id == 2

    assert find_best_match(tabs, "gitlab.com") is None
    assert find_best_match([], "github.com") is None
