"""Tests for site URL helpers."""

import pytest

from site_friends.access.logins import (
    derive_login,
    ensure_scheme,
    is_valid_site_url,
    normalize_site_url,
    same_site,
)


class TestDeriveLogin:
    @pytest.mark.parametrize(
        ("site_url", "login"),
        [
            ("https://example.com", "example.com"),
            ("https://example.com/", "example.com"),
            ("https://Example.COM/Blog/", "example.com_blog"),
            ("http://example.com:8080/a b/c", "example.com_a_b_c"),
            ("https://sub.example.org/~user/site", "sub.example.org_user_site"),
        ],
    )
    def test_derivation(self, site_url, login):
        assert derive_login(site_url) == login

    def test_is_deterministic(self):
        """The same URL always yields the same login."""
        url = "https://friend.example.net/journal/"
        assert derive_login(url) == derive_login(url)

    def test_scheme_and_trailing_slash_do_not_matter(self):
        assert derive_login("http://example.com/blog") == derive_login(
            "https://example.com/blog/"
        )

    def test_only_safe_characters_remain(self):
        login = derive_login("https://exa_mple.com/Ünïcode/path?x=1")
        assert login == login.strip("_")
        assert all(c.isalnum() or c in "._-" for c in login)


class TestSiteUrlValidation:
    @pytest.mark.parametrize(
        "url",
        ["https://example.com", "http://localhost:8000", "https://a.example/blog/"],
    )
    def test_valid(self, url):
        assert is_valid_site_url(url)

    @pytest.mark.parametrize(
        "url",
        [None, 42, "", "example.com", "ftp://example.com", "https://", " https://a.b"],
    )
    def test_invalid(self, url):
        assert not is_valid_site_url(url)

    def test_normalize_strips_trailing_slashes(self):
        assert normalize_site_url("https://a.example/blog//") == "https://a.example/blog"

    def test_ensure_scheme(self):
        assert ensure_scheme("a.example") == "http://a.example"
        assert ensure_scheme("https://a.example") == "https://a.example"

    def test_same_site_ignores_case_and_slash(self):
        assert same_site("https://A.example/", "https://a.example")
        assert not same_site("https://a.example", "https://b.example")
