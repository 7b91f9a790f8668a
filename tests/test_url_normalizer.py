"""
Unit tests for URL normalization and domain extraction.
"""

import pytest

from bookmark_sift.core.url_normalizer import extract_domain, normalize_url


class TestNormalizeUrl:
    """Tests for normalize_url."""

    @pytest.mark.parametrize(
        "a,b",
        [
            ("https://example.com/page?utm_source=x&utm_medium=y", "https://example.com/page"),
            ("https://example.com/page?fbclid=abc&gclid=def", "https://example.com/page"),
            ("http://example.com/page", "https://example.com/page"),
            ("https://example.com/page/", "https://example.com/page"),
            ("https://EXAMPLE.com/page", "https://example.com/page"),
            ("https://www.example.com/page", "https://example.com/page"),
            ("https://example.com:443/page", "https://example.com/page"),
            ("https://example.com/page?b=2&a=1", "https://example.com/page?a=1&b=2"),
            ("https://example.com/page#section", "https://example.com/page"),
        ],
    )
    def test_equivalent_urls_normalize_equal(self, a, b):
        """URLs differing only in ignored aspects compare equal."""
        assert normalize_url(a) == normalize_url(b)

    def test_combined_variations(self):
        """Test every variation at once."""
        messy = "HTTP://WWW.Example.COM:8080/Docs/?ref=home&z=1&a=2#top"
        assert normalize_url(messy) == "https://example.com/Docs?a=2&z=1"

    def test_root_path(self):
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_only_one_trailing_slash_removed(self):
        assert normalize_url("https://example.com/a//") == "https://example.com/a/"

    def test_path_case_preserved(self):
        assert normalize_url("https://example.com/CaseSensitive") != normalize_url(
            "https://example.com/casesensitive"
        )

    def test_non_tracking_params_kept(self):
        assert normalize_url("https://example.com/search?q=python") == (
            "https://example.com/search?q=python"
        )

    @pytest.mark.parametrize(
        "raw",
        ["not a url", "javascript:void(0)", "", "HTTP://", "http://[::1"],
    )
    def test_invalid_input_never_raises(self, raw):
        """Invalid input comes back lowercased."""
        assert normalize_url(raw) == raw.lower()


class TestExtractDomain:
    """Tests for extract_domain."""

    def test_strips_www_and_lowercases(self):
        assert extract_domain("https://WWW.GitHub.com/user/repo") == "github.com"

    def test_keeps_subdomains(self):
        assert extract_domain("https://docs.python.org/3/") == "docs.python.org"

    def test_unparsable_is_unknown(self):
        assert extract_domain("not a url") == "unknown"
        assert extract_domain("") == "unknown"
