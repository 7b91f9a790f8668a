"""
Tests for AI response models, parsing and prompt building.
"""

import pytest

from bookmark_sift.core.categorization import merge_category_suggestions
from bookmark_sift.core.data_models import Bookmark
from bookmark_sift.core.structured_output import (
    CategoryGroup,
    create_category_prompt,
    create_rename_prompt,
    extract_json_text,
    is_unclear_title,
    parse_category_response,
    parse_rename_response,
)
from bookmark_sift.utils.error_handler import AIResponseError

BATCH = [
    Bookmark(id="a", title="First", url="https://first.com/"),
    Bookmark(id="b", title="Second", url="https://second.com/"),
]


class TestCategoryGroup:
    def test_alias_and_field_name(self):
        assert CategoryGroup(folderName="Dev").folder_name == "Dev"
        assert CategoryGroup(folder_name="Dev").folder_name == "Dev"

    def test_name_kept_verbatim(self):
        assert CategoryGroup(folderName="  Dev  ").folder_name == "  Dev  "

    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            CategoryGroup(folderName="   ")


class TestParsing:
    """Tests for response parsing."""

    def test_extract_json_text(self):
        assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert extract_json_text('Here you go:\n```\n{"a": 1}\n```') == '{"a": 1}'
        assert extract_json_text('  {"a": 1} ') == '{"a": 1}'

    def test_category_indices_are_one_based(self):
        text = '{"categories": [{"folderName": "X", "bookmarkIndices": [2, 1]}]}'
        suggestions = parse_category_response(text, BATCH)
        assert [b.id for b in suggestions[0].bookmarks] == ["b", "a"]

    def test_whitespace_variants_stay_separate(self):
        text = (
            '{"categories": ['
            '{"folderName": "Dev ", "bookmarkIndices": [1]},'
            '{"folderName": "Dev", "bookmarkIndices": [2]}]}'
        )
        suggestions = parse_category_response(text, BATCH)

        merged = merge_category_suggestions([], suggestions)

        assert [s.folder_name for s in suggestions] == ["Dev ", "Dev"]
        assert [c.folder_name for c in merged] == ["Dev ", "Dev"]
        assert [[b.id for b in c.bookmarks] for c in merged] == [["a"], ["b"]]

    def test_zero_and_negative_indices_dropped(self):
        text = '{"categories": [{"folderName": "X", "bookmarkIndices": [0, -1, 3]}]}'
        assert parse_category_response(text, BATCH) == []

    def test_invalid_json(self):
        with pytest.raises(AIResponseError):
            parse_category_response("{oops", BATCH)

    def test_rename_response(self):
        text = '{"renames": [{"index": 2, "suggestedTitle": "Better"}]}'
        renames = parse_rename_response(text, BATCH)
        assert renames[0].bookmark.id == "b"
        assert renames[0].suggested_title == "Better"

    def test_rename_missing_title(self):
        with pytest.raises(AIResponseError):
            parse_rename_response('{"renames": [{"index": 1}]}', BATCH)


class TestUnclearTitles:
    @pytest.mark.parametrize(
        "title",
        ["", "abc", "Untitled", "http://example.com", "https://x.y/z", "deadbeef-1234", "0a1b2c3d4e"],
    )
    def test_unclear(self, title):
        assert is_unclear_title(title)

    @pytest.mark.parametrize("title", ["Python Docs", "News of the day", "Hacker News"])
    def test_clear(self, title):
        assert not is_unclear_title(title)


class TestPrompts:
    def test_category_prompt_lists_bookmarks(self):
        prompt = create_category_prompt(BATCH)
        assert '1. "First" - https://first.com/' in prompt
        assert '2. "Second" - https://second.com/' in prompt
        assert '"bookmarkIndices"' in prompt

    def test_rename_prompt_lists_bookmarks(self):
        prompt = create_rename_prompt(BATCH)
        assert '1. Current: "First" | URL: https://first.com/' in prompt
        assert '"suggestedTitle"' in prompt
