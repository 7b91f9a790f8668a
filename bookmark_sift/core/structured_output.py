"""
Structured Output Models for AI Responses

Pydantic models and prompt builders for the categorization and rename
requests. Both requests reference bookmarks by their 1-based position in the
prompt, so parsing also maps indices back onto the batch.
"""

import json
import re
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..utils.error_handler import AIResponseError
from .data_models import Bookmark, CategorySuggestion, RenameSuggestion

UUID_LIKE_TITLE = re.compile(r"^[a-f0-9-]+$")
CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


class CategoryGroup(BaseModel):
    """One suggested folder in a categorization response."""

    model_config = ConfigDict(populate_by_name=True)

    folder_name: str = Field(..., alias="folderName", min_length=1)
    bookmark_indices: List[int] = Field(default_factory=list, alias="bookmarkIndices")

    @field_validator("folder_name")
    @classmethod
    def reject_blank_folder_name(cls, v: str) -> str:
        # Kept verbatim; near-duplicate names stay separate folders
        if not v.strip():
            raise ValueError("folder name is empty")
        return v


class CategoryResponse(BaseModel):
    categories: List[CategoryGroup] = Field(default_factory=list)


class RenameItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    suggested_title: str = Field(..., alias="suggestedTitle", min_length=1)


class RenameResponse(BaseModel):
    renames: List[RenameItem] = Field(default_factory=list)


def extract_json_text(response_text: str) -> str:
    """Strip a markdown code fence around a JSON payload, if present."""
    match = CODE_FENCE.search(response_text)
    if match:
        return match.group(1).strip()
    return response_text.strip()


def _load_json(response_text: str) -> dict:
    try:
        data = json.loads(extract_json_text(response_text))
    except json.JSONDecodeError as e:
        raise AIResponseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIResponseError("Response JSON is not an object")
    return data


def _at_index(batch: List[Bookmark], index: int):
    if 1 <= index <= len(batch):
        return batch[index - 1]
    return None


def parse_category_response(
    response_text: str, batch: List[Bookmark]
) -> List[CategorySuggestion]:
    """
    Map a categorization response onto the bookmarks of its batch.

    Out-of-range indices are dropped, as are categories left empty.

    Raises:
        AIResponseError: If the response does not match the expected shape
    """
    try:
        parsed = CategoryResponse(**_load_json(response_text))
    except ValidationError as e:
        raise AIResponseError(f"Unexpected categorization response: {e}") from e

    suggestions = []
    for group in parsed.categories:
        bookmarks = [
            b
            for b in (_at_index(batch, i) for i in group.bookmark_indices)
            if b is not None
        ]
        if bookmarks:
            suggestions.append(
                CategorySuggestion(folder_name=group.folder_name, bookmarks=bookmarks)
            )
    return suggestions


def parse_rename_response(
    response_text: str, batch: List[Bookmark]
) -> List[RenameSuggestion]:
    """
    Map a rename response onto the bookmarks of its batch.

    Raises:
        AIResponseError: If the response does not match the expected shape
    """
    try:
        parsed = RenameResponse(**_load_json(response_text))
    except ValidationError as e:
        raise AIResponseError(f"Unexpected rename response: {e}") from e

    suggestions = []
    for item in parsed.renames:
        bookmark = _at_index(batch, item.index)
        if bookmark is not None:
            suggestions.append(
                RenameSuggestion(bookmark=bookmark, suggested_title=item.suggested_title)
            )
    return suggestions


def is_unclear_title(title: str) -> bool:
    """Titles too short, placeholder-like, raw URLs or hex/uuid strings."""
    title = (title or "").lower()
    return (
        len(title) < 5
        or title == "untitled"
        or title.startswith("http")
        or bool(UUID_LIKE_TITLE.match(title))
    )


def create_category_prompt(batch: List[Bookmark]) -> str:
    bookmark_list = "\n".join(
        f'{i}. "{b.title}" - {b.url}' for i, b in enumerate(batch, start=1)
    )
    return f"""Analyze these bookmarks and suggest logical folder categories for organizing them. Group related bookmarks together based on topic, purpose, or domain.

Bookmarks:
{bookmark_list}

Respond in JSON format only:
{{
  "categories": [
    {{
      "folderName": "Category Name",
      "bookmarkIndices": [1, 2, 5]
    }}
  ]
}}

Be concise with folder names. Use common categories like: Development, Documentation, News, Social, Shopping, Entertainment, Finance, Learning, Tools, etc."""


def create_rename_prompt(batch: List[Bookmark]) -> str:
    bookmark_list = "\n".join(
        f'{i}. Current: "{b.title}" | URL: {b.url}' for i, b in enumerate(batch, start=1)
    )
    return f"""These bookmarks have unclear titles. Suggest better, descriptive names based on the URLs.

Bookmarks:
{bookmark_list}

Respond in JSON format only:
{{
  "renames": [
    {{
      "index": 1,
      "suggestedTitle": "Descriptive Title"
    }}
  ]
}}

Keep titles concise (under 50 characters). Make them descriptive of the content."""
