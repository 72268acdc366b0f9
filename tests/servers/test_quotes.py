from __future__ import annotations

import asyncio
import json
import random

import pytest

from toolserve.servers.quotes import QUOTES, ZENQUOTES_URL, build_quote_tools
from toolserve.servers.upstream import UpstreamClient, UpstreamError
from toolserve.tools import ToolValidationError


def run_async(coro):
    return asyncio.run(coro)


class _FakeFetch:
    def __init__(self, body: bytes | None = None, error: Exception | None = None):
        self.body = body
        self.error = error
        self.urls: list[str] = []

    def __call__(self, url: str, timeout_s: float) -> bytes:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.body or b""


def _tools(fetch: _FakeFetch):
    tools = build_quote_tools(client=UpstreamClient(fetch=fetch), rng=random.Random(7))
    return {t.spec.name: t for t in tools}


def _local_texts():
    return {q.text for q in QUOTES}


def test_random_quote_prefers_remote_api():
    fetch = _FakeFetch(json.dumps([{"q": "Remote wisdom.", "a": "Someone"}]).encode())

    result = run_async(_tools(fetch)["get_random_quote"].call({}))

    assert result.output == {"text": "Remote wisdom.", "author": "Someone"}
    assert fetch.urls == [ZENQUOTES_URL]


@pytest.mark.parametrize(
    "fetch",
    [
        _FakeFetch(error=UpstreamError("API returned status 503")),
        _FakeFetch(error=ConnectionResetError("reset")),
        _FakeFetch(b"<html>"),
        _FakeFetch(b"[]"),
        _FakeFetch(b'{"q": "not a list"}'),
    ],
)
def test_random_quote_falls_back_to_local_table(fetch):
    result = run_async(_tools(fetch)["get_random_quote"].call({}))

    assert result.success
    assert result.output["text"] in _local_texts()


def test_category_filter_uses_local_table_only():
    fetch = _FakeFetch(json.dumps([{"q": "Remote", "a": "Someone"}]).encode())
    tools = _tools(fetch)

    for _ in range(10):
        result = run_async(tools["get_random_quote"].call({"category": "Programming"}))
        assert result.output["category"] == "programming"
    assert fetch.urls == []


def test_unknown_category_is_handler_failure():
    result = run_async(
        _tools(_FakeFetch())["get_random_quote"].call({"category": "cooking"})
    )

    assert not result.success
    assert result.error_message == "no quotes found for category: cooking"


def test_search_is_case_insensitive_over_text_author_and_category():
    tools = _tools(_FakeFetch())

    by_author = run_async(tools["search_quotes"].call({"query": "EINSTEIN"}))
    by_category = run_async(tools["search_quotes"].call({"query": "courage"}))

    assert by_author.output["total"] == 2
    assert {q["author"] for q in by_author.output["quotes"]} == {"Albert Einstein"}
    assert by_category.output["quotes"][0]["author"] == "Franklin D. Roosevelt"


@pytest.mark.parametrize(
    ("limit", "expected"),
    [(None, 5), (0, 5), (-3, 5), (2, 2), (50, 10)],
)
def test_search_limit_defaults_and_clamps(limit, expected):
    args = {"query": "e"}
    if limit is not None:
        args["limit"] = limit

    result = run_async(_tools(_FakeFetch())["search_quotes"].call(args))

    assert result.output["total"] == expected
    assert len(result.output["quotes"]) == expected


def test_search_without_matches_is_empty_not_an_error():
    result = run_async(_tools(_FakeFetch())["search_quotes"].call({"query": "zzzz"}))

    assert result.output == {"quotes": [], "total": 0}


def test_search_requires_a_query():
    with pytest.raises(ToolValidationError) as info:
        run_async(_tools(_FakeFetch())["search_quotes"].call({"query": ""}))
    assert info.value.fields == ["query"]


def test_list_categories_is_sorted_and_unique():
    result = run_async(_tools(_FakeFetch())["list_categories"].call({}))

    assert result.output == {
        "categories": [
            "courage",
            "innovation",
            "life",
            "motivation",
            "programming",
            "wisdom",
        ]
    }
