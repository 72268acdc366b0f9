"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Quote tools backed by the ZenQuotes API with a static local table as
fallback.
"""

from __future__ import annotations

import logging
import random
from typing import Any

from pydantic import BaseModel, Field, field_validator

from toolserve.tools import Tool, ToolContext, ToolExecutionError, tool

from .upstream import UpstreamClient, UpstreamError

logger = logging.getLogger("toolserve.servers.quotes")

ZENQUOTES_URL = "https://zenquotes.io/api/random"
ZENQUOTES_TIMEOUT_S = 5.0

DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 10


class Quote(BaseModel):
    text: str
    author: str
    category: str | None = None


QUOTES: tuple[Quote, ...] = tuple(
    Quote(text=text, author=author, category=category)
    for text, author, category in (
        ("The only way to do great work is to love what you do.", "Steve Jobs", "motivation"),
        ("Innovation distinguishes between a leader and a follower.", "Steve Jobs", "innovation"),
        ("Stay hungry, stay foolish.", "Steve Jobs", "motivation"),
        ("Life is what happens when you're busy making other plans.", "John Lennon", "life"),
        ("The future belongs to those who believe in the beauty of their dreams.", "Eleanor Roosevelt", "motivation"),
        ("It is during our darkest moments that we must focus to see the light.", "Aristotle", "wisdom"),
        ("The only thing we have to fear is fear itself.", "Franklin D. Roosevelt", "courage"),
        ("In the middle of difficulty lies opportunity.", "Albert Einstein", "wisdom"),
        ("Imagination is more important than knowledge.", "Albert Einstein", "wisdom"),
        ("Be the change you wish to see in the world.", "Mahatma Gandhi", "motivation"),
        ("An eye for an eye only ends up making the whole world blind.", "Mahatma Gandhi", "wisdom"),
        ("The best time to plant a tree was 20 years ago. The second best time is now.", "Chinese Proverb", "wisdom"),
        ("Talk is cheap. Show me the code.", "Linus Torvalds", "programming"),
        ("First, solve the problem. Then, write the code.", "John Johnson", "programming"),
        ("Code is like humor. When you have to explain it, it's bad.", "Cory House", "programming"),
        ("Simplicity is the soul of efficiency.", "Austin Freeman", "programming"),
        ("Any fool can write code that a computer can understand. Good programmers write code that humans can understand.", "Martin Fowler", "programming"),
        ("The most damaging phrase in the language is: We've always done it this way.", "Grace Hopper", "innovation"),
    )
)


class _RandomQuoteArgs(BaseModel):
    category: str | None = Field(
        default=None,
        description=(
            "filter by category: motivation, wisdom, programming, innovation, "
            "life, courage"
        ),
    )


class _SearchQuotesArgs(BaseModel):
    query: str = Field(
        min_length=1,
        description="search term to find in quotes or author names",
    )
    limit: int = Field(
        default=DEFAULT_SEARCH_LIMIT,
        description="maximum number of results (default 5, max 10)",
    )

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        if value <= 0:
            return DEFAULT_SEARCH_LIMIT
        return min(value, MAX_SEARCH_LIMIT)


class SearchQuotesResult(BaseModel):
    quotes: list[Quote]
    total: int


class _ListCategoriesArgs(BaseModel):
    pass


class CategoryList(BaseModel):
    categories: list[str]


def quotes_in_category(category: str) -> list[Quote]:
    wanted = category.lower()
    return [q for q in QUOTES if (q.category or "").lower() == wanted]


def search(query: str, limit: int) -> list[Quote]:
    needle = query.lower()
    results: list[Quote] = []
    for q in QUOTES:
        haystacks = (q.text, q.author, q.category or "")
        if any(needle in h.lower() for h in haystacks):
            results.append(q)
            if len(results) >= limit:
                break
    return results


def categories() -> list[str]:
    return sorted({q.category for q in QUOTES if q.category})


async def fetch_remote_quote(
    client: UpstreamClient, ctx: ToolContext | None = None
) -> Quote:
    payload = await client.get_json(
        ZENQUOTES_URL, timeout_s=ZENQUOTES_TIMEOUT_S, ctx=ctx
    )
    if not isinstance(payload, list) or not payload:
        raise UpstreamError("empty response from API")
    first = payload[0]
    if not isinstance(first, dict) or not first.get("q"):
        raise UpstreamError("unexpected response shape from API")
    return Quote(text=str(first["q"]), author=str(first.get("a") or "Unknown"))


def build_quote_tools(
    *,
    client: UpstreamClient | None = None,
    rng: random.Random | None = None,
) -> list[Tool[Any, Any]]:
    """
    Construct the quote tool set.

    Tools produced:
      - `get_random_quote`: remote quote, or a local one by category/fallback
      - `search_quotes`: case-insensitive search over the local table
      - `list_categories`: sorted local categories

    A category filter always selects from the local table because the remote
    API has no categories; without one the remote API is tried first and any
    failure falls back to a random local quote.
    """
    upstream = client or UpstreamClient()
    chooser = rng or random.Random()

    @tool(
        args_model=_RandomQuoteArgs,
        name="get_random_quote",
        output_model=Quote,
        description="Get a random inspirational quote, optionally filtered by category.",
    )
    async def get_random_quote(args: _RandomQuoteArgs, ctx: ToolContext) -> Quote:
        if args.category:
            pool = quotes_in_category(args.category)
            if not pool:
                raise ToolExecutionError(
                    f"no quotes found for category: {args.category}"
                )
            logger.debug(
                "Found %d quotes in category %s", len(pool), args.category.lower()
            )
            return chooser.choice(pool)

        try:
            quote = await fetch_remote_quote(upstream, ctx)
        except UpstreamError as e:
            logger.debug("API fetch failed, falling back to local quotes: %s", e)
        else:
            logger.debug("Fetched quote from API: author=%s", quote.author)
            return quote

        ctx.raise_if_cancelled()
        return chooser.choice(QUOTES)

    @tool(
        args_model=_SearchQuotesArgs,
        name="search_quotes",
        output_model=SearchQuotesResult,
        description=(
            "Search for quotes by keyword in the quote text, author name, or category."
        ),
    )
    def search_quotes(args: _SearchQuotesArgs) -> SearchQuotesResult:
        results = search(args.query, args.limit)
        logger.debug(
            "Search for %r found %d results (limit %d)",
            args.query,
            len(results),
            args.limit,
        )
        return SearchQuotesResult(quotes=results, total=len(results))

    @tool(
        args_model=_ListCategoriesArgs,
        name="list_categories",
        output_model=CategoryList,
        description="List all available quote categories.",
    )
    def list_categories(args: _ListCategoriesArgs) -> CategoryList:
        return CategoryList(categories=categories())

    return [get_random_quote, search_quotes, list_categories]
