"""Shared fixtures for the harvester tests."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from reddit_harvester.config import Config, HarvestSettings
from reddit_harvester.models.fetch import FetchResult, FetchStatus
from reddit_harvester.models.records import Comment, Post, RetrievalMethod

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    """Minimal stand-in for an aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def json(self, content_type=None):
        if isinstance(self.body, str):
            return json.loads(self.body)
        return self.body

    async def text(self) -> str:
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)


class FakeSession:
    """
    Routes requests to a handler and records every call.

    The handler receives ``(method, url, kwargs)`` and returns a FakeResponse
    or raises.
    """

    def __init__(self, handler: Callable[[str, str, Dict[str, Any]], FakeResponse]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self.handler("GET", url, kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": "POST", "url": url, **kwargs})
        return self.handler("POST", url, kwargs)

    def urls(self, method: str = "GET") -> List[str]:
        return [call["url"] for call in self.calls if call["method"] == method]


class ScriptedAdapter:
    """
    Adapter double for orchestrator tests.

    ``script`` maps a community to the results returned on successive calls;
    an exception instance in the list is raised instead. Communities not in
    the script get ``default``.
    """

    def __init__(self, method: RetrievalMethod, script: Optional[Dict[str, list]] = None, default=None):
        self.method = method
        self.script = {name: list(results) for name, results in (script or {}).items()}
        self.default = default
        self.calls: List[str] = []

    async def fetch_community(self, community, filters) -> FetchResult:
        self.calls.append(community)
        queue = self.script.get(community)
        result = queue.pop(0) if queue else self.default
        if result is None:
            result = FetchResult.failure(self.method, FetchStatus.UNKNOWN, "no scripted result")
        if isinstance(result, BaseException):
            raise result
        return result


def make_post(
    post_id: str = "p1",
    community: str = "science",
    title: str = "A long enough post title",
    body: str = "A body with plenty of words in it",
    score: int = 20,
    comment_count: int = 3,
    author: str = "researcher",
    created_at: Optional[datetime] = None,
    method: RetrievalMethod = RetrievalMethod.PRIMARY,
) -> Post:
    return Post(
        id=post_id,
        community=community,
        author=author,
        title=title,
        body=body,
        created_at=created_at or datetime.now(timezone.utc) - timedelta(hours=1),
        score=score,
        comment_count=comment_count,
        flair=None,
        retrieval_method=method,
        scraped_at=NOW,
    )


def make_comment(
    comment_id: str = "c1",
    post_id: str = "p1",
    community: str = "science",
    body: str = "A thoughtful comment about the post",
    author: str = "commenter",
    created_at: Optional[datetime] = None,
    method: RetrievalMethod = RetrievalMethod.PRIMARY,
) -> Comment:
    return Comment(
        id=comment_id,
        post_id=post_id,
        parent_id=f"t3_{post_id}",
        community=community,
        author=author,
        body=body,
        created_at=created_at or datetime.now(timezone.utc) - timedelta(hours=1),
        score=5,
        reply_count=0,
        retrieval_method=method,
        scraped_at=NOW,
    )


def listing_child(post_id: str, **data) -> Dict[str, Any]:
    payload = {
        "id": post_id,
        "title": f"Post {post_id} title",
        "selftext": f"Body of post {post_id} with some words",
        "author": "author_" + post_id,
        "created_utc": NOW.timestamp(),
        "score": 5,
        "num_comments": 0,
        "permalink": f"/r/science/comments/{post_id}/",
    }
    payload.update(data)
    return {"kind": "t3", "data": payload}


def listing(*children) -> Dict[str, Any]:
    return {"kind": "Listing", "data": {"children": list(children)}}


def comment_node(comment_id: str, body: str = "A reply with enough text", author: str = "replier", replies=None):
    data = {
        "id": comment_id,
        "body": body,
        "author": author,
        "created_utc": NOW.timestamp(),
        "score": 2,
        "replies": listing(*(replies or [])) if replies else "",
    }
    return {"kind": "t1", "data": data}


@pytest.fixture
def harvest_settings() -> HarvestSettings:
    """Settings with every delay removed so tests run instantly."""
    return HarvestSettings(
        batch_size=2,
        inter_batch_delay_sec=0.0,
        rate_limit_retry_delay_sec=0.0,
        comment_request_delay_sec=0.0,
        adapter_timeout_sec=2.0,
        comment_time_budget_sec=1.5,
    )


@pytest.fixture
def config(harvest_settings) -> Config:
    """Configuration with fast rate limits and no credentials."""
    cfg = Config(harvest=harvest_settings)
    for source in cfg.sources.values():
        source.requests_per_minute = 60000
    return cfg


@pytest.fixture
def credentialed_config(config) -> Config:
    config.client_id = "client"
    config.client_secret = "secret"
    return config
