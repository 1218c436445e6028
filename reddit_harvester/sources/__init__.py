"""Source adapters and construction of the fallback chain."""

import logging
from typing import List

import aiohttp

from reddit_harvester.config import SOURCE_ORDER, Config
from reddit_harvester.sources.archive import ArchiveAdapter
from reddit_harvester.sources.base import SourceAdapter
from reddit_harvester.sources.feed import FeedAdapter
from reddit_harvester.sources.listing import AnonymousListingAdapter
from reddit_harvester.sources.oauth import OAuthListingAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES = {
    "oauth": OAuthListingAdapter,
    "anonymous": AnonymousListingAdapter,
    "feed": FeedAdapter,
    "archive": ArchiveAdapter,
}


def build_adapter_chain(
    session: aiohttp.ClientSession,
    config: Config,
    prometheus_exporter=None,
) -> List[SourceAdapter]:
    """
    Instantiate the enabled adapters in priority order.

    The OAuth adapter is left out when no client credentials are configured.

    Args:
        session: Shared HTTP session
        config: Application configuration
        prometheus_exporter: Optional Prometheus exporter for metrics

    Returns:
        Adapters, highest priority first
    """
    chain = []
    for name in SOURCE_ORDER:
        if not config.source(name).enabled:
            continue
        if name == "oauth" and not config.has_credentials:
            logger.info("No Reddit API credentials configured; skipping the OAuth adapter")
            continue
        chain.append(ADAPTER_CLASSES[name](session, config, prometheus_exporter=prometheus_exporter))

    logger.info(f"Adapter chain: {' -> '.join(adapter.method.value for adapter in chain)}")
    return chain


__all__ = [
    "AnonymousListingAdapter",
    "ArchiveAdapter",
    "FeedAdapter",
    "OAuthListingAdapter",
    "SourceAdapter",
    "build_adapter_chain",
]
