"""Configuration objects and constants for the vote watcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

DEFAULT_VOTE_URL = "https://top-serveurs.net/dayz/vote/fr-revolutiondayz-beta"
DEFAULT_ALLOWED_HOSTS = frozenset({"top-serveurs.net"})

# Placeholder values rendered by the site's example markup before its
# scripts fill in the real numbers.
DEFAULT_VOTE_SENTINELS = frozenset({589})
DEFAULT_RANKING_SENTINELS = frozenset({18})

UNKNOWN_COOLDOWN_MS = 3_600_000


@dataclass
class FetchConfig:
    """Top-level settings that control rendering and extraction behaviour."""

    allowed_hosts: FrozenSet[str] = DEFAULT_ALLOWED_HOSTS
    load_timeout: float = 15.0
    settle_delay: float = 3.0
    probe_delay: float = 1.0
    drain_delay: float = 0.1
    headless: bool = True
    user_agent: Optional[str] = None
    text_sample_chars: int = 1000
    countdown_element_id: str = "digitalCountdown"
    vote_sentinels: FrozenSet[int] = field(default=DEFAULT_VOTE_SENTINELS)
    ranking_sentinels: FrozenSet[int] = field(default=DEFAULT_RANKING_SENTINELS)
