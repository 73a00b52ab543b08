"""Turn a rendered document snapshot into an :class:`ExtractionResult`."""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from .config import UNKNOWN_COOLDOWN_MS, FetchConfig
from .models import DocumentSnapshot, ExtractionInfo, ExtractionResult, RemainingTime
from .strategies import ParsedDocument, StrategyChain, ranking_field, vote_count_field
from .utils import parse_leading_int

logger = logging.getLogger("votewatch")

ZERO_COUNTDOWN_PATTERN = re.compile(r"[0:\s]*")
COUNTDOWN_UNITS = ("hours", "minutes", "seconds")

Cooldown = Tuple[bool, int, Optional[RemainingTime]]


def read_cooldown(doc: ParsedDocument, element_id: str) -> Cooldown:
    """Return ``(available, remaining_ms, remaining_time)`` from the countdown widget."""
    countdown = doc.content.find(id=element_id)
    if countdown is None:
        return True, 0, None

    spans = [countdown.select_one(f'span[data-unit="{unit}"]') for unit in COUNTDOWN_UNITS]
    if all(span is not None for span in spans):
        hours, minutes, seconds = (
            max(parse_leading_int(span.get_text().strip()) or 0, 0) for span in spans
        )
        if hours == minutes == seconds == 0:
            return True, 0, None
        remaining_ms = (hours * 3600 + minutes * 60 + seconds) * 1000
        return False, remaining_ms, RemainingTime(hours, minutes, seconds)

    text = countdown.get_text().strip()
    if ZERO_COUNTDOWN_PATTERN.fullmatch(text):
        return True, 0, None
    # Unreadable countdown: assume a full cooldown rather than fail.
    logger.debug("Countdown text %r has no unit fields; assuming one hour", text)
    return False, UNKNOWN_COOLDOWN_MS, None


class ExtractionEngine:
    """Extract cooldown, monthly votes and ranking from a rendered page."""

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        chain: Optional[StrategyChain] = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.chain = chain or StrategyChain()
        self.vote_field = vote_count_field(self.config.vote_sentinels)
        self.ranking_field = ranking_field(self.config.ranking_sentinels)

    def extract(self, snapshot: DocumentSnapshot) -> ExtractionResult:
        doc = ParsedDocument(snapshot)
        available, remaining_ms, remaining_time = read_cooldown(doc, self.config.countdown_element_id)
        vote_count, vote_source = self.chain.resolve(doc, self.vote_field)
        ranking, ranking_source = self.chain.resolve(doc, self.ranking_field)

        info = ExtractionInfo(
            page_title=doc.title,
            url=snapshot.url,
            body_text_sample=doc.body_text[: self.config.text_sample_chars],
            vote_count_found=vote_count is not None,
            ranking_found=ranking is not None,
            vote_count_source=vote_source,
            ranking_source=ranking_source,
        )
        return ExtractionResult(
            available=available,
            remaining_ms=remaining_ms,
            remaining_time=remaining_time,
            vote_count=vote_count,
            ranking=ranking,
            info=info,
        )
