"""Ordered heuristics that recover a single number from a rendered page.

Each strategy yields raw candidates for a :class:`FieldSpec`; the
:class:`StrategyChain` keeps the first candidate the field accepts, so a
later (more permissive) strategy never overrides an earlier one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Pattern, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import PreformattedString, Tag

from .config import DEFAULT_RANKING_SENTINELS, DEFAULT_VOTE_SENTINELS
from .models import DocumentSnapshot
from .utils import normalize_text, parse_count, parse_leading_int

logger = logging.getLogger("votewatch")

MAX_VOTE_COUNT = 1_000_000
MAX_RANKING = 10_000
SHORT_NODE_CHARS = 100
NOISE_TAGS = ["script", "style", "noscript", "template"]

KeywordGroups = Tuple[Tuple[str, ...], ...]


def _compile(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


def mentions(text: str, groups: KeywordGroups) -> bool:
    """True when ``text`` holds at least one keyword from every group."""
    lowered = text.lower()
    return all(any(keyword in lowered for keyword in group) for group in groups)


class ParsedDocument:
    """Parsed views of a :class:`DocumentSnapshot` shared by all strategies."""

    def __init__(self, snapshot: DocumentSnapshot) -> None:
        self.snapshot = snapshot
        self.markup = snapshot.html
        self.soup = BeautifulSoup(snapshot.html, "html.parser")
        self.content = BeautifulSoup(snapshot.html, "html.parser")
        for tag in self.content(NOISE_TAGS):
            tag.decompose()
        self._texts: Dict[int, str] = {}

    @property
    def body(self) -> Tag:
        return self.content.body or self.content

    @property
    def title(self) -> str:
        if self.snapshot.title:
            return self.snapshot.title
        if self.soup.title and self.soup.title.string:
            return self.soup.title.string.strip()
        return ""

    @property
    def body_text(self) -> str:
        if self.snapshot.text is not None:
            return self.snapshot.text
        return "\n".join(self.body.stripped_strings)

    def text_of(self, element: Tag) -> str:
        key = id(element)
        if key not in self._texts:
            self._texts[key] = normalize_text(" ".join(element.stripped_strings))
        return self._texts[key]

    def text_nodes(self) -> Iterator[Tuple[str, Tag]]:
        """Yield each non-empty text node of the body with its parent element."""
        for node in self.body.find_all(string=True):
            if isinstance(node, PreformattedString) or node.parent is None:
                continue
            text = node.strip()
            if text:
                yield text, node.parent


@dataclass(frozen=True)
class FieldSpec:
    """Everything the strategies need to know about one numeric field."""

    name: str
    upper_bound: int
    sentinels: FrozenSet[int]
    parse: Callable[[str], Optional[int]]
    keywords: KeywordGroups
    element_patterns: Tuple[Pattern[str], ...]
    text_patterns: Tuple[Pattern[str], ...]
    number_pattern: Pattern[str]
    container_selector: str
    row_selector: str
    row_keywords: KeywordGroups
    hint_selector: str
    data_attributes: Tuple[str, ...]
    hint_text_needs_context: bool
    markup_patterns: Tuple[Pattern[str], ...]
    node_value_pattern: Pattern[str]
    node_keywords: KeywordGroups
    node_phrase_patterns: Tuple[Pattern[str], ...]
    script_patterns: Tuple[Pattern[str], ...]
    loose_keywords: KeywordGroups

    def accepts(self, value: Optional[int]) -> bool:
        return value is not None and 0 < value < self.upper_bound and value not in self.sentinels

    def first_number(self, text: str) -> Optional[int]:
        match = self.number_pattern.search(text or "")
        return self.parse(match.group(1)) if match else None


class Strategy:
    """One tier of the cascade."""

    kind = "strategy"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        raise NotImplementedError


class KeywordContextStrategy(Strategy):
    """Phrase patterns applied to every element that mentions the field's keywords.

    Innermost elements are tried first so a short "1,234 votes ce mois"
    label wins over the whole page the label happens to sit in.
    """

    kind = "keyword-context"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        elements = [
            element
            for element in doc.body.find_all(True)
            if mentions(doc.text_of(element), target.keywords)
        ]
        elements.sort(key=lambda element: len(doc.text_of(element)))
        for element in elements:
            text = doc.text_of(element)
            for pattern in target.element_patterns:
                match = pattern.search(text)
                if match:
                    yield target.parse(match.group(1))


class BodyTextStrategy(Strategy):
    """Every match of the phrase patterns in the page's visible text."""

    kind = "body-text"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        body_text = doc.body_text
        for pattern in target.text_patterns:
            for match in pattern.finditer(body_text):
                yield target.parse(match.group(1))


class ContainerRowsStrategy(Strategy):
    """Rows of tables and lists whose text mentions the field."""

    kind = "container-rows"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        for container in doc.content.select(target.container_selector):
            for row in container.select(target.row_selector):
                text = doc.text_of(row)
                if mentions(text, target.row_keywords):
                    yield target.first_number(text)


class AttributeHintStrategy(Strategy):
    """Elements whose data attributes, class or id point at the field."""

    kind = "attribute-hint"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        elements = doc.content.select(target.hint_selector)
        for element in elements:
            for attribute in target.data_attributes:
                value = element.get(attribute)
                if value:
                    yield target.parse(value if isinstance(value, str) else " ".join(value))
        for element in elements:
            text = doc.text_of(element)
            if target.hint_text_needs_context and not mentions(text, target.keywords):
                continue
            yield target.first_number(text)


class MarkupFallbackStrategy(Strategy):
    """Markup-aware patterns run over the serialized document."""

    kind = "markup-fallback"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        for pattern in target.markup_patterns:
            match = pattern.search(doc.markup)
            if match:
                yield target.parse(match.group("value"))


class TextNodeWalkStrategy(Strategy):
    """Short text nodes read together with their parent element's text."""

    kind = "text-node-walk"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        for text, parent in doc.text_nodes():
            if len(text) >= SHORT_NODE_CHARS:
                continue
            if target.node_value_pattern.fullmatch(text) and mentions(doc.text_of(parent), target.node_keywords):
                yield target.first_number(text)
            elif any(pattern.search(text) for pattern in target.node_phrase_patterns):
                yield target.first_number(text)


class ScriptDataStrategy(Strategy):
    """JSON fields and assignments inside inline scripts."""

    kind = "script-data"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        for script in doc.soup.find_all("script"):
            source = script.string or script.get_text()
            if not source:
                continue
            for pattern in target.script_patterns:
                match = pattern.search(source)
                if match:
                    yield target.parse(match.group(1))


class ContextScanStrategy(Strategy):
    """Last resort: any number whose parent element mentions the field at all."""

    kind = "context-scan"

    def candidates(self, doc: ParsedDocument, target: FieldSpec) -> Iterator[Optional[int]]:
        for text, parent in doc.text_nodes():
            if not any(char.isdigit() for char in text):
                continue
            if mentions(doc.text_of(parent), target.loose_keywords):
                yield target.first_number(text)


DEFAULT_STRATEGIES: Tuple[Strategy, ...] = (
    KeywordContextStrategy(),
    BodyTextStrategy(),
    ContainerRowsStrategy(),
    AttributeHintStrategy(),
    MarkupFallbackStrategy(),
    TextNodeWalkStrategy(),
    ScriptDataStrategy(),
    ContextScanStrategy(),
)


class StrategyChain:
    """Run strategies in order and keep the first value the field accepts."""

    def __init__(self, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES) -> None:
        self.strategies: List[Strategy] = list(strategies)

    @property
    def kinds(self) -> List[str]:
        return [strategy.kind for strategy in self.strategies]

    def resolve(self, doc: ParsedDocument, target: FieldSpec) -> Tuple[Optional[int], Optional[str]]:
        for strategy in self.strategies:
            for value in strategy.candidates(doc, target):
                if target.accepts(value):
                    logger.debug("%s=%s found by %s", target.name, value, strategy.kind)
                    return value, strategy.kind
        logger.debug("%s not found on %s", target.name, doc.snapshot.url)
        return None, None


_MONTH = r"(?:ce\s+mois(?:\s*-?\s*ci)?|du\s+mois|(?:this|per|a)\s+month|mois|month)"
_VOTES_NUMBER = r"(\d[\d,]*)"
_VOTE_PHRASES = (
    rf"{_VOTES_NUMBER}\s*votes?\s*(?:en\s+)?{_MONTH}",
    rf"{_MONTH}\s*:?\s*{_VOTES_NUMBER}\s*votes?",
    rf"votes?\s*{_MONTH}\s*:?\s*{_VOTES_NUMBER}",
    rf"monthly\s+votes?\s*:?\s*{_VOTES_NUMBER}",
)
_TAG_GAP = r"[^<\w]*(?:<[^>]*>[^<\w]*){0,6}"

_RANK_LABEL = r"(?:classement|rank(?:ing)?|position)"
_RANK_PHRASES = (
    rf"{_RANK_LABEL}\s*:?\s*#?(\d+)",
    rf"#(\d+)\s*(?:{_RANK_LABEL}|sur\s+top)",
    r"(\d+)\s+(?:sur\s+)?top\s+serveurs?",
    r"(\d+)\s*(?:e|è|ème|eme|er|th|st|nd|rd)\s+(?:place|position)",
    r"top\s+(\d+)",
)


def vote_count_field(sentinels: Iterable[int] = DEFAULT_VOTE_SENTINELS) -> FieldSpec:
    """Describe the monthly vote counter."""
    return FieldSpec(
        name="voteCount",
        upper_bound=MAX_VOTE_COUNT,
        sentinels=frozenset(sentinels),
        parse=parse_count,
        keywords=(("vote",), ("mois", "month")),
        element_patterns=_compile(*_VOTE_PHRASES, rf"{_VOTES_NUMBER}\s*votes?"),
        text_patterns=_compile(*_VOTE_PHRASES),
        number_pattern=re.compile(_VOTES_NUMBER),
        container_selector="table, .table, ul, ol, dl, .list, .stats-list",
        row_selector=(
            'tr, li, dt, dd, .stat-item, .info-item, .item, div[class*="stat"], div[class*="info"]'
        ),
        row_keywords=(("vote",), ("mois", "month")),
        hint_selector=(
            '[data-votes], [data-vote-count], [data-votes-month], [class*="vote"], [id*="vote"], '
            '[class*="stat"], [id*="stat"]'
        ),
        data_attributes=("data-votes", "data-vote-count", "data-votes-month"),
        hint_text_needs_context=True,
        markup_patterns=_compile(
            rf"(?:votes?\s+ce\s+mois|ce\s+mois\s+votes?|votes?\s+this\s+month){_TAG_GAP}(?P<value>\d[\d,]*)",
            rf"<[^>]*votes?[^>]*>{_TAG_GAP}(?P<value>\d[\d,]*)",
            r"(?P<value>\d[\d,]*)[^<\d]*(?:votes?\s+ce\s+mois|ce\s+mois\s+votes?|votes?\s+this\s+month)",
            rf"mois[^>]*>{_TAG_GAP}(?P<value>\d[\d,]*)[^<\d]*votes?",
        ),
        node_value_pattern=re.compile(r"\d[\d,]*"),
        node_keywords=(("vote",), ("mois", "month")),
        node_phrase_patterns=_compile(_VOTE_PHRASES[0], _VOTE_PHRASES[1]),
        script_patterns=_compile(
            r"[\"']?(?:votes?|vote_?count|votes_?count)[\"']?\s*[:=]\s*[\"']?(\d[\d,]*)",
        ),
        loose_keywords=(("vote", "mois", "month"),),
    )


def ranking_field(sentinels: Iterable[int] = DEFAULT_RANKING_SENTINELS) -> FieldSpec:
    """Describe the ranking position."""
    return FieldSpec(
        name="ranking",
        upper_bound=MAX_RANKING,
        sentinels=frozenset(sentinels),
        parse=parse_leading_int,
        keywords=(("classement", "rank", "position", "top serveur"),),
        element_patterns=_compile(r"#(\d+)", *_RANK_PHRASES),
        text_patterns=_compile(*_RANK_PHRASES),
        number_pattern=re.compile(r"#?(\d+)"),
        container_selector="table, .table, ul, ol, dl, .list",
        row_selector='tr, li, dt, dd, .item, .stat-item, div[class*="rank"], div[class*="position"]',
        row_keywords=(("classement", "rank", "position", "top"),),
        hint_selector=(
            '[data-rank], [data-position], [data-ranking], .badge, .tag, .label, '
            '[class*="badge"], [class*="tag"], .medal, .trophy, [class*="rank"], [id*="rank"]'
        ),
        data_attributes=("data-rank", "data-position", "data-ranking"),
        hint_text_needs_context=False,
        markup_patterns=_compile(
            rf"{_RANK_LABEL}{_TAG_GAP}(?P<value>\d+)",
            rf"#(?P<value>\d+)[^<\d]*{_RANK_LABEL}",
            rf"<[^>]*(?:rank|ranking|position)[^>]*>{_TAG_GAP}(?P<value>\d+)",
        ),
        node_value_pattern=re.compile(r"#?\d+"),
        node_keywords=(("classement", "rank"),),
        node_phrase_patterns=_compile(r"classement\s*:?\s*#?\d+", r"rank(?:ing)?\s*:?\s*#?\d+"),
        script_patterns=_compile(
            r"[\"']?(?:rank(?:ing)?|position)[\"']?\s*[:=]\s*[\"']?(\d+)",
        ),
        loose_keywords=(("classement", "rank", "position", "top"),),
    )
