"""Data models exchanged between the render page, the engine and callers."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import MalformedExtractionResult


def _require_int(data: Dict[str, Any], key: str, *, optional: bool = False) -> Optional[int]:
    value = data.get(key)
    if value is None and optional:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedExtractionResult(f"Field {key!r} must be an integer, got {value!r}")
    return value


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedExtractionResult(f"Field {key!r} must be a string, got {value!r}")
    return value


def _load_object(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, str):
        raise MalformedExtractionResult(f"{what} must be a JSON string, got {type(payload).__name__}")
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise MalformedExtractionResult(f"Invalid JSON {what}: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedExtractionResult(f"{what} must be a JSON object")
    return data


@dataclass(frozen=True)
class RemainingTime:
    """Cooldown split into clock fields."""

    hours: int
    minutes: int
    seconds: int

    def to_dict(self) -> Dict[str, int]:
        return {"hours": self.hours, "minutes": self.minutes, "seconds": self.seconds}

    @classmethod
    def from_dict(cls, data: Any) -> "RemainingTime":
        if not isinstance(data, dict):
            raise MalformedExtractionResult("remainingTime must be an object")
        return cls(
            hours=_require_int(data, "hours"),
            minutes=_require_int(data, "minutes"),
            seconds=_require_int(data, "seconds"),
        )


@dataclass(frozen=True)
class ExtractionInfo:
    """Diagnostics attached to every extraction, successful or not."""

    page_title: str
    url: str
    body_text_sample: str
    vote_count_found: bool = False
    ranking_found: bool = False
    vote_count_source: Optional[str] = None
    ranking_source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageTitle": self.page_title,
            "url": self.url,
            "bodyTextSample": self.body_text_sample,
            "voteCountFound": self.vote_count_found,
            "rankingFound": self.ranking_found,
            "voteCountSource": self.vote_count_source,
            "rankingSource": self.ranking_source,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ExtractionInfo":
        if not isinstance(data, dict):
            raise MalformedExtractionResult("extractionInfo must be an object")
        return cls(
            page_title=_require_str(data, "pageTitle"),
            url=_require_str(data, "url"),
            body_text_sample=_require_str(data, "bodyTextSample"),
            vote_count_found=bool(data.get("voteCountFound", False)),
            ranking_found=bool(data.get("rankingFound", False)),
            vote_count_source=data.get("voteCountSource"),
            ranking_source=data.get("rankingSource"),
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Cooldown state, monthly votes and ranking recovered from one page."""

    available: bool
    remaining_ms: int
    info: ExtractionInfo
    remaining_time: Optional[RemainingTime] = None
    vote_count: Optional[int] = None
    ranking: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": True,
            "available": self.available,
            "remainingMs": self.remaining_ms,
            "voteCount": self.vote_count,
            "ranking": self.ranking,
            "extractionInfo": self.info.to_dict(),
        }
        if self.remaining_time is not None:
            data["remainingTime"] = self.remaining_time.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionResult":
        available = data.get("available")
        if not isinstance(available, bool):
            raise MalformedExtractionResult(f"Field 'available' must be a boolean, got {available!r}")
        remaining_ms = _require_int(data, "remainingMs")
        if remaining_ms < 0:
            raise MalformedExtractionResult("Field 'remainingMs' must not be negative")
        remaining_time = None
        if data.get("remainingTime") is not None:
            remaining_time = RemainingTime.from_dict(data["remainingTime"])
        return cls(
            available=available,
            remaining_ms=remaining_ms,
            info=ExtractionInfo.from_dict(data.get("extractionInfo", {})),
            remaining_time=remaining_time,
            vote_count=_require_int(data, "voteCount", optional=True),
            ranking=_require_int(data, "ranking", optional=True),
        )

    @classmethod
    def from_json(cls, payload: str) -> "ExtractionResult":
        return cls.from_dict(_load_object(payload, "extraction result"))


@dataclass(frozen=True)
class DocumentSnapshot:
    """Rendered document state captured from the live page in one evaluation."""

    url: str
    title: str
    html: str
    text: Optional[str] = None
    ready_state: str = "complete"

    @classmethod
    def from_json(cls, payload: Any) -> "DocumentSnapshot":
        data = _load_object(payload, "document snapshot")
        html = data.get("html")
        if not isinstance(html, str):
            raise MalformedExtractionResult("Document snapshot is missing its markup")
        text = data.get("text")
        if text is not None and not isinstance(text, str):
            raise MalformedExtractionResult("Document snapshot text must be a string")
        return cls(
            url=_require_str(data, "url"),
            title=_require_str(data, "title"),
            html=html,
            text=text,
            ready_state=_require_str(data, "readyState") or "complete",
        )


@dataclass(frozen=True)
class FetchRequest:
    """A queued call waiting for its turn on the render page."""

    url: str
    future: "asyncio.Future[ExtractionResult]" = field(compare=False, repr=False)
