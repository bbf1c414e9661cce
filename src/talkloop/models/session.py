"""Conversation session, turn, and search context models."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from talkloop.core.cancellation import CancellationToken
from talkloop.models.enums import Phase
from talkloop.models.messages import Location, Pagination, SearchRequest

if TYPE_CHECKING:
    from talkloop.voice.capture.base import CaptureStream
    from talkloop.voice.monitor import EnergyMonitor

DEFAULT_PLATFORMS = ("snoonu", "rafeeq", "talabat")


def _new_id() -> str:
    return uuid.uuid4().hex


class SearchPreferences(BaseModel):
    """Search context applied to every search a session issues."""

    location: Location = Field(default_factory=Location)
    platforms: list[str] = Field(default_factory=lambda: list(DEFAULT_PLATFORMS))
    sort: str = "price"
    page: int = Field(default=1, ge=1)
    price_min: float | None = None
    price_max: float | None = None
    time_min: int | None = None
    time_max: int | None = None
    restaurant_filter: str = ""
    group_by_restaurant: bool = False

    def toggle_platform(self, platform: str) -> bool:
        """Add or remove *platform*.

        Returns:
            False when the toggle was refused because it would leave no
            platform selected.
        """
        if platform in self.platforms:
            if len(self.platforms) == 1:
                return False
            self.platforms = [p for p in self.platforms if p != platform]
        else:
            self.platforms = [*self.platforms, platform]
        return True

    def update_filters(self, **filters: Any) -> None:
        """Merge *filters* into the current ones. Unknown names raise ``ValueError``."""
        allowed = {"sort", "price_min", "price_max", "time_min", "time_max", "restaurant_filter"}
        unknown = set(filters) - allowed
        if unknown:
            raise ValueError(f"Unknown search filters: {', '.join(sorted(unknown))}")
        for key, value in filters.items():
            setattr(self, key, value)

    def reset_filters(self) -> None:
        self.sort = "price"
        self.price_min = None
        self.price_max = None
        self.time_min = None
        self.time_max = None
        self.restaurant_filter = ""

    def to_request(
        self, terms: list[str], *, locale: str, include_audio: bool = True
    ) -> SearchRequest:
        return SearchRequest(
            terms=list(terms),
            location=self.location.model_copy(),
            locale=locale,
            platforms=list(self.platforms),
            sort=self.sort,
            page=self.page,
            price_min=self.price_min,
            price_max=self.price_max,
            time_min=self.time_min,
            time_max=self.time_max,
            restaurant_filter=self.restaurant_filter,
            group_by_restaurant=self.group_by_restaurant,
            include_audio=include_audio,
        )


@dataclass
class ConversationSession:
    """Cross-turn state owned by a single :class:`TurnController`.

    ``active`` enables automatic re-listening after every completed
    Speaking phase. ``pending_cancel`` is the token of the turn currently
    in flight, if any.
    """

    id: str = field(default_factory=_new_id)
    active: bool = False
    language: str = "en"
    pending_cancel: CancellationToken | None = None
    last_topic: list[str] = field(default_factory=list)
    last_results: list[dict[str, Any]] = field(default_factory=list)
    pagination: Pagination | None = None
    preferences: SearchPreferences = field(default_factory=SearchPreferences)
    activated: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def reset(self, *, language: str | None = None) -> None:
        """Return to a freshly created session with a new identifier."""
        if self.pending_cancel is not None:
            self.pending_cancel.cancel("session reset")
        self.id = _new_id()
        self.active = False
        self.language = language or self.language
        self.pending_cancel = None
        self.last_topic = []
        self.last_results = []
        self.pagination = None
        self.preferences = SearchPreferences()
        self.activated = False
        self.created_at = datetime.now(UTC)


@dataclass
class Turn:
    """One listen, interpret, (search), speak cycle.

    Holds the resources the turn owns so a single cleanup routine can
    release them on every exit path.
    """

    token: CancellationToken = field(default_factory=CancellationToken)
    phase: Phase = Phase.IDLE
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    owns_capture: bool = False
    stream: CaptureStream | None = None
    monitor: EnergyMonitor | None = None
    speech_end: asyncio.Event | None = None
    speaking: bool = False
    stop_requested: bool = False
    span_id: str | None = None
    phase_span_id: str | None = None
