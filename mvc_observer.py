# mvc_observer.py
"""
Observer plumbing shared by the data store (entity mutations feeding the
query cache) and the session state (sign-in / sign-out).

Events are plain strings such as "client_added" or "signed_in"; the payload
is whatever the subject wants observers to see (usually the entity).
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class Observer(Protocol):
    def update(self, event: str, payload: Any) -> None: ...


class Subject:
    def __init__(self) -> None:
        # observer -> events it listens to (None = every event)
        self._subscriptions: dict[int, tuple[Observer, Optional[frozenset[str]]]] = {}

    def attach(self, obs: Observer, *, events: Optional[Iterable[str]] = None) -> None:
        """Subscribe obs; re-attaching replaces its event selection."""
        self._subscriptions[id(obs)] = (obs, frozenset(events) if events is not None else None)

    def detach(self, obs: Observer) -> None:
        self._subscriptions.pop(id(obs), None)

    @property
    def observers(self) -> tuple[Observer, ...]:
        return tuple(obs for obs, _ in self._subscriptions.values())

    def notify(self, event: str, payload: Any) -> None:
        targets = [obs for obs, wanted in list(self._subscriptions.values())
                   if wanted is None or event in wanted]
        logger.debug("event %s -> %d observer(s)", event, len(targets))
        for obs in targets:
            obs.update(event, payload)
