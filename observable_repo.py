# observable_repo.py
from __future__ import annotations

import logging
from typing import Any

from mvc_observer import Subject
from repos import Repos

logger = logging.getLogger(__name__)


class ObservableStore(Subject):
    """
    Subject over the repositories: every create / update / delete goes
    through here, then observers get one event.

    Events:
      - "<kind>_added"    payload: the created entity
      - "<kind>_updated"  payload: the updated entity
      - "<kind>_deleted"  payload: the deleted entity
    where kind is client, vendor, labor, contract, payment, task or document.
    Reads are not routed through the store.
    """

    def __init__(self, repos: Repos) -> None:
        super().__init__()
        self.repos = repos

    # ===== CRUD =====
    def add(self, kind: str, entity: Any) -> Any:
        obj = self.repos.by_kind(kind).create(entity)
        self.notify(f"{kind}_added", obj)
        return obj

    def replace(self, kind: str, entity_id: int, entity: Any) -> Any:
        obj = self.repos.by_kind(kind).update(entity_id, entity)
        self.notify(f"{kind}_updated", obj)
        return obj

    def patch(self, kind: str, entity_id: int, fields: dict[str, Any]) -> Any:
        obj = self.repos.by_kind(kind).patch(entity_id, fields)
        self.notify(f"{kind}_updated", obj)
        return obj

    def delete(self, kind: str, entity_id: int) -> Any:
        obj = self.repos.by_kind(kind).delete(entity_id)
        self.notify(f"{kind}_deleted", obj)
        return obj
