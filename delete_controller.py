# delete_controller.py
from __future__ import annotations

from typing import Any

from errors import BackendError, NotFoundError, StorageError
from web_controller import BaseController
from web_views import TITLES, confirm_delete_view, success_and_close


def _label(kind: str, entity: Any) -> str:
    if kind == "payment":
        return f"{entity.amount} on {entity.date.isoformat()} ({entity.type})"
    return getattr(entity, "name", None) or getattr(entity, "title", "") or f"#{entity.id}"


class DeleteController(BaseController):
    """
    Delete popup for any entity.
    GET  /<kind>/delete?id=...  -> confirmation window with a short card
    POST /<kind>/delete         -> delete, postMessage('<kind>_deleted') + close
    """

    def _lookup(self, kind: str, entity_id: int) -> Any:
        if kind == "payment":
            return self.service.repos.payments.require(entity_id)
        return self.service.entity(kind, entity_id)

    def confirm(self, kind: str, environ, start_response) -> list[bytes]:
        entity_id = self._id(self._first(self._query(environ), "id"))
        if entity_id is None:
            return self._bad_id(start_response)
        try:
            entity = self._lookup(kind, entity_id)
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        body = confirm_delete_view(kind, entity_id, _label(kind, entity))
        return self._page(environ, start_response, f"Delete {TITLES[kind].lower()}", body,
                          nav=False)

    def remove(self, kind: str, environ, start_response) -> list[bytes]:
        form = self._read_post(environ)
        entity_id = self._id(form.get("id"))
        if entity_id is None:
            return self._bad_id(start_response)
        try:
            entity = self._lookup(kind, entity_id)
            self.service.delete(kind, entity_id)
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        except (BackendError, StorageError) as e:
            body = confirm_delete_view(kind, entity_id, f"#{entity_id}", error=str(e))
            return self._page(environ, start_response, "Delete failed", body,
                              status="502 Bad Gateway", nav=False)

        body = success_and_close(f"{TITLES[kind]} deleted: {_label(kind, entity)}",
                                 event_type=f"{kind}_deleted", payload={"id": entity_id})
        return self._page(environ, start_response, "Deleted", body, nav=False)
