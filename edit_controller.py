# edit_controller.py
from __future__ import annotations

import logging
from typing import Any, Optional

from errors import BackendError, FormValidationError, NotFoundError
from forms import form_values
from web_controller import BaseController
from web_views import TITLES, form_view, success_and_close

logger = logging.getLogger(__name__)


class EditController(BaseController):
    """
    Add / edit popups for clients, vendors, labors, contracts and tasks,
    plus the payment popups and the dashboard's quick task status change.
    GET  /<kind>/add            -> empty form
    POST /<kind>/create         -> create; on success postMessage + close
    GET  /<kind>/edit?id=...    -> pre-filled form
    POST /<kind>/update         -> save; on success postMessage + close
    Validation errors re-render the form with messages next to the fields
    (400); backend errors re-render it with a toast (502).
    """

    KINDS = ("client", "vendor", "labor", "contract", "task")

    def _choices(self, kind: str) -> dict[str, list[tuple[str, str]]]:
        if kind == "contract":
            return {
                "client_id": [(str(c.id), c.name) for c in self.service.clients()],
                "vendor_id": [(str(v.id), v.name) for v in self.service.vendors()],
                "labor_id": [(str(lb.id), lb.name) for lb in self.service.labors()],
            }
        if kind == "task":
            return {"client_id": [(str(c.id), c.name) for c in self.service.clients()]}
        return {}

    def _form(self, environ, start_response, kind: str, *, entity_id: Optional[int] = None,
              values: Optional[dict[str, str]] = None, errors: Optional[dict[str, str]] = None,
              status: str = "200 OK", toast: Optional[str] = None) -> list[bytes]:
        title = TITLES[kind]
        if entity_id is None:
            body = form_view(kind, title=f"New {title.lower()}", action=f"/{kind}/create",
                             values=values, errors=errors, choices=self._choices(kind))
        else:
            body = form_view(kind, title=f"Edit {title.lower()} #{entity_id}",
                             action=f"/{kind}/update", submit_text="Save changes",
                             values=values, errors=errors, hidden={"id": entity_id},
                             choices=self._choices(kind))
        return self._page(environ, start_response, title, body, status=status, toast=toast,
                          nav=False)

    # ===== entity forms =====

    def add_form(self, kind: str, environ, start_response) -> list[bytes]:
        return self._form(environ, start_response, kind)

    def edit_form(self, kind: str, environ, start_response) -> list[bytes]:
        entity_id = self._id(self._first(self._query(environ), "id"))
        if entity_id is None:
            return self._bad_id(start_response)
        try:
            entity = self.service.entity(kind, entity_id)
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        return self._form(environ, start_response, kind, entity_id=entity_id,
                          values=form_values(entity))

    def _save(self, kind: str, environ, start_response, *, update: bool) -> list[bytes]:
        form = self._read_post(environ)
        entity_id: Optional[int] = None
        if update:
            entity_id = self._id(form.get("id"))
            if entity_id is None:
                return self._bad_id(start_response)
        try:
            saved = self.service.save(kind, form, entity_id)
        except FormValidationError as e:
            return self._form(environ, start_response, kind, entity_id=entity_id, values=form,
                              errors=e.errors, status="400 Bad Request")
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        except BackendError as e:
            return self._form(environ, start_response, kind, entity_id=entity_id, values=form,
                              status="502 Bad Gateway", toast=str(e))

        event = f"{kind}_updated" if update else f"{kind}_added"
        message = f"{TITLES[kind]} saved" if update else f"{TITLES[kind]} added"
        body = success_and_close(message, event_type=event, payload={"id": saved.id})
        return self._page(environ, start_response, "Done", body, nav=False)

    def create(self, kind: str, environ, start_response) -> list[bytes]:
        return self._save(kind, environ, start_response, update=False)

    def update(self, kind: str, environ, start_response) -> list[bytes]:
        return self._save(kind, environ, start_response, update=True)

    # ===== payments =====

    def _payment_form(self, environ, start_response, *, owner: str, owner_id: int,
                      title: str, values: Optional[dict[str, str]] = None,
                      errors: Optional[dict[str, str]] = None, status: str = "200 OK",
                      toast: Optional[str] = None) -> list[bytes]:
        body = form_view("payment", title=title, action=f"/{owner}/payment/add",
                         values=values, errors=errors, hidden={f"{owner}_id": owner_id})
        return self._page(environ, start_response, "Payment", body, status=status,
                          toast=toast, nav=False)

    def payment(self, owner: str, environ, start_response) -> list[bytes]:
        """GET shows the popup, POST records the payment. owner: contract | client."""
        key = f"{owner}_id"
        posting = environ.get("REQUEST_METHOD", "GET").upper() == "POST"
        form: dict[str, str] = self._read_post(environ) if posting else {}
        owner_id = self._id(form.get(key) if posting else self._first(self._query(environ), key))
        if owner_id is None:
            return self._bad_id(start_response)
        try:
            target: Any = (self.service.contract(owner_id) if owner == "contract"
                           else self.service.client(owner_id))
        except NotFoundError as e:
            return self._not_found(start_response, str(e))

        label = target.title if owner == "contract" else target.name
        title = f"Payment for {label}"
        if not posting:
            return self._payment_form(environ, start_response, owner=owner, owner_id=owner_id,
                                      title=title)
        try:
            if owner == "contract":
                created = self.service.add_contract_payment(owner_id, form)
            else:
                created = self.service.add_client_payment(owner_id, form)
        except FormValidationError as e:
            return self._payment_form(environ, start_response, owner=owner, owner_id=owner_id,
                                      title=title, values=form, errors=e.errors,
                                      status="400 Bad Request")
        except BackendError as e:
            return self._payment_form(environ, start_response, owner=owner, owner_id=owner_id,
                                      title=title, values=form, status="502 Bad Gateway",
                                      toast=str(e))
        body = success_and_close("Payment recorded", event_type="payment_added",
                                 payload={"id": created.id})
        return self._page(environ, start_response, "Done", body, nav=False)

    # ===== tasks =====

    def task_status(self, environ, start_response) -> list[bytes]:
        form = self._read_post(environ)
        task_id = self._id(form.get("id"))
        if task_id is None:
            return self._bad_id(start_response)
        try:
            self.service.set_task_status(task_id, form.get("status", ""))
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        except (FormValidationError, BackendError) as e:
            body = "<h1>Task not updated</h1><p><a href='/'>Back to the dashboard</a></p>"
            status = "400 Bad Request" if isinstance(e, FormValidationError) else "502 Bad Gateway"
            return self._page(environ, start_response, "Task", body, status=status,
                              toast=str(e))
        return self._redirect(start_response, "/")
