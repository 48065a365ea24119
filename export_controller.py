# export_controller.py
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from entities import PAYMENT_TYPES
from errors import BackendError, FormValidationError, NotFoundError
from export import ENTITY_EXPORT_COLUMNS, export_filename, payments_csv_bytes
from services import DashboardService
from validators import Validator as V
from web_controller import BaseController
from web_views import exports_view


class ExportController(BaseController):
    """
    GET /exports                 -> filter form + preview table
    GET /export/payments.csv     -> the same selection as a CSV download
    GET /export/entity.csv       -> one client / vendor / labor's payments
    """

    def __init__(self, service: DashboardService, *,
                 today: Callable[[], date] = date.today) -> None:
        super().__init__(service)
        self._today = today

    def _selection(self, environ) -> tuple[dict[str, str], str, Optional[date], Optional[date]]:
        q = self._query(environ)
        ui = {"type": self._first(q, "type"), "start": self._first(q, "start"),
              "end": self._first(q, "end")}
        errors: dict[str, str] = {}
        ptype = ui["type"] or "all"
        if ptype != "all" and ptype not in PAYMENT_TYPES:
            errors["type"] = f"Field 'type' must be one of: all, {', '.join(PAYMENT_TYPES)}."
        start = end = None
        try:
            start = V.iso_date("start", ui["start"], required=False)
        except ValueError as e:
            errors["start"] = str(e)
        try:
            end = V.iso_date("end", ui["end"], required=False)
        except ValueError as e:
            errors["end"] = str(e)
        if errors:
            raise FormValidationError(errors)
        return ui, ptype, start, end

    def index(self, environ, start_response) -> list[bytes]:
        q = self._query(environ)
        ui = {"type": self._first(q, "type"), "start": self._first(q, "start"),
              "end": self._first(q, "end")}
        try:
            ui, ptype, start, end = self._selection(environ)
            payments = self.service.export_payments(payment_type=ptype, start=start, end=end)
        except FormValidationError as e:
            return self._page(environ, start_response, "Exports",
                              exports_view([], filters=ui, errors=e.errors),
                              status="400 Bad Request")
        except BackendError as e:
            return self._page(environ, start_response, "Exports",
                              exports_view([], filters=ui), status="502 Bad Gateway",
                              toast=str(e))
        return self._page(environ, start_response, "Exports", exports_view(payments, filters=ui))

    @staticmethod
    def _csv(start_response, filename: str, data: bytes) -> list[bytes]:
        start_response("200 OK", [
            ("Content-Type", "text/csv; charset=utf-8"),
            ("Content-Disposition", f'attachment; filename="{filename}"'),
            ("Content-Length", str(len(data))),
        ])
        return [data]

    def payments_csv(self, environ, start_response) -> list[bytes]:
        try:
            _, ptype, start, end = self._selection(environ)
            payments = self.service.export_payments(payment_type=ptype, start=start, end=end)
        except FormValidationError as e:
            start_response("400 Bad Request", [("Content-Type", "text/plain; charset=utf-8")])
            return ["; ".join(e.errors.values()).encode("utf-8")]
        except BackendError as e:
            start_response("502 Bad Gateway", [("Content-Type", "text/plain; charset=utf-8")])
            return [str(e).encode("utf-8")]
        return self._csv(start_response, export_filename(ptype, self._today()),
                         payments_csv_bytes(payments))

    def entity_csv(self, environ, start_response) -> list[bytes]:
        q = self._query(environ)
        kind = self._first(q, "kind")
        entity_id = self._id(self._first(q, "id"))
        if kind not in ("client", "vendor", "labor") or entity_id is None:
            return self._bad_id(start_response)
        try:
            name, payments = self.service.entity_payments(kind, entity_id)
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        except BackendError as e:
            start_response("502 Bad Gateway", [("Content-Type", "text/plain; charset=utf-8")])
            return [str(e).encode("utf-8")]
        return self._csv(start_response, export_filename(kind, self._today(), entity_name=name),
                         payments_csv_bytes(payments, columns=ENTITY_EXPORT_COLUMNS))
