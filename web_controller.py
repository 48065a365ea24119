# web_controller.py
from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Iterable, Optional
from urllib.parse import parse_qs, urlencode

from errors import BackendError, NotFoundError
from listing import ListFilter, SortSpec
from mvc_observer import Observer
from services import SORTABLE, DashboardService
from web_views import (
    contract_detail_view,
    client_detail_view,
    dashboard_view,
    document_detail_view,
    layout,
    list_view,
    not_found_view,
    party_detail_view,
    task_detail_view,
)

logger = logging.getLogger(__name__)

HTML = [("Content-Type", "text/html; charset=utf-8")]

StartResponse = Callable[..., Any]


class BaseController:
    """Request helpers shared by every controller."""

    def __init__(self, service: DashboardService) -> None:
        self.service = service

    # ===== helpers =====
    @staticmethod
    def _query(environ) -> dict[str, list[str]]:
        return parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)

    @staticmethod
    def _first(params: dict[str, list[str]], key: str, default: str = "") -> str:
        return (params.get(key, [default]) or [default])[0]

    @staticmethod
    def _to_int(val: str, default: int) -> int:
        try:
            v = int(val)
            return v if v > 0 else default
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _id(val: Optional[str]) -> Optional[int]:
        try:
            v = int(val or "")
        except ValueError:
            return None
        return v if v > 0 else None

    @staticmethod
    def _build_link(base_path: str, params: dict[str, str]) -> str:
        clean = {k: v for k, v in params.items() if v not in (None, "", [])}
        return f"{base_path}?{urlencode(clean)}" if clean else base_path

    @staticmethod
    def _read_body(environ) -> bytes:
        try:
            size = int(environ.get("CONTENT_LENGTH", "0") or 0)
        except ValueError:
            size = 0
        return environ["wsgi.input"].read(size) if size > 0 else b""

    @classmethod
    def _read_post(cls, environ) -> dict[str, str]:
        body = cls._read_body(environ).decode("utf-8", errors="replace")
        parsed = parse_qs(body, keep_blank_values=True)
        return {k: (v[0] if v else "") for k, v in parsed.items()}

    @staticmethod
    def _user(environ) -> Optional[str]:
        session = environ.get("dashboard.session")
        user = getattr(session, "current_user", None)
        return user.email if user else None

    def _page(self, environ, start_response: StartResponse, title: str, body: str, *,
              status: str = "200 OK", toast: Optional[str] = None, nav: bool = True) -> list[bytes]:
        start_response(status, HTML)
        return [layout(title, body, nav=nav, toast=toast, user=self._user(environ))]

    @staticmethod
    def _not_found(start_response: StartResponse, msg: str) -> list[bytes]:
        start_response("404 Not Found", HTML)
        return [not_found_view(msg)]

    @staticmethod
    def _bad_id(start_response: StartResponse) -> list[bytes]:
        start_response("400 Bad Request", HTML)
        return [not_found_view("Invalid id")]

    @staticmethod
    def _redirect(start_response: StartResponse, location: str,
                  headers: Iterable[tuple[str, str]] = ()) -> list[bytes]:
        start_response("302 Found", [("Location", location), *headers])
        return [b""]


class MainController(BaseController, Observer):
    """
    Dashboard, list pages and detail pages. Subscribed to the store so the
    health page can show the latest mutations.
    """

    LIST_KINDS = ("client", "vendor", "labor", "contract", "task", "document")
    # lists whose rows carry a balance, so a payment-status filter applies
    BALANCED_KINDS = ("client", "vendor", "labor", "contract")

    def __init__(self, service: DashboardService) -> None:
        super().__init__(service)
        self.recent_events: deque[str] = deque(maxlen=20)
        self.service.store.attach(self)

    # ===== Observer =====
    def update(self, event: str, payload: Any) -> None:
        self.recent_events.appendleft(f"{event} id={getattr(payload, 'id', None)}")

    # ===== parsing =====
    def _parse_filters(self, kind: str, q: dict[str, list[str]]) -> tuple[ListFilter, dict[str, str]]:
        ui = {
            "q": self._first(q, "q").strip(),
            "status": self._first(q, "status"),
            "payment_status": self._first(q, "payment_status"),
            "category": self._first(q, "category"),
        }
        extra = {"category": ui["category"]} if kind == "vendor" else {}
        paid = ui["payment_status"] if kind in self.BALANCED_KINDS else ""
        flt = ListFilter(
            search=ui["q"] or None,
            status=ui["status"] or None,
            payment_status=paid or None,
            extra=extra,
        )
        return flt, ui

    def _parse_sort(self, kind: str, q: dict[str, list[str]]) -> tuple[SortSpec, dict[str, str]]:
        allowed = SORTABLE[kind]
        by = self._first(q, "sb") or "id"
        if by not in allowed:
            by = "id"
        asc = (self._first(q, "sd") or "asc").lower() != "desc"
        return SortSpec(by=by, asc=asc), {"sb": by, "sd": "asc" if asc else "desc"}

    # ===== routes =====
    def dashboard(self, environ, start_response) -> list[bytes]:
        try:
            stats = self.service.dashboard()
        except BackendError as e:
            return self._page(environ, start_response, "Dashboard", "<h1>Dashboard</h1>",
                              status="502 Bad Gateway", toast=str(e))
        return self._page(environ, start_response, "Dashboard", dashboard_view(stats))

    def listing(self, kind: str, environ, start_response) -> list[bytes]:
        q = self._query(environ)
        page = self._to_int(self._first(q, "page"), 1)
        flt, filters_ui = self._parse_filters(kind, q)
        sort_spec, sort_ui = self._parse_sort(kind, q)

        lister = getattr(self.service, f"list_{kind}s")
        try:
            result = lister(flt, sort_spec, page)
        except BackendError as e:
            return self._page(environ, start_response, f"{kind.capitalize()}s",
                              f"<h1>{kind.capitalize()}s</h1>", status="502 Bad Gateway",
                              toast=str(e))

        base = f"/{kind}s"
        params = {**filters_ui, **sort_ui}
        current = result.page.page
        prev_link = self._build_link(base, {**params, "page": str(current - 1)}) \
            if result.page.has_prev else None
        next_link = self._build_link(base, {**params, "page": str(current + 1)}) \
            if result.page.has_next else None

        body = list_view(kind, result, filters=filters_ui, sort=sort_ui,
                         sortable=SORTABLE[kind], prev_link=prev_link, next_link=next_link)
        return self._page(environ, start_response, f"{kind.capitalize()}s", body)

    def detail(self, kind: str, environ, start_response) -> list[bytes]:
        entity_id = self._id(self._first(self._query(environ), "id"))
        if entity_id is None:
            return self._bad_id(start_response)
        try:
            if kind == "client":
                body = client_detail_view(self.service.client_detail(entity_id))
            elif kind in ("vendor", "labor"):
                body = party_detail_view(self.service.party_detail(kind, entity_id))
            elif kind == "contract":
                body = contract_detail_view(self.service.contract_detail(entity_id))
            elif kind == "task":
                body = task_detail_view(self.service.task(entity_id))
            else:
                body = document_detail_view(self.service.document(entity_id))
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        except BackendError as e:
            return self._page(environ, start_response, kind.capitalize(), "",
                              status="502 Bad Gateway", toast=str(e))
        return self._page(environ, start_response, kind.capitalize(), body)

    def health(self, environ, start_response, *, backend_name: str) -> list[bytes]:
        try:
            self.service.repos.backend.ping()
            counts = {k: len(getattr(self.service, f"{k}s")()) for k in self.LIST_KINDS}
        except BackendError as e:
            start_response("500 Internal Server Error",
                           [("Content-Type", "text/plain; charset=utf-8")])
            return [f"Error: {e}".encode("utf-8")]
        items = "".join(f"<li>{k}: <b>{v}</b></li>" for k, v in counts.items())
        events = "".join(f"<li>{e}</li>" for e in self.recent_events) or "<li>none</li>"
        body = (f"<h1>Health</h1><p>Backend: <b>{backend_name}</b></p><ul>{items}</ul>"
                f"<p>Cache entries: <b>{len(self.service.cache)}</b></p>"
                f"<h2>Recent changes</h2><ul>{events}</ul>")
        return self._page(environ, start_response, "Health", body)
