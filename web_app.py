# web_app.py
from __future__ import annotations

import argparse
import logging
from typing import Callable, Optional, Tuple
from urllib.parse import quote
from wsgiref.simple_server import make_server

from auth_controller import AuthController
from base_backend import BaseBackend
from delete_controller import DeleteController
from documents_controller import DocumentsController
from edit_controller import EditController
from export_controller import ExportController
from logging_setup import configure_logging
from repos import Repos
from services import DashboardService
from session import AuthBackend, PgAuthBackend, SessionRegistry, YamlAuthBackend
from settings import Settings, load_settings
from storage import LocalBucketStorage
from web_controller import MainController

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/login", "/debug/health", "/files")
LIST_PATHS = {
    "/clients": "client",
    "/vendors": "vendor",
    "/labors": "labor",
    "/contracts": "contract",
    "/tasks": "task",
    "/documents": "document",
}
EDITABLE = ("client", "vendor", "labor", "contract", "task")
DELETABLE = EDITABLE + ("document", "payment")
DETAILS = EDITABLE + ("document",)


# ---------- backend factory ----------
def make_backend(settings: Settings) -> Tuple[BaseBackend, AuthBackend]:
    """Persistence + credential backend according to settings.backend."""
    if settings.backend == "db":
        from pg_backend import PgBackend

        return PgBackend(**settings.db_config()), PgAuthBackend()

    from yaml_backend import YamlBackend

    return (
        YamlBackend(settings.data_dir, auto_migrate=settings.auto_migrate),
        YamlAuthBackend(settings.data_dir),
    )


def make_service(settings: Settings) -> Tuple[DashboardService, AuthBackend]:
    backend, auth = make_backend(settings)
    storage = LocalBucketStorage(settings.storage_dir, settings.secret)
    service = DashboardService(Repos(backend), storage=storage, page_size=settings.page_size)
    return service, auth


def application_factory(
    settings: Optional[Settings] = None,
    *,
    service: Optional[DashboardService] = None,
    auth: Optional[AuthBackend] = None,
) -> Tuple[Callable, MainController]:
    settings = settings or load_settings()
    if service is None or auth is None:
        made_service, made_auth = make_service(settings)
        service = service or made_service
        auth = auth or made_auth

    sessions = SessionRegistry(auth)
    controller = MainController(service)
    edit_ctrl = EditController(service)
    del_ctrl = DeleteController(service)
    export_ctrl = ExportController(service)
    docs_ctrl = DocumentsController(service)
    auth_ctrl = AuthController(service, sessions)

    exact: dict[str, Callable] = {
        "/": controller.dashboard,
        "/index": controller.dashboard,
        "/task/status": edit_ctrl.task_status,
        "/contract/payment/add": lambda e, s: edit_ctrl.payment("contract", e, s),
        "/client/payment/add": lambda e, s: edit_ctrl.payment("client", e, s),
        "/exports": export_ctrl.index,
        "/export/payments.csv": export_ctrl.payments_csv,
        "/export/entity.csv": export_ctrl.entity_csv,
        "/document/upload": docs_ctrl.upload,
        "/document/download": docs_ctrl.download,
        "/files": docs_ctrl.files,
        "/login": auth_ctrl.login,
        "/logout": auth_ctrl.logout,
        "/debug/health": lambda e, s: controller.health(e, s, backend_name=settings.backend),
    }

    def route(path: str, method: str) -> Optional[Callable]:
        if path in exact:
            return exact[path]
        if path in LIST_PATHS:
            kind = LIST_PATHS[path]
            return lambda e, s: controller.listing(kind, e, s)

        parts = path.strip("/").split("/")
        if len(parts) != 2:
            return None
        kind, action = parts
        if action == "detail" and kind in DETAILS:
            return lambda e, s: controller.detail(kind, e, s)
        if kind in EDITABLE:
            if action == "add":
                return lambda e, s: edit_ctrl.add_form(kind, e, s)
            if action == "create":
                return lambda e, s: edit_ctrl.create(kind, e, s)
            if action == "edit":
                return lambda e, s: edit_ctrl.edit_form(kind, e, s)
            if action == "update":
                return lambda e, s: edit_ctrl.update(kind, e, s)
        if action == "delete" and kind in DELETABLE:
            if method == "POST":
                return lambda e, s: del_ctrl.remove(kind, e, s)
            return lambda e, s: del_ctrl.confirm(kind, e, s)
        return None

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "/") or "/"
        method = environ.get("REQUEST_METHOD", "GET").upper()

        if settings.require_login and path not in PUBLIC_PATHS:
            state = auth_ctrl.current(environ)
            if state is None:
                start_response("302 Found", [("Location", f"/login?next={quote(path)}")])
                return [b""]
            environ["dashboard.session"] = state

        handler = route(path, method)
        if handler is None:
            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not Found"]
        return handler(environ, start_response)

    return app, controller


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="studio-dashboard",
                                     description="Interior studio business dashboard")
    parser.add_argument("--config", help="YAML settings file (default: dashboard.yaml)")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the web app (default)")
    add_user = sub.add_parser("create-user", help="add a sign-in account")
    add_user.add_argument("email")
    add_user.add_argument("password")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(settings.log_level)

    if args.command == "create-user":
        _, auth = make_backend(settings)
        user = auth.create_user(args.email, args.password)
        logger.info("user %s ready (id=%s)", user.email, user.id)
        return

    app, _ = application_factory(settings)
    with make_server(settings.host, settings.port, app) as httpd:
        logger.info("dashboard running at http://%s:%s/ (backend = %s)",
                    settings.host, settings.port, settings.backend)
        logger.info("/debug/health shows backend status and cache size")
        httpd.serve_forever()


if __name__ == "__main__":
    main()
