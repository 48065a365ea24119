"""End-to-end WSGI requests against the YAML backend."""

from __future__ import annotations

import io
from urllib.parse import urlencode
from wsgiref.util import setup_testing_defaults

import pytest

from session import YamlAuthBackend
from settings import Settings
from web_app import application_factory, make_service


class Response:
    def __init__(self, status, headers, body):
        self.status = status
        self.headers = dict(headers)
        self.body = body

    @property
    def code(self) -> int:
        return int(self.status.split()[0])

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def call(app, path, *, method="GET", query="", data=None, cookie=None):
    environ = {}
    setup_testing_defaults(environ)
    body = urlencode(data or {}).encode("utf-8")
    environ.update({
        "PATH_INFO": path,
        "REQUEST_METHOD": method,
        "QUERY_STRING": query,
        "CONTENT_TYPE": "application/x-www-form-urlencoded",
        "CONTENT_LENGTH": str(len(body)),
        "wsgi.input": io.BytesIO(body),
    })
    if cookie:
        environ["HTTP_COOKIE"] = cookie
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"], captured["headers"] = status, headers

    chunks = app(environ, start_response)
    return Response(captured["status"], captured["headers"], b"".join(chunks))


def _settings(tmp_path, **kw):
    return Settings(data_dir=str(tmp_path / "data"), storage_dir=str(tmp_path / "storage"),
                    secret="test-secret", **kw)


@pytest.fixture
def app(tmp_path):
    application, _ = application_factory(_settings(tmp_path, require_login=False))
    return application


CLIENT_FORM = {
    "name": "Ada Interiors",
    "email": "ada@example.com",
    "phone": "+1 555 010 2030",
    "address": "1 Main St",
    "contract_amount": "50000",
    "status": "active",
}


def test_dashboard_and_lists_render(app):
    assert call(app, "/").code == 200
    for path in ("/clients", "/vendors", "/labors", "/contracts", "/tasks", "/documents"):
        assert call(app, path).code == 200, path


def test_unknown_path_is_404(app):
    r = call(app, "/nope/where")
    assert r.code == 404 and r.body == b"Not Found"


def test_create_client_then_list(app):
    r = call(app, "/client/create", method="POST", data=CLIENT_FORM)
    assert r.code == 200
    assert "client_added" in r.text
    listing = call(app, "/clients", query="q=ada")
    assert "Ada Interiors" in listing.text


def test_invalid_client_rerenders_form(app):
    r = call(app, "/client/create", method="POST", data={**CLIENT_FORM, "email": "broken"})
    assert r.code == 400
    assert "email" in r.text
    assert "Ada Interiors" not in call(app, "/clients").text


def test_payment_status_ignored_on_lists_without_balances(app):
    r = call(app, "/task/create", method="POST",
             data={"title": "Order tiles", "status": "Not Started", "due_date": "2024-05-01"})
    assert r.code == 200
    tasks = call(app, "/tasks", query="payment_status=pending")
    assert tasks.code == 200
    assert "Order tiles" in tasks.text
    assert call(app, "/documents", query="payment_status=completed").code == 200


def test_detail_of_missing_client(app):
    assert call(app, "/client/detail", query="id=99").code == 404
    assert call(app, "/client/detail", query="id=abc").code == 400


def test_client_payment_and_export(app):
    call(app, "/client/create", method="POST", data=CLIENT_FORM)
    r = call(app, "/client/payment/add", method="POST",
             data={"client_id": "1", "amount": "20000", "date": "2024-03-01",
                   "description": "Deposit, first"})
    assert r.code == 200 and "payment_added" in r.text

    detail = call(app, "/client/detail", query="id=1")
    assert "30,000.00" in detail.text

    csv = call(app, "/export/payments.csv", query="type=client")
    assert csv.code == 200
    assert csv.headers["Content-Type"].startswith("text/csv")
    assert csv.headers["Content-Disposition"].startswith('attachment; filename="payments_client_')
    lines = csv.text.splitlines()
    assert lines[0] == "Date,Amount,Type,Contract,Entity Name,Description"
    assert lines[1].startswith("2024-03-01,20000.00,client,")
    assert lines[1].endswith('"Deposit, first"')

    entity = call(app, "/export/entity.csv", query="kind=client&id=1")
    assert entity.text.splitlines() == ["Date,Amount,Description",
                                        '2024-03-01,20000.00,"Deposit, first"']


def test_export_rejects_bad_dates(app):
    r = call(app, "/export/payments.csv", query="start=2024-13-01")
    assert r.code == 400


def test_delete_flow(app):
    call(app, "/client/create", method="POST", data=CLIENT_FORM)
    assert call(app, "/client/delete", query="id=1").code == 200
    r = call(app, "/client/delete", method="POST", data={"id": "1"})
    assert r.code == 200 and "client_deleted" in r.text
    assert call(app, "/client/detail", query="id=1").code == 404


def test_health(app):
    r = call(app, "/debug/health")
    assert r.code == 200
    assert "Backend: <b>yaml</b>" in r.text


@pytest.fixture
def guarded(tmp_path):
    settings = _settings(tmp_path, require_login=True)
    service, _ = make_service(settings)
    auth = YamlAuthBackend(settings.data_dir, iterations=1000)
    auth.create_user("owner@studio.com", "s3cret!")
    application, _ = application_factory(settings, service=service, auth=auth)
    return application


def test_login_required(guarded):
    r = call(guarded, "/clients")
    assert r.code == 302
    assert r.headers["Location"] == "/login?next=/clients"
    assert call(guarded, "/login").code == 200
    assert call(guarded, "/debug/health").code == 200


def test_login_flow(guarded):
    bad = call(guarded, "/login", method="POST",
               data={"email": "owner@studio.com", "password": "wrong", "next": "/clients"})
    assert bad.code == 401

    ok = call(guarded, "/login", method="POST",
              data={"email": "owner@studio.com", "password": "s3cret!", "next": "/clients"})
    assert ok.code == 302 and ok.headers["Location"] == "/clients"
    cookie = ok.headers["Set-Cookie"].split(";")[0]

    page = call(guarded, "/clients", cookie=cookie)
    assert page.code == 200
    assert "owner@studio.com" in page.text

    out = call(guarded, "/logout", cookie=cookie)
    assert out.headers["Location"] == "/login"
    assert call(guarded, "/clients", cookie=cookie).code == 302


def test_login_ignores_offsite_next(guarded):
    ok = call(guarded, "/login", method="POST",
              data={"email": "owner@studio.com", "password": "s3cret!",
                    "next": "//evil.example"})
    assert ok.headers["Location"] == "/"
