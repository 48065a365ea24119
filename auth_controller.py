# auth_controller.py
from __future__ import annotations

import logging
from http.cookies import CookieError, SimpleCookie
from typing import Optional

from errors import AuthError
from session import SessionRegistry, SessionState
from web_controller import BaseController
from web_views import layout, login_view

logger = logging.getLogger(__name__)

COOKIE_NAME = "dashboard_sid"


def session_id(environ) -> Optional[str]:
    cookie = SimpleCookie()
    try:
        cookie.load(environ.get("HTTP_COOKIE", ""))
    except CookieError:
        return None
    morsel = cookie.get(COOKIE_NAME)
    return morsel.value if morsel else None


def _cookie_header(value: str, *, max_age: Optional[int] = None) -> tuple[str, str]:
    cookie = SimpleCookie()
    cookie[COOKIE_NAME] = value
    cookie[COOKIE_NAME]["path"] = "/"
    cookie[COOKIE_NAME]["httponly"] = True
    cookie[COOKIE_NAME]["samesite"] = "Lax"
    if max_age is not None:
        cookie[COOKIE_NAME]["max-age"] = max_age
    return ("Set-Cookie", cookie[COOKIE_NAME].OutputString())


class AuthController(BaseController):
    """
    GET  /login   -> sign-in form
    POST /login   -> SessionState.sign_in; cookie carries the session id
    GET  /logout  -> SessionState.sign_out, cookie cleared
    """

    def __init__(self, service, sessions: SessionRegistry) -> None:
        super().__init__(service)
        self.sessions = sessions

    def current(self, environ) -> Optional[SessionState]:
        state = self.sessions.get(session_id(environ))
        return state if state is not None and state.is_authenticated else None

    @staticmethod
    def _safe_next(url: str) -> str:
        return url if url.startswith("/") and not url.startswith("//") else "/"

    def login(self, environ, start_response) -> list[bytes]:
        if environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            nxt = self._safe_next(self._first(self._query(environ), "next") or "/")
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [layout("Sign in", login_view(next_url=nxt), nav=False)]

        form = self._read_post(environ)
        nxt = self._safe_next(form.get("next") or "/")
        sid, state = self.sessions.open()
        try:
            state.sign_in(form.get("email", ""), form.get("password", ""))
        except AuthError as e:
            self.sessions.close(sid)
            logger.info("failed sign-in for %s", form.get("email", ""))
            start_response("401 Unauthorized", [("Content-Type", "text/html; charset=utf-8")])
            return [layout("Sign in", login_view(email=form.get("email", ""), error=str(e),
                                                 next_url=nxt), nav=False)]
        return self._redirect(start_response, nxt, [_cookie_header(sid)])

    def logout(self, environ, start_response) -> list[bytes]:
        self.sessions.close(session_id(environ))
        return self._redirect(start_response, "/login", [_cookie_header("", max_age=0)])
