"""Explicit session state with observers, and the YAML credential store."""

from __future__ import annotations

import pytest

from errors import AuthError
from session import SIGNED_IN, SIGNED_OUT, SessionRegistry, SessionState, YamlAuthBackend


class Recorder:
    def __init__(self):
        self.events = []

    def update(self, event, payload):
        self.events.append((event, getattr(payload, "email", None)))


@pytest.fixture
def auth(tmp_path):
    backend = YamlAuthBackend(str(tmp_path), iterations=1000)
    backend.create_user("Owner@Studio.com", "s3cret!")
    return backend


def test_sign_in_and_out_notify(auth):
    state = SessionState(auth)
    rec = Recorder()
    state.attach(rec)
    user = state.sign_in(" owner@studio.com ", "s3cret!")
    assert state.is_authenticated and state.current_user == user
    state.sign_out()
    assert not state.is_authenticated
    assert rec.events == [(SIGNED_IN, "owner@studio.com"), (SIGNED_OUT, "owner@studio.com")]


def test_wrong_password_keeps_state(auth):
    state = SessionState(auth)
    rec = Recorder()
    state.attach(rec)
    with pytest.raises(AuthError):
        state.sign_in("owner@studio.com", "nope")
    assert state.current_user is None
    assert rec.events == []


def test_detached_observer_hears_nothing(auth):
    state = SessionState(auth)
    rec = Recorder()
    state.attach(rec)
    state.detach(rec)
    state.sign_in("owner@studio.com", "s3cret!")
    assert rec.events == []


def test_duplicate_and_weak_users(auth):
    with pytest.raises(ValueError):
        auth.create_user("owner@studio.com", "another1")
    with pytest.raises(ValueError):
        auth.create_user("new@studio.com", "123")


def test_password_is_not_stored_in_clear(auth):
    with open(auth.path, encoding="utf-8") as f:
        assert "s3cret!" not in f.read()


def test_registry(auth):
    reg = SessionRegistry(auth)
    sid, state = reg.open()
    state.sign_in("owner@studio.com", "s3cret!")
    assert reg.get(sid) is state
    reg.close(sid)
    assert reg.get(sid) is None
    assert not state.is_authenticated


def test_observer_can_pick_events(auth):
    state = SessionState(auth)
    rec = Recorder()
    state.attach(rec, events={SIGNED_OUT})
    state.sign_in("owner@studio.com", "s3cret!")
    state.sign_out()
    assert rec.events == [(SIGNED_OUT, "owner@studio.com")]
    assert state.observers == (rec,)
