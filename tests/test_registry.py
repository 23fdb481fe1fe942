from pawfectmatch.session import SwipeSession
from pawfectmatch.swipe.registry import SessionRegistry


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_or_create_reuses_known_session():
    registry = SessionRegistry(object(), page_size=7)
    key, session, created = registry.get_or_create(None)
    assert created is True
    assert isinstance(session, SwipeSession)
    assert session.page_size == 7

    same_key, same_session, created_again = registry.get_or_create(key)
    assert same_key == key
    assert same_session is session
    assert created_again is False


def test_unknown_key_creates_new_session():
    registry = SessionRegistry(object())
    key, _, created = registry.get_or_create("missing-session-key-1234")
    assert created is True
    assert key != "missing-session-key-1234"


def test_idle_sessions_are_dropped_on_create():
    clock = Clock(0)
    registry = SessionRegistry(object(), idle_seconds=60, now=clock)
    old_key, _ = registry.create()
    clock.now = 30
    kept_key, _ = registry.create()

    clock.now = 80
    registry.create()

    assert registry.get(old_key) is None
    assert registry.get(kept_key) is not None
    assert len(registry) == 2
