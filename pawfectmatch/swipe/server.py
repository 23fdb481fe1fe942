"""JSON HTTP API for the PawfectMatch swipe flow.

This module provides a minimal threaded HTTP server that proxies filtered
Petfinder pages, serves one candidate at a time to each browser session,
and records accept/reject decisions and favorites.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
from http.cookies import SimpleCookie
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

from pawfectmatch.config import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SESSION_COOKIE_MAX_AGE_SECONDS,
    SESSION_COOKIE_NAME,
    get_log_level,
)
from pawfectmatch.errors import AuthError, UpstreamError, ValidationError
from pawfectmatch.filters import filter_from_query, refine_candidates, split_filter
from pawfectmatch.petfinder import build_client
from pawfectmatch.session import ERROR_MESSAGE, PagerState, SwipeSession
from pawfectmatch.swipe.auth import decode_session_value, encode_session_value
from pawfectmatch.swipe.registry import SessionRegistry

logger = logging.getLogger(__name__)

PET_PATH_RE = re.compile(r"^/api/pets/(\d+)$")
FAVORITE_PATH_RE = re.compile(r"^/api/favorites/(\d+)$")


def _safe_int(value, default: int = 0) -> int:
    """Parse an integer, returning ``default`` on bad input."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def pets_response(client, query: dict[str, list[str]]) -> tuple[int, dict]:
    """Fetch one filtered, locally refined page for ``GET /api/pets``."""
    try:
        page_number = int(query.get("page", ["1"])[0])
        limit = int(query.get("limit", [str(DEFAULT_PAGE_SIZE)])[0])
    except ValueError:
        return 400, {"error": "page and limit must be integers"}
    page_number = max(1, page_number)
    limit = max(1, min(MAX_PAGE_SIZE, limit))

    remote_params, residual = split_filter(filter_from_query(query))
    try:
        page = client.fetch_page(page_number, limit, remote_params)
    except AuthError as exc:
        logger.warning(f"Petfinder authentication failed: {exc}")
        return 500, {"error": "failed to load pets"}
    except UpstreamError as exc:
        logger.warning(f"Petfinder page {page_number} failed: status={exc.status} {exc.message}")
        return 500, {"error": "failed to load pets"}

    refined = page.refined(refine_candidates(page.items, residual))
    return 200, refined.to_dict()


def _load_pet(client, pet_id: int):
    """Return ``(candidate, status, error_payload)`` for a single animal."""
    try:
        return client.fetch_pet(pet_id), 200, {}
    except UpstreamError as exc:
        if exc.status == 404:
            return None, 404, {"error": "pet not found"}
        logger.warning(f"Petfinder pet {pet_id} failed: status={exc.status} {exc.message}")
    except AuthError as exc:
        logger.warning(f"Petfinder authentication failed: {exc}")
    return None, 500, {"error": "failed to load pet"}


def pet_detail_response(client, pet_id: int) -> tuple[int, dict]:
    """Load a single animal for the details view."""
    candidate, status, error = _load_pet(client, pet_id)
    if candidate is None:
        return status, error
    return 200, {"item": candidate.to_dict()}


def session_payload(session: SwipeSession, candidate=None) -> tuple[int, dict]:
    """Describe the current candidate and session state."""
    if session.state is PagerState.ERROR:
        return 502, {"error": ERROR_MESSAGE}
    return 200, {
        "item": candidate.to_dict() if candidate is not None else None,
        "favorited": session.is_favorited(candidate.id) if candidate is not None else False,
        "status": session.status(),
    }


def favorites_payload(session: SwipeSession) -> dict:
    favorites = session.list_favorites()
    return {"items": [pet.to_dict() for pet in favorites], "count": len(favorites)}


class PawfectMatchServer(ThreadingHTTPServer):
    """Threaded server holding the shared Petfinder client and sessions."""

    daemon_threads = True

    def __init__(self, server_address, client, registry: SessionRegistry | None = None):
        super().__init__(server_address, AppHandler)
        self.petfinder_client = client
        self.sessions = registry if registry is not None else SessionRegistry(client)


class AppHandler(BaseHTTPRequestHandler):
    """HTTP handler for the PawfectMatch JSON API."""

    server: PawfectMatchServer

    def _send_json(self, status: int, payload: dict) -> None:
        """Write a JSON response, attaching a new session cookie if one was issued."""
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
        self.send_header("Content-Length", str(len(data)))
        cookie = getattr(self, "_new_session_cookie", None)
        if cookie:
            self.send_header("Set-Cookie", cookie)
        self.end_headers()
        self.wfile.write(data)

    def _first_header(self, *names: str) -> str | None:
        for name in names:
            value = self.headers.get(name)
            if value:
                return value.strip()
        return None

    def _session_cookie_header(self, session_key: str) -> str:
        """Build Set-Cookie header value for a swipe session."""
        parts = [
            f"{SESSION_COOKIE_NAME}={encode_session_value(session_key)}",
            "Path=/",
            "HttpOnly",
            "SameSite=Lax",
            f"Max-Age={SESSION_COOKIE_MAX_AGE_SECONDS}",
        ]
        forwarded_proto = (self._first_header("X-Forwarded-Proto") or "").lower()
        if forwarded_proto == "https":
            parts.append("Secure")
        return "; ".join(parts)

    def _cookie_value(self, key: str) -> str | None:
        raw = self.headers.get("Cookie")
        if not raw:
            return None
        jar = SimpleCookie()
        try:
            jar.load(raw)
        except Exception:
            return None
        morsel = jar.get(key)
        return morsel.value if morsel else None

    def _session(self) -> SwipeSession:
        """Resolve the caller's swipe session, creating one when needed."""
        session_key = decode_session_value(self._cookie_value(SESSION_COOKIE_NAME))
        session_key, session, created = self.server.sessions.get_or_create(session_key)
        if created:
            self._new_session_cookie = self._session_cookie_header(session_key)
        return session

    def _read_json(self) -> dict | None:
        length = _safe_int(self.headers.get("Content-Length", 0), 0)
        body = self.rfile.read(length) if length > 0 else b"{}"
        try:
            payload = json.loads(body.decode("utf-8") or "{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return payload if isinstance(payload, dict) else None

    def do_GET(self):
        """Handle GET requests for pets, session state and favorites."""
        parsed = urlparse(self.path)
        client = self.server.petfinder_client

        if parsed.path == "/api/pets":
            status, payload = pets_response(client, parse_qs(parsed.query))
            return self._send_json(status, payload)

        match = PET_PATH_RE.match(parsed.path)
        if match:
            status, payload = pet_detail_response(client, int(match.group(1)))
            return self._send_json(status, payload)

        if parsed.path == "/api/health":
            try:
                client.token_cache.get_token()
            except AuthError as exc:
                logger.warning(f"Health check failed: {exc}")
                return self._send_json(500, {"ok": False})
            return self._send_json(200, {"ok": True})

        if parsed.path == "/api/session":
            session = self._session()
            return self._send_json(200, {"status": session.status()})

        if parsed.path == "/api/session/next":
            session = self._session()
            candidate = session.next_candidate()
            return self._send_json(*session_payload(session, candidate))

        if parsed.path == "/api/favorites":
            session = self._session()
            return self._send_json(200, favorites_payload(session))

        return self._send_json(404, {"error": "not found"})

    def do_POST(self):
        """Handle filter changes, decisions and favorites."""
        parsed = urlparse(self.path)
        payload = self._read_json()
        if payload is None:
            return self._send_json(400, {"error": "invalid json"})

        if parsed.path == "/api/session/filter":
            session = self._session()
            candidate = session.apply_filter(filter_from_query(payload))
            return self._send_json(*session_payload(session, candidate))

        if parsed.path == "/api/session/restart":
            session = self._session()
            candidate = session.restart()
            return self._send_json(*session_payload(session, candidate))

        if parsed.path == "/api/session/decide":
            session = self._session()
            pet_id = _safe_int(payload.get("id"), 0)
            if pet_id <= 0:
                return self._send_json(400, {"error": "id is required"})
            try:
                decided = session.decide(pet_id, payload.get("decision"))
            except ValidationError as exc:
                return self._send_json(400, {"error": str(exc)})
            candidate = session.next_candidate()
            status, body = session_payload(session, candidate)
            body["decided"] = decided.id
            return self._send_json(status, body)

        if parsed.path == "/api/favorites":
            session = self._session()
            pet_id = _safe_int(payload.get("id"), 0)
            if pet_id <= 0:
                return self._send_json(400, {"error": "id is required"})
            candidate = session.find_loaded(pet_id)
            if candidate is None:
                candidate, status, error = _load_pet(self.server.petfinder_client, pet_id)
                if candidate is None:
                    return self._send_json(status, error)
            created = session.add_favorite(candidate)
            return self._send_json(200, {"ok": True, "created": created})

        return self._send_json(404, {"error": "not found"})

    def do_DELETE(self):
        """Handle favorite removal."""
        parsed = urlparse(self.path)
        match = FAVORITE_PATH_RE.match(parsed.path)
        if not match:
            return self._send_json(404, {"error": "not found"})
        session = self._session()
        removed = session.remove_favorite(int(match.group(1)))
        return self._send_json(200, {"ok": True, "removed": removed})

    def log_message(self, fmt, *args):
        """Suppress default HTTP request logging output."""
        return


def main() -> None:
    """Run the PawfectMatch HTTP server from CLI arguments."""
    logging.basicConfig(
        level=get_log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    parser = argparse.ArgumentParser(description="Serve the PawfectMatch swipe API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE)
    args = parser.parse_args()

    client = build_client()
    registry = SessionRegistry(client, page_size=args.page_size)
    server = PawfectMatchServer((args.host, args.port), client, registry)
    print(f"PawfectMatch running at http://{args.host}:{args.port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
