# src/study_tracker/api/dispatch.py

"""
Request/response boundary.

Front ends (HTTP adapter, console, tests) describe a call as
(method, path, caller user id, payload); the registry routes it to a core
operation and turns the error taxonomy into a status code.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import (
    AuthenticationError,
    ConflictError,
    IntegrityFault,
    NotFoundError,
    TrackerError,
    ValidationError,
)
from ..core.state import AppState

logger = logging.getLogger(__name__)

_PARAM_RE = re.compile(r"\{([a-z_]+)\}")

INTERNAL_ERROR = "Internal server error"
NOT_AUTHENTICATED = "Not authenticated"


@dataclass(slots=True)
class Request:
    method: str
    path: str
    user_id: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Response:
    status: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


OperationHandler = Callable[[AppState, Request, dict[str, str]], dict[str, Any]]


@dataclass(slots=True)
class _Route:
    method: str
    template: str
    pattern: re.Pattern[str]
    handler: OperationHandler
    auth: bool
    help_text: str


def _compile(template: str) -> re.Pattern[str]:
    # "/tasks/{task_id}/start" -> r"^/tasks/(?P<task_id>[^/]+)/start$"
    parts = _PARAM_RE.split(template)
    out = []
    for i, part in enumerate(parts):
        out.append(f"(?P<{part}>[^/]+)" if i % 2 else re.escape(part))
    return re.compile("^" + "".join(out) + "$")


class OperationRegistry:
    """Routes (method, path) to operation handlers."""

    def __init__(self) -> None:
        self._routes: list[_Route] = []

    def register(
        self,
        method: str,
        template: str,
        handler: OperationHandler,
        help_text: str = "",
        *,
        auth: bool = True,
    ) -> None:
        self._routes.append(
            _Route(
                method=method.upper(),
                template=template,
                pattern=_compile(template),
                handler=handler,
                auth=auth,
                help_text=help_text,
            )
        )

    def route(self, method: str, path: str) -> tuple[_Route, dict[str, str]] | None:
        method = method.upper()
        for r in self._routes:
            if r.method != method:
                continue
            m = r.pattern.match(path)
            if m:
                return r, m.groupdict()
        return None

    def dispatch(self, state: AppState, request: Request) -> Response:
        found = self.route(request.method, request.path)
        if found is None:
            return Response(404, {"error": f"Unknown operation: {request.method} {request.path}"})

        route, params = found
        try:
            if route.auth and request.user_id is None:
                raise AuthenticationError(NOT_AUTHENTICATED)
            body = route.handler(state, request, params)
        except AuthenticationError as e:
            return Response(401, {"error": str(e)})
        except ValidationError as e:
            logger.debug("Rejected %s %s: %s", request.method, request.path, e)
            return Response(400, {"error": str(e)})
        except NotFoundError as e:
            return Response(404, {"error": str(e)})
        except ConflictError as e:
            logger.debug("Conflict %s %s user=%s: %s", request.method, request.path, request.user_id, e)
            return Response(409, {"error": str(e)})
        except IntegrityFault:
            logger.exception("Integrity fault on %s %s user=%s", request.method, request.path, request.user_id)
            return Response(500, {"error": INTERNAL_ERROR})
        except TrackerError:
            logger.exception("Unmapped tracker error on %s %s", request.method, request.path)
            return Response(500, {"error": INTERNAL_ERROR})
        except Exception:
            logger.exception("Operation %s %s crashed.", request.method, request.path)
            return Response(500, {"error": INTERNAL_ERROR})

        return Response(200, body)

    def build_help(self) -> str:
        lines = ["Available operations:"]
        for r in self._routes:
            lines.append(f"  {r.method:<4} {r.template} - {r.help_text}")
        return "\n".join(lines)


def path_int(params: dict[str, str], name: str, missing: str = "Not found") -> int:
    """Integer path parameter; a non-numeric id cannot name anything, so it is a 404."""
    try:
        return int(params[name])
    except (KeyError, ValueError) as e:
        raise NotFoundError(missing) from e
