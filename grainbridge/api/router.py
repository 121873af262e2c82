"""
Request routing.

Route modules declare handlers with ``Router`` decorators, much like an
``APIRouter``::

    router = Router()

    @router.get("/v1/state")
    def get_state(ctx: RequestContext) -> HTTPResponse: ...

``dispatch`` resolves public routes first, then requires a bearer
session, then matches the remaining table.  Handlers raise
``BridgeError`` for request-level failures; anything else is logged and
answered with a 500 envelope.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from grainbridge.auth.sessions import Session
from grainbridge.errors import BridgeError, ErrorCode, bad_request, not_found, unauthorized
from grainbridge.transport.http import HTTPRequest, HTTPResponse

if TYPE_CHECKING:
    from grainbridge.bridge import ControlBridge

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_PARAM_RE = re.compile(r"\{(\w+)\}")


@dataclass
class RequestContext:
    """What a handler gets to work with."""

    bridge: ControlBridge
    request: HTTPRequest
    session: Session | None = None
    params: dict[str, str] = field(default_factory=dict)

    @property
    def session_id(self) -> str | None:
        return self.session.session_id if self.session is not None else None

    def parse(self, model: type[ModelT], message: str) -> ModelT:
        """Validate the JSON body into *model*.

        Raises:
            BridgeError: 400 with *message* for malformed JSON or a shape
                the model rejects.
        """
        try:
            return model.model_validate_json(self.request.body or b"")
        except ValidationError as exc:
            logger.debug(f"{self.request.method} {self.request.path}: {exc.error_count()} body errors")
            raise bad_request(message) from exc


Handler = Callable[[RequestContext], HTTPResponse]


@dataclass(frozen=True)
class Route:
    method: str
    template: str
    pattern: re.Pattern[str]
    handler: Handler
    public: bool = False

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method != self.method:
            return None
        found = self.pattern.fullmatch(path)
        return found.groupdict() if found is not None else None


def _compile(template: str) -> re.Pattern[str]:
    parts = _PARAM_RE.split(template)
    regex = ""
    for index, part in enumerate(parts):
        regex += f"(?P<{part}>[^/]+)" if index % 2 else re.escape(part)
    return re.compile(regex)


class Router:
    """Ordered route table."""

    def __init__(self) -> None:
        self.routes: list[Route] = []

    def add(self, method: str, template: str, handler: Handler, public: bool = False) -> None:
        self.routes.append(Route(method.upper(), template, _compile(template), handler, public))

    def _decorator(self, method: str, template: str, public: bool) -> Callable[[Handler], Handler]:
        def register(handler: Handler) -> Handler:
            self.add(method, template, handler, public)
            return handler
        return register

    def get(self, template: str, public: bool = False) -> Callable[[Handler], Handler]:
        return self._decorator("GET", template, public)

    def post(self, template: str, public: bool = False) -> Callable[[Handler], Handler]:
        return self._decorator("POST", template, public)

    def delete(self, template: str, public: bool = False) -> Callable[[Handler], Handler]:
        return self._decorator("DELETE", template, public)

    def include(self, other: Router) -> None:
        self.routes.extend(other.routes)

    def resolve(self, method: str, path: str, public: bool) -> tuple[Route, dict[str, str]] | None:
        for route in self.routes:
            if route.public != public:
                continue
            params = route.match(method, path)
            if params is not None:
                return route, params
        return None


def error_response(error: BridgeError) -> HTTPResponse:
    return HTTPResponse.json(error.status_code, error.to_dict())


def dispatch(router: Router, bridge: ControlBridge, request: HTTPRequest) -> HTTPResponse:
    """Answer one parsed request.  Never raises."""
    logger.debug(f"{request.method} {request.raw_target}")
    try:
        resolved = router.resolve(request.method, request.path, public=True)
        session: Session | None = None
        if resolved is None:
            session = bridge.sessions.authenticate(request.header("authorization"))
            if session is None:
                raise unauthorized()
            resolved = router.resolve(request.method, request.path, public=False)
            if resolved is None:
                raise not_found("Endpoint not implemented")
        route, params = resolved
        return route.handler(RequestContext(bridge, request, session, params))
    except BridgeError as exc:
        if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"{request.method} {request.path}: {exc}")
        return error_response(exc)
    except Exception:
        logger.exception(f"Unhandled error in {request.method} {request.path}")
        return error_response(BridgeError(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR,
            "Internal server error",
        ))
