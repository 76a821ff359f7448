"""
bodycipher: Endpoint Activation
=================================

What:  Decides which endpoints go through the encryption interceptor.
How:   Two sources, merged once when the app is created:
       1. The @encrypted decorator on an endpoint function
       2. The ENCRYPTED_PATHS setting (comma-separated route paths)
       The result is an EncryptedEndpointRegistry holding the matching
       routes; the middleware asks it about every incoming request. A path
       or router that cannot be resolved stops the app at startup.

Decorator placement:
    @encrypted must sit BELOW the router decorator so the router registers
    the marked function:

        @router.post("/echo")
        @encrypted
        async def echo(request: Request) -> Response:
            ...
"""

import logging
from typing import Callable, Iterable, List, Optional, TypeVar

from starlette.routing import BaseRoute, Match, Route, Router, WebSocketRoute
from starlette.types import Scope

from bodycipher.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

ENCRYPTED_MARKER = "__transport_encrypted__"


def encrypted(endpoint: F) -> F:
    """Mark an endpoint as requiring request/response body encryption."""
    setattr(endpoint, ENCRYPTED_MARKER, True)
    return endpoint


def is_encrypted(endpoint: Optional[Callable]) -> bool:
    return bool(getattr(endpoint, ENCRYPTED_MARKER, False))


class EncryptedEndpointRegistry:
    """
    Routes that require interception, resolved once at startup.

    Matching reuses Starlette's own route matching, so path parameters and
    HTTP methods behave exactly like the router. Only a FULL match counts:
    a request with the wrong method falls through to the router's 405.

    Routes are read from the routers that declare them rather than from
    `app.routes`, where FastAPI may keep an included router as a single
    opaque entry. Anything the registry cannot see into is a startup error,
    never a silently unencrypted endpoint.
    """

    def __init__(self, routes: Iterable[BaseRoute]) -> None:
        self.routes: List[BaseRoute] = list(routes)

    @classmethod
    def from_routers(
        cls, routers: Iterable[Router], paths: Iterable[str] = ()
    ) -> "EncryptedEndpointRegistry":
        """Resolve the registry from routers that are mounted without an extra prefix."""
        return cls.from_routes(
            (route for router in routers for route in router.routes), paths
        )

    @classmethod
    def from_routes(
        cls, routes: Iterable[BaseRoute], paths: Iterable[str] = ()
    ) -> "EncryptedEndpointRegistry":
        """
        Select marked routes and routes whose path is in `paths`.

        Raises:
            ConfigurationError: a route cannot be inspected, a marked route
                is a websocket, or an entry of `paths` matches no route.
        """
        path_set = set(paths)
        selected = []
        for route in routes:
            if isinstance(route, Route):
                if is_encrypted(route.endpoint) or route.path in path_set:
                    selected.append(route)
            elif isinstance(route, WebSocketRoute):
                if is_encrypted(route.endpoint) or route.path in path_set:
                    raise ConfigurationError(
                        f"Websocket route {route.path} cannot use transport encryption",
                        setting="encrypted_paths",
                    )
            else:
                raise ConfigurationError(
                    f"Cannot look for encrypted endpoints inside {type(route).__name__}; "
                    "include routers with encrypted endpoints directly on the app",
                    setting="encrypted_paths",
                    context={"route": repr(route)},
                )

        unmatched = path_set - {route.path for route in selected}
        if unmatched:
            raise ConfigurationError(
                f"ENCRYPTED_PATHS entries match no route: {', '.join(sorted(unmatched))}",
                setting="encrypted_paths",
            )

        logger.info(
            "Transport encryption enabled for %d endpoint(s): %s",
            len(selected),
            ", ".join(route.path for route in selected) or "none",
        )
        return cls(selected)

    def requires_encryption(self, scope: Scope) -> bool:
        if scope["type"] != "http":
            return False
        for route in self.routes:
            match, _ = route.matches(scope)
            if match == Match.FULL:
                return True
        return False

    def __len__(self) -> int:
        return len(self.routes)
