# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Revocable route table for extension HTTP handlers.

FastAPI compiles routes at startup, before the lifespan context runs, so
extension routes cannot be added with app.include_router(). A Starlette
Router is mounted once instead; routes are appended to and removed from it
at runtime below a per-extension prefix (``/{extension_id}``), keyed by
(method, path) and attributed to the owning extension.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, Router

logger = logging.getLogger(__name__)

RouteHandler = Callable[[Request], Any]
RouteKey = tuple[str, str]


def route_error_response(message: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": "Extension route error", "message": message},
        status_code=500,
    )


def extension_path(extension_id: str, path: str) -> str:
    """Place a path inside the namespace of an extension."""
    return f"/{extension_id}{path}"


def wrap_route_handler(extension_id: str, handler: RouteHandler) -> Callable:
    """Convert handler exceptions into a structured 500 response."""

    async def endpoint(request: Request) -> Response:
        try:
            result = handler(request)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(
                f"Route error in extension {extension_id} "
                f"({request.method} {request.url.path}): {e}",
                extra={"extension_id": extension_id},
            )
            return route_error_response(str(e))

        if isinstance(result, Response):
            return result
        return JSONResponse(jsonable_encoder(result))

    return endpoint


class ExtensionRouteTable:
    """Manages extension routes on a Starlette Router.

    The router is mounted on the FastAPI app at startup (under the
    configured prefix); routes are added and removed on it afterwards.
    Every extension gets its own namespace, so two extensions registering
    the same path never collide.
    """

    def __init__(self) -> None:
        self._router = Router()
        self._routes: dict[RouteKey, tuple[str, Route]] = {}

    def get_router(self) -> Router:
        """Get the underlying Starlette router.

        This should be mounted on the FastAPI app at startup.
        """
        return self._router

    def add_route(
        self,
        extension_id: str,
        method: str,
        path: str,
        handler: RouteHandler,
    ) -> None:
        """Register an extension route.

        Args:
            extension_id: Owning extension
            method: HTTP method
            path: Path below the extension's own prefix
            handler: Function receiving the Starlette Request (sync or async)
        """
        method = method.upper()
        if not path.startswith("/"):
            path = "/" + path
        path = extension_path(extension_id, path)
        key = (method, path)

        if key in self._routes:
            logger.warning(f"Route {method} {path} of extension {extension_id} re-registered")
            self._remove(key)

        route = Route(
            path,
            endpoint=wrap_route_handler(extension_id, handler),
            methods=[method],
            name=f"{extension_id}:{method}:{path}",
        )
        self._routes[key] = (extension_id, route)
        self._router.routes.append(route)
        logger.info(f"Registered route {method} {path} for extension {extension_id}")

    def remove_extension_routes(self, extension_id: str) -> int:
        """Remove every route owned by an extension.

        Returns:
            Number of routes removed
        """
        keys = [key for key, (owner, _) in self._routes.items() if owner == extension_id]
        for key in keys:
            self._remove(key)
        if keys:
            logger.info(f"Removed {len(keys)} routes of extension {extension_id}")
        return len(keys)

    def _remove(self, key: RouteKey) -> None:
        _, route = self._routes.pop(key)
        if route in self._router.routes:
            self._router.routes.remove(route)

    def get_extension_routes(self, extension_id: str) -> list[dict[str, str]]:
        return [
            {"method": method, "path": path}
            for (method, path), (owner, _) in self._routes.items()
            if owner == extension_id
        ]

    def __len__(self) -> int:
        return len(self._routes)
