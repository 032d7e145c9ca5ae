import inspect
import json
from typing import Any, Callable, Dict, List

import httpx

AIRTABLE_URL = "https://airtable.test"


class RecordingHandler:
    """httpx MockTransport handler that records requests and replays canned responses.

    ``routes`` maps ``"METHOD /path"`` to a JSON body, an ``httpx.Response``
    or a callable (sync or async) taking the request.
    """

    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.method} {request.url.path}")
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response) or inspect.isawaitable(route):
            return route
        return httpx.Response(200, json=route)

    def paths(self) -> List[str]:
        return [f"{request.method} {request.url.path}" for request in self.requests]

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
