from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from mystic_relay.errors import MethodNotAllowed
from mystic_relay.logging_config import new_request_id
from mystic_relay.relay import RelayEndpoint

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# FastAPI does not add HEAD to GET routes, so every other method is listed here
_REJECTED_METHODS = ["CONNECT", "DELETE", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE"]


def create_app(relay: RelayEndpoint, *, endpoint_path: str = "/api/fortune") -> FastAPI:
    app = FastAPI(title="mystic-relay")
    app.state.relay = relay

    @app.exception_handler(MethodNotAllowed)
    async def method_not_allowed(request: Request, exc: MethodNotAllowed) -> JSONResponse:
        return JSONResponse(
            status_code=405,
            content={"message": "Method not allowed"},
            headers={"Allow": "GET"},
        )

    @app.get(endpoint_path)
    async def fortune(question: str | None = None) -> StreamingResponse:
        request_id = new_request_id()
        # Content-Type is passed explicitly so Starlette does not append a charset
        return StreamingResponse(
            relay.stream_events(question, request_id=request_id),
            headers={**SSE_HEADERS, "X-Request-Id": request_id},
        )

    @app.api_route(endpoint_path, methods=_REJECTED_METHODS, include_in_schema=False)
    async def fortune_rejected(request: Request) -> None:
        raise MethodNotAllowed(request.method)

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    return app
