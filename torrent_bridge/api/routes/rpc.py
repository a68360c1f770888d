import json

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from torrent_bridge.exceptions import RpcError
from torrent_bridge.logger import logger
from ..dependencies import AUTH_CHALLENGE, basic_auth, credentials_valid
from ..rpc import SESSION_HEADER, RpcContext, dispatch


async def transmission_rpc(request: Request) -> Response:
    """
    Transmission-compatible RPC endpoint.

    Checks run in order: engine attached (503), Basic auth (401), session
    handshake (409 with a fresh X-Transmission-Session-Id), JSON body (400).
    """
    state = request.app.state
    config = state.config

    reconciler = getattr(state, "reconciler", None)
    if reconciler is None:
        return PlainTextResponse(
            "Transmission RPC not available yet (torrent engine not attached).",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    if config.auth_required:
        try:
            credentials = await basic_auth(request)
        except HTTPException:
            credentials = None
        if not credentials_valid(config, credentials):
            return Response(status_code=status.HTTP_401_UNAUTHORIZED, headers=AUTH_CHALLENGE)

    sessions = state.sessions
    if not sessions.matches(request.headers.get(SESSION_HEADER)):
        token = sessions.rotate()
        return Response(status_code=status.HTTP_409_CONFLICT, headers={SESSION_HEADER: token})

    try:
        body = json.loads(await request.body())
    except ValueError:
        return PlainTextResponse("Invalid JSON", status_code=status.HTTP_400_BAD_REQUEST)

    if not isinstance(body, dict) or not isinstance(body.get("method"), str):
        return PlainTextResponse("Invalid JSON", status_code=status.HTTP_400_BAD_REQUEST)

    arguments = body.get("arguments")
    if not isinstance(arguments, dict):
        arguments = {}

    method = body["method"]
    ctx = RpcContext(reconciler=reconciler, config=config, session_id=sessions.current)
    try:
        result = await dispatch(method, arguments, ctx)
    except RpcError as e:
        logger.warning(f"RPC {method} failed: {e}")
        return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)

    payload = {"result": "success", "arguments": result}
    if "tag" in body:
        payload["tag"] = body["tag"]
    return JSONResponse(payload, headers={SESSION_HEADER: sessions.current})


def build_router(path: str) -> APIRouter:
    """The RPC path is configurable (RPC_PATH), so the router is built per app."""
    router = APIRouter(tags=["rpc"])
    router.add_api_route(path, transmission_rpc, methods=["POST"], include_in_schema=False)
    return router
