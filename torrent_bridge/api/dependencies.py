import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from torrent_bridge.config import Config
from torrent_bridge.reconciler import Reconciler


REALM = "torrent-bridge"
AUTH_CHALLENGE = {"WWW-Authenticate": f'Basic realm="{REALM}"'}

basic_auth = HTTPBasic(realm=REALM, auto_error=False)


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_reconciler(request: Request) -> Reconciler:
    """Dependency for the attached reconciler; 503 until one is attached."""
    reconciler = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Torrent engine not attached yet",
        )
    return reconciler


def credentials_valid(config: Config, credentials: Optional[HTTPBasicCredentials]) -> bool:
    """
    Check HTTP Basic credentials against RPC_USERNAME / RPC_PASSWORD.

    Always valid when neither is configured.
    """
    if not config.auth_required:
        return True
    if credentials is None:
        return False
    user_ok = secrets.compare_digest(credentials.username.encode("utf-8"), config.RPC_USERNAME.encode("utf-8"))
    pass_ok = secrets.compare_digest(credentials.password.encode("utf-8"), config.RPC_PASSWORD.encode("utf-8"))
    return user_ok and pass_ok


async def require_auth(request: Request, config: Config = Depends(get_config)) -> None:
    """Basic auth gate; the Authorization header is ignored when no credentials are configured."""
    if not config.auth_required:
        return
    try:
        credentials = await basic_auth(request)
    except HTTPException:
        credentials = None
    if not credentials_valid(config, credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=AUTH_CHALLENGE,
        )
