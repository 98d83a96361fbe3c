"""
Connector API routes — OAuth connect/callback, list connections, disconnect.

Route prefix: /api/auth
"""

from __future__ import annotations

import html
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from api.middleware import status_for
from connectors.errors import ConnectorError
from connectors.manager import ConnectionManager
from connectors.registry import ConnectorRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])


def get_manager(request: Request) -> ConnectionManager:
    """Dependency — the manager built at application startup."""
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Connection manager not initialised")
    return manager


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers() -> list[dict]:
    """List supported providers and whether each has client credentials."""
    return ConnectorRegistry().list_providers()


@router.get("/connections")
async def list_connections(
    tenant_id: str = Query(..., min_length=1),
    manager: ConnectionManager = Depends(get_manager),
) -> list[dict]:
    return await manager.sink.list_connections(tenant_id)


@router.delete("/connections/{tenant_id}/{provider}")
async def delete_connection(
    tenant_id: str,
    provider: str,
    manager: ConnectionManager = Depends(get_manager),
) -> Dict[str, Any]:
    deleted = await manager.sink.disconnect(tenant_id, provider)
    if not deleted:
        raise HTTPException(404, "Connection not found")
    return {"status": "disconnected", "tenant_id": tenant_id, "provider": provider}


@router.get("/{provider}/auth-url")
async def get_auth_url(
    provider: str,
    tenant_id: str = Query(..., min_length=1),
    manager: ConnectionManager = Depends(get_manager),
) -> Dict[str, str]:
    """
    Start an authorization attempt for ``tenant_id``.

    Frontend should open the returned URL in a popup window.
    """
    auth_url = await manager.build_authorization_url(provider, tenant_id)
    return {"auth_url": auth_url, "provider": provider}


@router.get("/callback/{provider}")
async def oauth_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    manager: ConnectionManager = Depends(get_manager),
) -> HTMLResponse:
    """
    Provider redirect target.

    Exchanges the code, stores the connection and returns a small HTML page
    that notifies the opener window.  Failures render the same page with a
    short reason and the status the JSON routes would use for that error;
    the user retries by starting a fresh authorization.
    """
    try:
        bundle = await manager.complete_authorization(
            provider,
            code=code,
            state=state,
            error=error,
            error_description=error_description,
        )
    except ConnectorError as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        return HTMLResponse(
            content=_callback_html(success=False, message=exc.user_message, provider=provider),
            status_code=status_for(exc),
        )

    return HTMLResponse(
        content=_callback_html(
            success=True,
            message=f"Connected as {bundle.account_username}",
            provider=provider,
        ),
        status_code=200,
    )


# ── Callback HTML template ─────────────────────────────────────────────


def _callback_html(success: bool, message: str, provider: str) -> str:
    """
    Small HTML page shown in the OAuth popup after redirect.
    Sends a postMessage to the opener and auto-closes on success.
    """
    status_text = "Connected!" if success else "Connection failed"
    color = "#00d992" if success else "#ef4444"
    payload = json.dumps(
        {"type": "oauth-callback", "provider": provider, "success": success, "message": message}
    ).replace("</", "<\\/")
    retry = "" if success else '<p class="close-note">Close this window and click Connect to try again.</p>'
    close = "setTimeout(() => window.close(), 2000);" if success else ""

    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{html.escape(provider)} — {status_text}</title>
    <style>
        body {{
            font-family: system-ui, sans-serif;
            background: #0b0d11; color: #e4e7ee;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        .card {{
            text-align: center; padding: 40px;
            background: #12151b; border: 1px solid #1f2330;
            border-radius: 12px; max-width: 400px;
        }}
        h2 {{ color: {color}; margin: 16px 0 8px; }}
        p {{ color: #a0a6b8; font-size: 0.85rem; }}
        .close-note {{ color: #636a80; font-size: 0.7rem; margin-top: 20px; }}
    </style>
</head>
<body>
    <div class="card">
        <h2>{status_text}</h2>
        <p>{html.escape(message)}</p>
        {retry}
    </div>
    <script>
        if (window.opener) {{
            window.opener.postMessage({payload}, window.location.origin);
        }}
        {close}
    </script>
</body>
</html>"""
