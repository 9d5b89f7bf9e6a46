"""Local ngrok tunnel discovery (developer convenience)."""

from __future__ import annotations

import logging

import httpx

from buzzguard.core.exceptions import TunnelNotFoundError

logger = logging.getLogger(__name__)

NGROK_API_URL = "http://localhost:4040/api/tunnels"


async def find_tunnel_url(
    port: int,
    api_url: str = NGROK_API_URL,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return the public https URL of the ngrok tunnel forwarding to ``port``.

    Raises:
        TunnelNotFoundError: No agent is running, or none of its tunnels match.
    """
    async with httpx.AsyncClient(timeout=2.0, transport=transport) as client:
        try:
            response = await client.get(api_url)
            response.raise_for_status()
            tunnels = response.json().get("tunnels", [])
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            raise TunnelNotFoundError(f"ngrok agent unavailable: {exc}") from exc

    wanted = {f"localhost:{port}", f"http://localhost:{port}"}
    for tunnel in tunnels:
        if tunnel.get("proto") == "https" and tunnel.get("config", {}).get("addr") in wanted:
            return str(tunnel["public_url"])

    raise TunnelNotFoundError(f"No https tunnel forwards to port {port}")
