"""Internal HTTP server for web-triggered bot actions (role DMs, chat connection control)."""
from __future__ import annotations

import logging

import aiohttp.web

import config
from bot.services.errors import TransportFailure

logger = logging.getLogger("mafia.http")


def _check_auth(request: aiohttp.web.Request) -> aiohttp.web.Response | None:
    if not config.INTERNAL_API_SECRET:
        logger.warning("INTERNAL_API_SECRET not set - rejecting %s", request.path)
        return aiohttp.web.json_response({"error": "Internal API not configured"}, status=503)
    if request.headers.get("Authorization") != f"Bearer {config.INTERNAL_API_SECRET}":
        return aiohttp.web.json_response({"error": "Unauthorized"}, status=401)
    return None


async def _read_json(request: aiohttp.web.Request) -> dict | aiohttp.web.Response:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except Exception:
        return aiohttp.web.json_response({"error": "Invalid JSON"}, status=400)
    if not isinstance(body, dict):
        return aiohttp.web.json_response({"error": "JSON object expected"}, status=400)
    return body


async def _handle_send_dm(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/send-dm - Deliver a private message through Discord (called by web API)."""
    denied = _check_auth(request)
    if denied:
        return denied
    body = await _read_json(request)
    if isinstance(body, aiohttp.web.Response):
        return body

    contact_id = body.get("contact_id")
    text = body.get("text")
    if not isinstance(contact_id, str) or not contact_id or not isinstance(text, str) or not text:
        return aiohttp.web.json_response({"error": "contact_id and text required (strings)"}, status=400)

    try:
        await request.app["sink"].send_private_message(contact_id, text)
    except TransportFailure as e:
        logger.warning("DM to %s failed: %s", contact_id, e.message)
        return aiohttp.web.json_response({"error": e.message}, status=502)
    return aiohttp.web.json_response({"ok": True})


async def _handle_status(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """GET /internal/status - Discord and chat connection status."""
    denied = _check_auth(request)
    if denied:
        return denied
    bot = request.app["bot"]
    listener = request.app["listener"]
    return aiohttp.web.json_response(
        {
            "discord": {
                "ready": bot.is_ready(),
                "user": str(bot.user) if bot.user else None,
            },
            "chat": listener.status(),
        }
    )


async def _handle_chat_reconnect(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/chat/reconnect - (Re)connect the chat listener, optionally to a new channel."""
    denied = _check_auth(request)
    if denied:
        return denied
    body = await _read_json(request)
    if isinstance(body, aiohttp.web.Response):
        return body
    channel = body.get("channel")
    if channel is not None and not isinstance(channel, str):
        return aiohttp.web.json_response({"error": "channel must be a string"}, status=400)

    listener = request.app["listener"]
    await listener.restart(channel)
    return aiohttp.web.json_response({"ok": True, "chat": listener.status()})


async def _handle_chat_disconnect(request: aiohttp.web.Request) -> aiohttp.web.Response:
    """POST /internal/chat/disconnect - Stop listening to chat until the next reconnect."""
    denied = _check_auth(request)
    if denied:
        return denied
    listener = request.app["listener"]
    await listener.stop()
    return aiohttp.web.json_response({"ok": True, "chat": listener.status()})


def create_app(bot, sink, listener) -> aiohttp.web.Application:
    """Create aiohttp app with bot, message sink and chat listener references."""
    app = aiohttp.web.Application()
    app["bot"] = bot
    app["sink"] = sink
    app["listener"] = listener
    app.router.add_post("/internal/send-dm", _handle_send_dm)
    app.router.add_get("/internal/status", _handle_status)
    app.router.add_post("/internal/chat/reconnect", _handle_chat_reconnect)
    app.router.add_post("/internal/chat/disconnect", _handle_chat_disconnect)
    return app


async def start_http_server(bot, sink, listener, host: str = "0.0.0.0", port: int = 8001) -> aiohttp.web.AppRunner | None:
    """Start the internal HTTP server (run as a task alongside the bot)."""
    if not config.INTERNAL_API_SECRET:
        logger.info("INTERNAL_API_SECRET not set - skipping internal HTTP server")
        return None
    app = create_app(bot, sink, listener)
    runner = aiohttp.web.AppRunner(app)
    await runner.setup()
    site = aiohttp.web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Internal HTTP server listening on %s:%d", host, port)
    return runner
