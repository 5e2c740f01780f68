"""Slack provider (Real Time Messaging API).

Connects with ``rtm.connect``, listens on the returned websocket and
dispatches ``message`` events. The bot is addressed either by its
user name or by its encoded mention, followed by a colon::

    apebot: ping
    <@U024BE7LH>: ping

Outbound messages go through ``chat.postMessage``.
"""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..event import Event
from ..exceptions import ErrorCategory, ProviderError, SendError
from ..handler import Handler, invoke
from .base import BaseProvider

logger = structlog.get_logger("apebot.providers.slack")

DEFAULT_API_URL = "https://slack.com/api"

# Message subtypes that are treated as ordinary chat
_DISPATCHED_SUBTYPES = ("", "bot_message")

INITIAL_RECONNECT_DELAY = 5
MAX_RECONNECT_DELAY = 300


class SlackProvider(BaseProvider):
    """Slack RTM transport.

    Args:
        bot: Handler receiving events.
        token: Slack bot token (xoxb-...).
        api_url: Web API base URL.
        session: Optional aiohttp session; created in run() if omitted.
    """

    name = "slack"

    def __init__(
        self,
        bot: Handler,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(bot)
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session
        self._owns_session = session is None
        self.running = False
        self.start_time = 0.0
        self.my_id = ""
        self.my_name = ""
        self.my_encoded_name = ""
        self._channel_names: Dict[str, str] = {}
        self._user_names: Dict[str, str] = {}
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    # ------------------------------------------------------------------
    # Web API
    # ------------------------------------------------------------------

    async def _api(self, method: str, **params: Any) -> dict:
        """Call a Slack Web API method and return the decoded body.

        Raises:
            ProviderError: Transport failure or ``"ok": false``.
        """
        if self.session is None:
            self.session = aiohttp.ClientSession()
        url = f"{self.api_url}/{method}"
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            async with self.session.post(
                url, data=params, headers=headers,
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise ProviderError(
                f"{method} failed: {e}", module="providers.slack", method=method
            ) from e
        if not body.get("ok"):
            error = body.get("error", "unknown_error")
            category = (
                ErrorCategory.PERMANENT
                if error in ("invalid_auth", "not_authed", "account_inactive")
                else ErrorCategory.TRANSIENT
            )
            raise ProviderError(
                error, category=category, module="providers.slack", method=method
            )
        return body

    async def send(self, to: str, message: str) -> None:
        try:
            await self._api("chat.postMessage", channel=to, text=message)
        except ProviderError as e:
            raise SendError(
                e.message, destination=to, category=e.category, module="providers.slack"
            ) from e

    async def _channel_name(self, channel_id: str) -> str:
        """Resolve a channel id to its name; the id is used until a lookup succeeds."""
        if channel_id in self._channel_names:
            return self._channel_names[channel_id]
        try:
            body = await self._api("conversations.info", channel=channel_id)
        except ProviderError as e:
            logger.warning("slack_channel_lookup_failed", channel=channel_id, error=str(e))
            return channel_id
        name = body.get("channel", {}).get("name") or channel_id
        self._channel_names[channel_id] = name
        return name

    async def _user_name(self, user_id: str) -> str:
        if not user_id:
            return ""
        if user_id in self._user_names:
            return self._user_names[user_id]
        try:
            body = await self._api("users.info", user=user_id)
        except ProviderError as e:
            logger.warning("slack_user_lookup_failed", user=user_id, error=str(e))
            return user_id
        name = body.get("user", {}).get("name") or user_id
        self._user_names[user_id] = name
        return name

    # ------------------------------------------------------------------
    # Event parsing
    # ------------------------------------------------------------------

    def set_identity(self, user_id: str, user_name: str) -> None:
        """Record the bot's own id and name from rtm.connect."""
        self.my_id = user_id
        self.my_name = user_name
        self.my_encoded_name = f"<@{user_id}>" if user_id else ""

    def should_dispatch(self, payload: dict) -> bool:
        """Whether an RTM payload is a chat message worth routing."""
        if payload.get("type") != "message":
            return False
        if payload.get("subtype", "") not in _DISPATCHED_SUBTYPES:
            return False
        try:
            if float(payload.get("ts", "")) < self.start_time:
                return False
        except (TypeError, ValueError):
            pass
        return True

    async def new_event(self, payload: dict) -> Event:
        """Build an Event from an RTM ``message`` payload."""
        channel_id = payload.get("channel", "")
        return Event.parse(
            payload.get("text", ""),
            self,
            channel=await self._channel_name(channel_id),
            nick=await self._user_name(payload.get("user", "")),
            names=(self.my_name, self.my_encoded_name),
            destination=channel_id,
        )

    async def handle_rtm_message(self, payload: dict) -> None:
        """Process one decoded RTM frame."""
        msg_type = payload.get("type")
        if msg_type == "hello":
            logger.info("slack_hello", name=self.my_name)
            return
        if msg_type == "goodbye":
            logger.info("slack_goodbye")
            if self._ws is not None:
                await self._ws.close()
            return
        if not self.should_dispatch(payload):
            return
        # Name lookups run in the message task, never in the receive loop
        self.spawn(self._route_message(payload))

    async def _route_message(self, payload: dict) -> None:
        await invoke(self.bot, await self.new_event(payload), None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _connect(self) -> str:
        """Call rtm.connect and return the websocket URL."""
        body = await self._api("rtm.connect")
        me = body.get("self", {})
        self.set_identity(me.get("id", ""), me.get("name", ""))
        return body["url"]

    async def run(self) -> None:
        """Receive RTM events until stopped.

        Raises:
            ProviderError: Slack rejected the token.
        """
        if self.session is None:
            self.session = aiohttp.ClientSession()
        self.running = True
        self.start_time = time.time()
        reconnect_delay = INITIAL_RECONNECT_DELAY

        while self.running:
            try:
                ws_url = await self._connect()
                logger.info("slack_connecting", name=self.my_name)
                async with self.session.ws_connect(ws_url, heartbeat=30) as ws:
                    self._ws = ws
                    logger.info("slack_connected")
                    reconnect_delay = INITIAL_RECONNECT_DELAY
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            try:
                                payload = json.loads(msg.data)
                            except json.JSONDecodeError:
                                logger.warning("invalid_json", data=msg.data[:100])
                                continue
                            await self.handle_rtm_message(payload)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error("slack_websocket_error", error=str(ws.exception()))
                            break
                        elif msg.type == aiohttp.WSMsgType.CLOSED:
                            logger.info("slack_websocket_closed")
                            break
                self._ws = None

            except asyncio.CancelledError:
                break
            except ProviderError as e:
                if not e.is_retryable:
                    logger.error("slack_auth_failed", error=str(e))
                    self.running = False
                    raise
                logger.error("slack_connect_error", error=str(e))
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)
            except Exception as e:
                logger.error("slack_exception", error=str(e))
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)

    async def stop(self) -> None:
        """Close the websocket and session, then cancel dispatch tasks."""
        self.running = False
        if self._ws is not None:
            await self._ws.close()
        await super().stop()
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None
