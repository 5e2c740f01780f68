"""LINE provider (BOT API trial webhook).

Runs an aiohttp web server that receives message batches, verifies
the HMAC-SHA256 channel signature, and dispatches text messages.
Every LINE message is a one-to-one conversation with the bot, so
events are always treated as directly addressed; the sender's mid is
used as the channel and reply target.
"""

import asyncio
import base64
import hashlib
import hmac
from enum import IntEnum
from typing import List, Optional

import aiohttp
import structlog
from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..event import Event
from ..exceptions import SendError, SignatureError
from ..handler import Handler
from .base import BaseProvider

logger = structlog.get_logger("apebot.providers.line")

DEFAULT_API_URL = "https://trialbot-api.line.me/v1/events"
SIGNATURE_HEADER = "X-Line-ChannelSignature"

# Fixed values of the trial BOT API for sending messages
SEND_TO_CHANNEL = 1383378250
SEND_EVENT_TYPE = "138311608800106203"
TO_TYPE_USER = 1


class ContentType(IntEnum):
    UNKNOWN = 0
    TEXT = 1
    IMAGE = 2
    VIDEO = 3
    AUDIO = 4
    LOCATION = 7
    STICKER = 8
    CONTACT = 10


class ReceivingContent(BaseModel):
    """Message content. Only the fields used for text are modelled."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    from_: str = Field(default="", alias="from")
    content_type: int = Field(default=ContentType.UNKNOWN, alias="contentType")
    to_type: int = Field(default=0, alias="toType")
    text: str = ""


class ReceivingMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_: str = Field(default="", alias="from")
    event_type: str = Field(default="", alias="eventType")
    id: str = ""
    content: Optional[ReceivingContent] = None


class ReceivingBody(BaseModel):
    result: List[ReceivingMessage] = Field(default_factory=list)


def _digest(channel_secret: str, body: bytes) -> bytes:
    return hmac.new(channel_secret.encode(), body, hashlib.sha256).digest()


def compute_signature(channel_secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of ``body`` keyed by the channel secret."""
    return base64.b64encode(_digest(channel_secret, body)).decode()


def verify_signature(channel_secret: str, body: bytes, signature: str) -> None:
    """Check a webhook signature.

    Raises:
        SignatureError: The header is not base64 or does not match.
    """
    try:
        expected = base64.b64decode(signature, validate=True)
    except (ValueError, TypeError) as e:
        raise SignatureError("invalid signature encoding") from e
    if not hmac.compare_digest(expected, _digest(channel_secret, body)):
        raise SignatureError("signature check failed")


class LineProvider(BaseProvider):
    """LINE webhook transport.

    Args:
        bot: Handler receiving events.
        channel_id: LINE channel id.
        channel_secret: Channel secret, used for signatures and sending.
        mid: The bot's MID.
        host: Listen host for the webhook.
        port: Listen port for the webhook.
        api_url: Events endpoint for outbound messages.
        session: Optional aiohttp client session for send().
    """

    name = "line"

    def __init__(
        self,
        bot: Handler,
        channel_id: str,
        channel_secret: str,
        mid: str,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        api_url: str = DEFAULT_API_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(bot)
        self.channel_id = channel_id
        self.channel_secret = channel_secret
        self.mid = mid
        self.host = host
        self.port = port
        self.api_url = api_url
        self.session = session
        self._owns_session = session is None
        self._runner: Optional[web.AppRunner] = None
        self._stopped: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def make_app(self) -> web.Application:
        """Build the webhook application (one route, any path)."""
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle_webhook)
        return app

    async def handle_webhook(self, request: web.Request) -> web.Response:
        if request.method != "POST":
            return web.Response(status=405, text="method not allowed")
        try:
            data = await request.read()
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.error("line_body_read_failed", error=str(e))
            return web.Response(status=500, text="internal server error")

        signature = request.headers.get(SIGNATURE_HEADER, "")
        self.spawn(self.handle_messages(data, signature))
        return web.Response(status=200)

    async def handle_messages(self, data: bytes, signature: str) -> int:
        """Verify and parse one webhook body, dispatching text messages.

        Returns:
            Number of events dispatched.
        """
        try:
            verify_signature(self.channel_secret, data, signature)
        except SignatureError as e:
            logger.warning("line_signature_rejected", error=e.message)
            return 0

        logger.debug("line_webhook_body", length=len(data))
        try:
            body = ReceivingBody.model_validate_json(data)
        except ValidationError as e:
            logger.warning("line_invalid_body", error=str(e)[:200])
            return 0

        dispatched = 0
        for message in body.result:
            event = self.new_event(message)
            if event is not None:
                self.dispatch(event)
                dispatched += 1
        return dispatched

    def new_event(self, message: ReceivingMessage) -> Optional[Event]:
        """Build an Event from a text message; other content is ignored."""
        content = message.content
        if content is None or content.content_type != ContentType.TEXT:
            return None
        sender = content.from_ or message.from_
        return Event.parse(
            content.text,
            self,
            channel=sender,
            always_addressed=True,
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def build_payload(self, to: str, message: str) -> dict:
        return {
            "to": [to],
            "toChannel": SEND_TO_CHANNEL,
            "eventType": SEND_EVENT_TYPE,
            "content": {
                "contentType": int(ContentType.TEXT),
                "toType": TO_TYPE_USER,
                "text": message,
            },
        }

    def build_headers(self) -> dict:
        return {
            "Content-Type": "application/json; charset=UTF-8",
            "X-Line-ChannelID": self.channel_id,
            "X-Line-ChannelSecret": self.channel_secret,
            "X-Line-Trusted-User-With-ACL": self.mid,
        }

    async def send(self, to: str, message: str) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession()
        try:
            async with self.session.post(
                self.api_url,
                json=self.build_payload(to, message),
                headers=self.build_headers(),
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise SendError(
                        f"LINE API returned {resp.status}",
                        destination=to,
                        module="providers.line",
                        status=resp.status,
                        body=body[:200],
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SendError(str(e), destination=to, module="providers.line") from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Serve the webhook until stop() is called."""
        self._stopped = asyncio.Event()
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("line_listening", host=self.host, port=self.port)
        try:
            await self._stopped.wait()
        finally:
            await self._runner.cleanup()
            self._runner = None

    async def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
        await super().stop()
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    def __repr__(self) -> str:
        return f"LineProvider(channel_id={self.channel_id!r}, port={self.port})"
