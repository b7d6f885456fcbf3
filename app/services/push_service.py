"""Push delivery for new messages.

Runs after the send request has been answered. Every recipient is handled in
its own coroutine and every failure stays inside that coroutine, so a dead
token or a slow push gateway never reaches the sender.
"""

import asyncio
import logging

import httpx
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.db.database import session_scope
from app.models.conversation import ConversationParticipant
from app.services.push_tokens import is_push_token, list_tokens, remove_tokens
from app.services.read_tracking import has_unread

logger = logging.getLogger(__name__)

# Ticket errors meaning the token will never work again
_STALE_TOKEN_ERRORS = ("DeviceNotRegistered",)
_STALE_TOKEN_MESSAGES = (
    "DeviceNotRegistered",
    "not a registered push notification recipient",
    "is not a valid Expo push token",
)


def truncate_preview(content: str, limit: int | None = None) -> str:
    limit = limit or settings.push_preview_length
    return content[:limit] + ("..." if len(content) > limit else "")


def build_message_payload(conversation_id: int, sender_id: int, sender_name: str, content: str) -> dict:
    """Title, body and data for a new-message notification."""
    return {
        "title": f"New message from {sender_name}",
        "body": truncate_preview(content),
        "data": {
            "type": "message",
            "conversationId": str(conversation_id),
            "senderId": str(sender_id),
            "senderName": sender_name,
        },
    }


def is_stale_ticket(ticket: dict) -> bool:
    if ticket.get("status") != "error":
        return False
    details = ticket.get("details") or {}
    if details.get("error") in _STALE_TOKEN_ERRORS:
        return True
    message = ticket.get("message") or ""
    return any(marker in message for marker in _STALE_TOKEN_MESSAGES)


def chunk_messages(messages: list[dict], size: int) -> list[list[dict]]:
    return [messages[i:i + size] for i in range(0, len(messages), size)]


class ExpoPushTransport:
    """Client for the Expo push API (https://docs.expo.dev/push-notifications/sending-notifications/)."""

    def __init__(
        self,
        url: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        chunk_size: int | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or settings.expo_push_url
        self.access_token = access_token if access_token is not None else settings.expo_access_token
        self.timeout = timeout or settings.push_timeout_seconds
        self.chunk_size = chunk_size or settings.push_chunk_size
        self.http_transport = http_transport

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(self, messages: list[dict]) -> list[dict]:
        """Send messages in chunks; returns one ticket per message, in order."""
        tickets: list[dict] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport) as client:
            for chunk in chunk_messages(messages, self.chunk_size):
                try:
                    response = await client.post(self.url, json=chunk, headers=self._headers())
                    response.raise_for_status()
                    chunk_tickets = response.json().get("data", [])
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning(f"Push chunk of {len(chunk)} failed: {e}")
                    chunk_tickets = []
                # Keep tickets aligned with messages even when the gateway misbehaves
                if len(chunk_tickets) != len(chunk):
                    chunk_tickets = list(chunk_tickets)[:len(chunk)]
                    chunk_tickets += [
                        {"status": "error", "message": "No ticket returned"}
                    ] * (len(chunk) - len(chunk_tickets))
                tickets.extend(chunk_tickets)
        return tickets


class DisabledPushTransport:
    """Used when PUSH_ENABLED is false: logs and drops every message."""

    async def send(self, messages: list[dict]) -> list[dict]:
        for message in messages:
            logger.info(f"Push disabled, dropping notification: {message.get('title')}")
        return [{"status": "error", "message": "Push disabled"} for _ in messages]


def default_transport():
    return ExpoPushTransport() if settings.push_enabled else DisabledPushTransport()


class PushDispatcher:
    """Fans a new message out to the other participants' devices."""

    def __init__(self, transport=None, session_factory=None, recipient_timeout: float | None = None):
        self.transport = transport
        self.session_factory = session_factory
        self.recipient_timeout = recipient_timeout or settings.push_timeout_seconds * 2

    def _transport(self):
        if self.transport is None:
            self.transport = default_transport()
        return self.transport

    def _recipients(self, conversation_id: int, sender_id: int) -> list[int]:
        with session_scope(self.session_factory) as db:
            rows = (
                db.query(ConversationParticipant.user_id)
                .filter(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.is_active == True,  # noqa: E712
                    ConversationParticipant.user_id != sender_id,
                )
                .all()
            )
        return [uid for (uid,) in rows]

    async def notify_new_message(
        self,
        conversation_id: int,
        sender_id: int,
        sender_name: str,
        content: str,
    ) -> int:
        """Push the message to every participant who still has it unread.

        Returns the number of tokens the push service accepted. Never raises.
        """
        try:
            recipient_ids = await run_in_threadpool(self._recipients, conversation_id, sender_id)
        except Exception:
            logger.error(
                f"Could not enumerate participants of conversation {conversation_id}, skipping push",
                exc_info=True,
            )
            return 0

        if not recipient_ids:
            return 0

        payload = build_message_payload(conversation_id, sender_id, sender_name, content)
        results = await asyncio.gather(
            *(
                asyncio.wait_for(
                    self._deliver(recipient_id, conversation_id, payload),
                    timeout=self.recipient_timeout,
                )
                for recipient_id in recipient_ids
            ),
            return_exceptions=True,
        )

        delivered = 0
        for recipient_id, result in zip(recipient_ids, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Push to user {recipient_id} for conversation {conversation_id} failed: {result!r}"
                )
            else:
                delivered += result
        logger.info(
            f"Conversation {conversation_id}: {delivered} push notification(s) accepted "
            f"for {len(recipient_ids)} recipient(s)"
        )
        return delivered

    def _deliverable_tokens(self, recipient_id: int, conversation_id: int) -> list[str]:
        """Valid tokens of a recipient who still has unread messages; empty otherwise."""
        with session_scope(self.session_factory) as db:
            if not has_unread(db, conversation_id, recipient_id):
                logger.debug(
                    f"User {recipient_id} has no unread messages in conversation "
                    f"{conversation_id} - skipping notification"
                )
                return []
            return [t.push_token for t in list_tokens(db, recipient_id) if is_push_token(t.push_token)]

    def _remove_stale(self, tokens: list[str]) -> None:
        with session_scope(self.session_factory) as db:
            remove_tokens(db, tokens)

    async def _deliver(self, recipient_id: int, conversation_id: int, payload: dict) -> int:
        # Database work runs in the threadpool so the event loop keeps serving requests
        tokens = await run_in_threadpool(self._deliverable_tokens, recipient_id, conversation_id)
        if not tokens:
            logger.debug(f"No valid push tokens for user {recipient_id}")
            return 0

        messages = [
            {
                "to": token,
                "sound": "default",
                "title": payload["title"],
                "body": payload["body"],
                "data": payload["data"],
                "priority": "high",
                "channelId": "default",
            }
            for token in tokens
        ]
        tickets = await self._transport().send(messages)

        stale = [m["to"] for m, ticket in zip(messages, tickets) if is_stale_ticket(ticket)]
        if stale:
            logger.warning(f"Found {len(stale)} invalid push token(s) for user {recipient_id}")
            await run_in_threadpool(self._remove_stale, stale)

        return sum(1 for ticket in tickets if ticket.get("status") == "ok")


push_dispatcher = PushDispatcher()


def get_push_dispatcher() -> PushDispatcher:
    return push_dispatcher
