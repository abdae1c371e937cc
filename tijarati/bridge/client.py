"""
Bridge Client

The presentation-layer side of the bridge: sends request envelopes and
resolves each pending request when its response arrives.

Pending requests are futures keyed by request id. A response for an
unknown id (already answered, or never ours) is ignored.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import uuid4

import structlog

from tijarati.bridge.dispatcher import BridgeError, Dispatcher
from tijarati.models.bridge import RequestKind, ResponseEnvelope


logger = structlog.get_logger(__name__)

Sender = Callable[[str], Awaitable[None]]


class BridgeUnavailableError(BridgeError):
    """The channel to the host is closed or was never opened."""

    def __init__(self, message: str = "Native bridge not available"):
        super().__init__(message)


class BridgeClient:
    """
    Request/response client over a text channel.

    Usage:
        client = BridgeClient(sender)
        result = await client.call(RequestKind.GET_TRANSACTIONS)
        ...
        client.receive(response_text)   # wired to the channel's inbound side
    """

    def __init__(self, sender: Optional[Sender]):
        self._sender = sender
        self._pending: dict[str, asyncio.Future] = {}
        self._sends: set[asyncio.Task] = set()

    @property
    def available(self) -> bool:
        return self._sender is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def request(
        self,
        kind: Union[RequestKind, str],
        payload: Any = None,
    ) -> asyncio.Future:
        """
        Send a request and return a future for its result.

        Raises:
            BridgeUnavailableError: immediately, if the channel is closed
        """
        if self._sender is None:
            raise BridgeUnavailableError()

        request_id = uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        text = self._encode(request_id, kind, payload)
        task = asyncio.ensure_future(self._send(request_id, text))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)
        return future

    async def call(self, kind: Union[RequestKind, str], payload: Any = None) -> Any:
        return await self.request(kind, payload)

    async def notify(self, kind: Union[RequestKind, str], payload: Any = None) -> None:
        """Fire-and-forget: the envelope carries no id and gets no answer."""
        if self._sender is None:
            raise BridgeUnavailableError()
        await self._sender(self._encode(None, kind, payload))

    def receive(self, text: str) -> bool:
        """
        Deliver an inbound response.

        Returns:
            True if it resolved a pending request
        """
        try:
            envelope = ResponseEnvelope.decode(text)
        except ValueError as e:
            logger.warning("bridge_response_invalid", error=str(e))
            return False
        future = self._pending.pop(envelope.id, None)
        if future is None or future.done():
            return False
        future.set_result(envelope.result)
        return True

    def close(self) -> None:
        """Close the channel and fail every pending request."""
        self._sender = None
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(BridgeUnavailableError("Native bridge closed"))

    def _encode(
        self,
        request_id: Optional[str],
        kind: Union[RequestKind, str],
        payload: Any,
    ) -> str:
        message = {
            "type": kind.value if isinstance(kind, RequestKind) else str(kind),
            "payload": payload if payload is not None else {},
        }
        if request_id is not None:
            message["id"] = request_id
        return json.dumps(message, ensure_ascii=False, default=str)

    async def _send(self, request_id: str, text: str) -> None:
        sender = self._sender
        try:
            if sender is None:
                raise BridgeUnavailableError()
            await sender(text)
        except Exception as e:
            future = self._pending.pop(request_id, None)
            if future is not None and not future.done():
                future.set_exception(
                    e if isinstance(e, BridgeError) else BridgeUnavailableError(str(e))
                )


def connect_local(dispatcher: Dispatcher) -> BridgeClient:
    """
    A client wired straight to an in-process dispatcher.

    Each request is handled in its own task; the response is fed back
    through `receive` like a real channel would.
    """
    client: BridgeClient

    async def sender(text: str) -> None:
        response = await dispatcher.handle_message(text)
        if response is not None:
            client.receive(response)

    client = BridgeClient(sender)
    return client
