"""Tests for the bridge client and the stdio host loop."""

import asyncio
import io
import json
import threading

import pytest

from tijarati.bridge import BridgeClient, BridgeUnavailableError, connect_local, serve
from tijarati.models.bridge import RequestKind


class TestLocalClient:
    """Client wired to an in-process dispatcher."""

    async def test_call_round_trip(self, host):
        client = connect_local(host.dispatcher)
        result = await client.call(RequestKind.SAVE_TRANSACTION, {"id": "t1", "item": "bread"})
        assert result == {"success": True}
        rows = await client.call("GET_TRANSACTIONS")
        assert [tx["id"] for tx in rows] == ["t1"]
        assert client.pending_count == 0

    async def test_concurrent_calls_resolve_to_their_own_results(self, host):
        client = connect_local(host.dispatcher)
        await asyncio.gather(*[
            client.call(RequestKind.SAVE_PARTNER, {"name": f"P{i}"}) for i in range(5)
        ])
        results = await asyncio.gather(
            client.call(RequestKind.GET_PARTNERS),
            client.call(RequestKind.SECURITY_GET),
            client.call(RequestKind.AI_STATUS),
        )
        assert len(results[0]) == 5
        assert "pinEnabled" in results[1]
        assert results[2]["enabled"] is False

    async def test_notify_gets_no_answer(self, host):
        client = connect_local(host.dispatcher)
        await client.notify(RequestKind.SAVE_TRANSACTION, {"id": "t1"})
        assert client.pending_count == 0
        assert [tx.id for tx in await host.store.get_all_transactions()] == ["t1"]


class TestClientChannel:

    async def test_unavailable_raises_immediately(self):
        client = BridgeClient(None)
        assert not client.available
        with pytest.raises(BridgeUnavailableError, match="Native bridge not available"):
            client.request(RequestKind.GET_TRANSACTIONS)

    async def test_close_fails_pending(self):
        sent = []

        async def sender(text):
            sent.append(json.loads(text))

        client = BridgeClient(sender)
        future = client.request(RequestKind.GET_TRANSACTIONS)
        await asyncio.sleep(0)
        assert sent[0]["type"] == "GET_TRANSACTIONS"

        client.close()

        with pytest.raises(BridgeUnavailableError, match="Native bridge closed"):
            await future
        with pytest.raises(BridgeUnavailableError):
            client.request(RequestKind.GET_TRANSACTIONS)

    async def test_send_failure_fails_the_request(self):
        async def sender(text):
            raise ConnectionError("pipe closed")

        client = BridgeClient(sender)
        with pytest.raises(BridgeUnavailableError, match="pipe closed"):
            await client.call(RequestKind.GET_PARTNERS)
        assert client.pending_count == 0

    async def test_receive_matches_by_id(self):
        sent = []

        async def sender(text):
            sent.append(json.loads(text))

        client = BridgeClient(sender)
        future = client.request(RequestKind.GET_PARTNERS)
        await asyncio.sleep(0)
        request_id = sent[0]["id"]

        assert client.receive(json.dumps({"id": "someone-else", "result": []})) is False
        assert client.receive("garbage") is False
        assert not future.done()

        assert client.receive(json.dumps({"id": request_id, "result": [{"id": 1}]})) is True
        assert await future == [{"id": 1}]
        assert client.receive(json.dumps({"id": request_id, "result": []})) is False


class HeldOpenInput:
    """Hands out its lines, then blocks like an idle pipe until released."""

    def __init__(self, lines: list[str]):
        self._lines = list(lines)
        self.released = threading.Event()

    def readline(self) -> str:
        if self._lines:
            return self._lines.pop(0) + "\n"
        self.released.wait(timeout=5)
        return ""


class TestStdioHost:
    """JSON lines over text streams."""

    async def test_serve_answers_each_line(self, host):
        stdin = io.StringIO("\n".join([
            json.dumps({"id": "1", "type": "SAVE_TRANSACTION", "payload": {"id": "t1"}}),
            "",
            "not json",
            json.dumps({"type": "SAVE_PARTNER", "payload": {"name": "Sara"}}),
            json.dumps({"id": "2", "type": "NOPE"}),
        ]) + "\n")
        stdout = io.StringIO()

        processed = await serve(host.dispatcher, stdin=stdin, stdout=stdout)

        assert processed == 4
        responses = {
            r["id"]: r["result"]
            for r in map(json.loads, stdout.getvalue().splitlines())
        }
        assert responses == {
            "1": {"success": True},
            "2": {"success": False, "error": "Unknown request type: NOPE"},
        }
        assert len(await host.store.get_all_partners()) == 1

    async def test_serve_stops_when_asked(self, host):
        stop = asyncio.Event()
        stop.set()
        stdin = io.StringIO(json.dumps({"id": "1", "type": "GET_PARTNERS"}) + "\n")
        stdout = io.StringIO()

        assert await serve(host.dispatcher, stdin=stdin, stdout=stdout, stop=stop) == 0
        assert stdout.getvalue() == ""

    async def test_exit_request_ends_serve_without_more_input(self, host, navigation):
        stdin = HeldOpenInput([json.dumps({"id": "1", "type": "EXIT_APP"})])
        stdout = io.StringIO()
        try:
            processed = await asyncio.wait_for(
                serve(host.dispatcher, stdin=stdin, stdout=stdout, stop=navigation.exit_requested),
                timeout=2,
            )
        finally:
            stdin.released.set()

        assert processed == 1
        assert json.loads(stdout.getvalue()) == {"id": "1", "result": {"success": True}}

    async def test_unlock_over_stdio(self, host):
        await host.gate.set_pin("1234")
        stdin = io.StringIO(json.dumps({"id": "1", "type": "SECURITY_UNLOCK", "payload": {"pin": "1234"}}) + "\n")
        stdout = io.StringIO()

        await serve(host.dispatcher, stdin=stdin, stdout=stdout)

        assert json.loads(stdout.getvalue())["result"] == {"success": True, "unlocked": True}
        assert not host.gate.locked
