"""
test_collaborators.py — Short links, notifications, log formatting and the
SQL proposal store.

No network, broker or database: the short-link client runs against
httpx.MockTransport, the notifier against a recording stand-in for the Celery
task and the store against a scripted session.
"""

import asyncio
import json
import logging
from types import SimpleNamespace

import httpx
import pytest

from app.models.proposal_schema import Proposal
from app.services.errors import ConcurrentModification
from app.services.logging_config import JSONFormatter, RequestContextFilter, request_id_var
from app.services.notifications import ProposalNotifier, render_notification
from app.services.proposal_store import SqlProposalStore
from app.services.short_links import ShortLinkClient


class TestShortLinks:

    def test_fallback_without_service(self):
        client = ShortLinkClient(base_url="https://p.test/", api_url="")
        assert asyncio.run(client.mint("proposal", "abc")) == "https://p.test/proposal/abc"

    def test_service_response_used(self):
        def handler(request):
            assert json.loads(request.content)["url"] == "https://p.test/proposal/abc"
            return httpx.Response(200, json={"short_url": "https://sho.rt/x1"})

        client = ShortLinkClient(
            base_url="https://p.test", api_url="https://links.test/api",
            transport=httpx.MockTransport(handler),
        )
        assert asyncio.run(client.mint("proposal", "abc")) == "https://sho.rt/x1"

    def test_service_error_falls_back(self):
        client = ShortLinkClient(
            base_url="https://p.test", api_url="https://links.test/api",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        assert asyncio.run(client.mint("proposal", "abc")) == "https://p.test/proposal/abc"


class _RecordingTask:
    def __init__(self):
        self.calls = []

    def delay(self, message):
        self.calls.append(message)


class TestNotifications:

    def _proposal(self):
        return Proposal(id="p-9", version=3, client_name="Acme")

    def test_render(self):
        message = render_notification(
            "edited", self._proposal(),
            changes=[{"op": "set_status", "description": "Status changed from draft to sent"}],
            short_link="https://p.test/proposal/p-9",
        )
        assert message["event"] == "proposal.edited"
        assert message["proposal_id"] == "p-9"
        assert "Status changed from draft to sent" in message["text"]
        assert message["text"].splitlines()[0] == "Proposal edited for Acme: $0.00 (draft)"

    def test_disabled_notifier_sends_nothing(self):
        task = _RecordingTask()
        assert ProposalNotifier(enabled=False, task=task).notify("created", self._proposal()) is None
        assert task.calls == []

    def test_enabled_notifier_enqueues(self):
        task = _RecordingTask()
        message = ProposalNotifier(enabled=True, task=task).notify("created", self._proposal())
        assert task.calls == [message]


class TestJSONFormatter:

    def test_context_fields_included(self):
        record = logging.LogRecord("wellness-editor", logging.WARNING, __file__, 1, "failed", None, None)
        record.proposal_id = "p-1"
        record.operation_index = 2
        payload = json.loads(JSONFormatter().format(record))
        assert payload["logger"] == "wellness-editor"
        assert payload["proposal_id"] == "p-1"
        assert payload["operation_index"] == 2
        assert "duration_ms" not in payload

    def test_request_id_stamped_from_context(self):
        record = logging.LogRecord("wellness-store", logging.INFO, __file__, 1, "saved", None, None)
        token = request_id_var.set("req-42")
        try:
            assert RequestContextFilter().filter(record) is True
        finally:
            request_id_var.reset(token)
        assert json.loads(JSONFormatter().format(record))["request_id"] == "req-42"

    def test_explicit_request_id_kept(self):
        record = logging.LogRecord("wellness-api", logging.INFO, __file__, 1, "done", None, None)
        record.request_id = "outer"
        token = request_id_var.set("inner")
        try:
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "outer"

    def test_no_request_outside_http(self):
        record = logging.LogRecord("wellness-worker", logging.INFO, __file__, 1, "sent", None, None)
        RequestContextFilter().filter(record)
        assert "request_id" not in json.loads(JSONFormatter().format(record))


class _ScriptedSession:
    """Records the calls SqlProposalStore makes; ``rowcount`` scripts the UPDATE result."""

    def __init__(self, rowcount=1, existing=None):
        self.rowcount = rowcount
        self.existing = existing
        self.calls = []

    def add(self, record):
        self.calls.append("add")

    async def execute(self, statement):
        self.calls.append("execute")
        return SimpleNamespace(rowcount=self.rowcount)

    async def get(self, model, key):
        self.calls.append("get")
        return self.existing

    async def commit(self):
        self.calls.append("commit")


class TestSqlProposalStore:

    def _proposal(self):
        return Proposal(id="p-5", version=2, client_name="Acme")

    def test_create_commits_before_returning(self):
        session = _ScriptedSession()
        stored = asyncio.run(SqlProposalStore(session).create(self._proposal(), short_link="https://p.test/x"))
        assert stored.version == 1
        assert session.calls == ["add", "commit"]

    def test_save_commits_new_version(self):
        session = _ScriptedSession(rowcount=1)
        stored = asyncio.run(SqlProposalStore(session).save(self._proposal(), expected_version=2))
        assert stored.version == 3
        assert session.calls == ["execute", "commit"]

    def test_stale_save_not_committed(self):
        session = _ScriptedSession(rowcount=0, existing=object())
        with pytest.raises(ConcurrentModification):
            asyncio.run(SqlProposalStore(session).save(self._proposal(), expected_version=1))
        assert "commit" not in session.calls
