"""Tests for planner_mcp.conversations."""

import pytest

from planner_mcp.config import GRAPH_BASE_URL as G
from planner_mcp.conversations import add_comment, get_comments, resolve_group_id, summarize_post
from planner_mcp.errors import ConversationError, EmptyConversationError, TransportError

pytestmark = pytest.mark.anyio

TASK = f"{G}/planner/tasks/T1"
PLAN = f"{G}/planner/plans/P1"


def _post(post_id, content, name=None, address=None, created="2026-01-01T10:00:00Z"):
    return {
        "id": post_id,
        "createdDateTime": created,
        "body": {"contentType": "html", "content": content},
        "from": {"emailAddress": {"name": name, "address": address}},
    }


class TestResolveGroupId:
    async def test_prefers_container(self, fake_client, sample_plan):
        fake_client.add("GET", PLAN, sample_plan)
        assert await resolve_group_id(fake_client, "P1") == "G1"

    async def test_falls_back_to_owner(self, fake_client):
        fake_client.add("GET", PLAN, {"id": "P1", "owner": "G-legacy"})
        assert await resolve_group_id(fake_client, "P1") == "G-legacy"

    async def test_none_when_absent(self, fake_client):
        fake_client.add("GET", PLAN, {"id": "P1", "container": {"type": "user"}})
        assert await resolve_group_id(fake_client, "P1") is None

    async def test_not_cached_between_calls(self, fake_client, sample_plan):
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("GET", PLAN, dict(sample_plan, container={"containerId": "G2"}))
        assert await resolve_group_id(fake_client, "P1") == "G1"
        assert await resolve_group_id(fake_client, "P1") == "G2"


class TestAddCommentNewConversation:
    async def test_creates_thread_and_links_task(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("POST", f"{G}/groups/G1/threads", {"id": "TH1", "conversationId": "C1"})
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("PATCH", TASK, "")

        result = await add_comment(fake_client, "T1", "hello")

        create = fake_client.calls[2]
        assert create.body == {
            "topic": "Review PR #123",
            "posts": [{"body": {"contentType": "text", "content": "hello"}}],
        }
        link = fake_client.calls[4]
        assert link.method == "PATCH"
        assert link.headers["If-Match"] == 'W/"task-etag"'
        assert link.body == {"conversationThreadId": "C1"}
        assert "C1" in result and not result.startswith("⚠️")

    async def test_falls_back_to_created_id(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("POST", f"{G}/groups/G1/threads", {"id": "X9"})
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("PATCH", TASK, "")

        await add_comment(fake_client, "T1", "hello")
        assert fake_client.calls[-1].body == {"conversationThreadId": "X9"}

    async def test_link_failure_is_warning_with_orphan_id(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("POST", f"{G}/groups/G1/threads", {"id": "TH1", "conversationId": "C1"})
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("PATCH", TASK, TransportError(412, "PATCH -> 412 PreconditionFailed"))

        result = await add_comment(fake_client, "T1", "hello")

        assert result.startswith("⚠️")
        assert "Orphaned conversation id: C1" in result
        assert len(fake_client.writes()) == 2

    async def test_missing_conversation_id_raises(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("POST", f"{G}/groups/G1/threads", "")
        with pytest.raises(ConversationError):
            await add_comment(fake_client, "T1", "hello")

    async def test_plan_without_group(self, fake_client, sample_task):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, {"id": "P1"})
        with pytest.raises(ConversationError, match="no owning group"):
            await add_comment(fake_client, "T1", "hello")
        assert fake_client.writes() == []


class TestAddCommentExistingConversation:
    async def test_replies_to_first_thread(self, fake_client, sample_task, sample_plan):
        task = dict(sample_task, conversationThreadId="C1")
        fake_client.add("GET", TASK, task)
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add(
            "GET", f"{G}/groups/G1/conversations/C1/threads",
            {"value": [{"id": "TH-B"}, {"id": "TH-A"}]},
        )
        fake_client.add("POST", f"{G}/groups/G1/threads/TH-B/reply", "")

        result = await add_comment(fake_client, "T1", "follow-up")

        reply = fake_client.calls[-1]
        assert reply.url == f"{G}/groups/G1/threads/TH-B/reply"
        assert reply.body == {"post": {"body": {"contentType": "text", "content": "follow-up"}}}
        assert "TH-B" in result
        assert not any(c.method == "PATCH" for c in fake_client.calls)

    async def test_empty_conversation(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, dict(sample_task, conversationThreadId="C1"))
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("GET", f"{G}/groups/G1/conversations/C1/threads", {"value": []})
        with pytest.raises(EmptyConversationError):
            await add_comment(fake_client, "T1", "hello")
        assert fake_client.writes() == []


class TestGetComments:
    async def test_flattens_in_upstream_order(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, dict(sample_task, conversationThreadId="C1"))
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add(
            "GET", f"{G}/groups/G1/conversations/C1/threads",
            {"value": [{"id": "TH1"}, {"id": "TH2"}]},
        )
        fake_client.add("GET", f"{G}/groups/G1/threads/TH1/posts", {"value": [
            _post("p1", "late", name="Ana", created="2026-03-01T00:00:00Z"),
            _post("p2", "early", address="bo@example.com", created="2026-01-01T00:00:00Z"),
        ]})
        fake_client.add("GET", f"{G}/groups/G1/threads/TH2/posts", {"value": [_post("p3", "third")]})

        comments = await get_comments(fake_client, "T1")

        assert [c["id"] for c in comments] == ["p1", "p2", "p3"]
        assert comments[0] == {
            "id": "p1",
            "threadId": "TH1",
            "content": "late",
            "contentType": "html",
            "createdDateTime": "2026-03-01T00:00:00Z",
            "from": "Ana",
        }
        assert comments[1]["from"] == "bo@example.com"
        assert comments[2]["threadId"] == "TH2"
        assert comments[2]["from"] == "Unknown"

    async def test_no_conversation_no_comments(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, sample_task)
        fake_client.add("GET", PLAN, sample_plan)
        assert await get_comments(fake_client, "T1") == []

    async def test_empty_conversation(self, fake_client, sample_task, sample_plan):
        fake_client.add("GET", TASK, dict(sample_task, conversationThreadId="C1"))
        fake_client.add("GET", PLAN, sample_plan)
        fake_client.add("GET", f"{G}/groups/G1/conversations/C1/threads", {"value": []})
        with pytest.raises(EmptyConversationError):
            await get_comments(fake_client, "T1")


def test_summarize_post_uses_sender_when_from_missing():
    post = {"id": "p", "body": {}, "sender": {"emailAddress": {"address": "s@example.com"}}}
    assert summarize_post(post, "TH")["from"] == "s@example.com"
