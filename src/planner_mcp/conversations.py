"""
Task comments.

Planner keeps comments in the plan's M365 group conversations. A task points
at its conversation through conversationThreadId, which is unset until the
first comment is posted.
"""

import sys
from typing import Any, Dict, List, Optional

from planner_mcp.deltas import field_replace
from planner_mcp.errors import ConversationError, EmptyConversationError, PlannerError
from planner_mcp.graph import execute, get_json, post_json
from planner_mcp.locator import locate
from planner_mcp.mutations import guarded_patch


def _text_body(comment: str) -> Dict[str, str]:
    return {"contentType": "text", "content": comment}


async def resolve_group_id(client, plan_id: str) -> Optional[str]:
    """
    Look up the M365 group that owns a plan.

    Resolved on every call; group ownership is never cached.
    """
    plan = await get_json(client, locate("plan", plan_id))
    container = plan.get("container") or {}
    return container.get("containerId") or plan.get("owner") or None


async def _task_context(client, task_id: str) -> Dict[str, Any]:
    task = await get_json(client, locate("task", task_id))
    plan_id = task.get("planId")
    if not plan_id:
        raise ConversationError(f"Task {task_id} has no planId")
    group_id = await resolve_group_id(client, plan_id)
    if not group_id:
        raise ConversationError(f"Plan {plan_id} has no owning group; comments are unavailable")
    return {
        "title": task.get("title") or "",
        "conversation_id": task.get("conversationThreadId") or None,
        "group_id": group_id,
    }


async def list_threads(client, group_id: str, conversation_id: str) -> List[Dict[str, Any]]:
    """
    List the threads of a conversation in upstream order.

    Raises:
        EmptyConversationError: If the conversation has no threads
    """
    data = await get_json(client, locate("conversationThreads", group_id, conversation_id))
    threads = data.get("value") or []
    if not threads:
        raise EmptyConversationError(
            f"Conversation {conversation_id} in group {group_id} has no threads"
        )
    return threads


def _sender(post: Dict[str, Any]) -> str:
    for role in ("from", "sender"):
        address = (post.get(role) or {}).get("emailAddress") or {}
        if address.get("name") or address.get("address"):
            return address.get("name") or address.get("address")
    return "Unknown"


def summarize_post(post: Dict[str, Any], thread_id: str) -> Dict[str, Any]:
    body = post.get("body") or {}
    return {
        "id": post.get("id"),
        "threadId": thread_id,
        "content": body.get("content", ""),
        "contentType": body.get("contentType", ""),
        "createdDateTime": post.get("createdDateTime"),
        "from": _sender(post),
    }


async def get_comments(client, task_id: str) -> List[Dict[str, Any]]:
    """
    Flatten every post of every thread in the task's conversation.

    Order is the upstream listing order (threads, then posts); nothing is
    re-sorted. A task that was never commented on has no comments.
    """
    context = await _task_context(client, task_id)
    if not context["conversation_id"]:
        return []

    group_id = context["group_id"]
    comments = []
    for thread in await list_threads(client, group_id, context["conversation_id"]):
        thread_id = thread["id"]
        posts = await get_json(client, locate("threadPosts", group_id, thread_id))
        comments.extend(summarize_post(post, thread_id) for post in posts.get("value") or [])
    return comments


async def add_comment(client, task_id: str, comment: str) -> str:
    """
    Post a comment on a task.

    If the task already has a conversation, reply to its first thread.
    Otherwise start a thread titled after the task and link the new
    conversation to the task with a guarded PATCH. A failed link does not
    undo the posted comment, so it is reported as a warning carrying the
    orphaned conversation id.

    Returns:
        Confirmation or warning text
    """
    context = await _task_context(client, task_id)
    group_id = context["group_id"]
    conversation_id: Optional[str] = context["conversation_id"]

    if conversation_id:
        threads = await list_threads(client, group_id, conversation_id)
        thread_id = threads[0]["id"]
        await execute(
            client,
            "POST",
            locate("threadReply", group_id, thread_id),
            {"post": {"body": _text_body(comment)}},
        )
        return f"Comment added to task {task_id} (conversation {conversation_id}, thread {thread_id})"

    created = await post_json(
        client,
        locate("groupThreads", group_id),
        {"topic": context["title"], "posts": [{"body": _text_body(comment)}]},
    )
    conversation_id = created.get("conversationId") or created.get("id")
    if not conversation_id:
        raise ConversationError(f"Graph did not return a conversation id for the new thread on task {task_id}")

    try:
        await guarded_patch(
            client,
            "task",
            task_id,
            field_replace(conversationThreadId=conversation_id),
            f"Task {task_id} linked to conversation {conversation_id}",
        )
    except PlannerError as e:
        print(f"⚠️  Comment posted but task link failed: {e}", file=sys.stderr, flush=True)
        return (
            f"⚠️ Comment posted, but linking it to task {task_id} failed: {e}\n"
            f"Orphaned conversation id: {conversation_id}\n"
            f"Set the task's conversationThreadId to this id to relink it."
        )

    return f"Comment added to task {task_id} (new conversation {conversation_id})"

