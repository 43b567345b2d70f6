"""Resource locator: maps a logical Planner resource to its Graph URL."""

from planner_mcp.config import GRAPH_BASE_URL


# {id} is the primary identifier, {child} the nested one (conversation or thread)
_ROUTES = {
    "plan": "/planner/plans/{id}",
    "planDetails": "/planner/plans/{id}/details",
    "planTasks": "/planner/plans/{id}/tasks",
    "planBuckets": "/planner/plans/{id}/buckets",
    "task": "/planner/tasks/{id}",
    "tasks": "/planner/tasks",
    "taskDetails": "/planner/tasks/{id}/details",
    "bucket": "/planner/buckets/{id}",
    "buckets": "/planner/buckets",
    "meTasks": "/me/planner/tasks",
    "mePlans": "/me/planner/plans",
    "groupMembers": "/groups/{id}/members",
    "groupConversations": "/groups/{id}/conversations",
    "groupThreads": "/groups/{id}/threads",
    "conversationThreads": "/groups/{id}/conversations/{child}/threads",
    "threadPosts": "/groups/{id}/threads/{child}/posts",
    "threadReply": "/groups/{id}/threads/{child}/reply",
}

RESOURCE_KINDS = frozenset(_ROUTES)


def locate(kind: str, resource_id: str = "", child_id: str = "") -> str:
    """
    Return the absolute Graph URL for a resource.

    Ids are inserted verbatim; a malformed id surfaces later as an upstream 4xx.

    Raises:
        ValueError: If kind is not a known resource kind
    """
    try:
        route = _ROUTES[kind]
    except KeyError:
        raise ValueError(f"Unknown resource kind: {kind!r}") from None
    return GRAPH_BASE_URL + route.format(id=resource_id, child=child_id)
