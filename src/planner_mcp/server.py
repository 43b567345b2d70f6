"""
FastMCP server exposing the Planner tools.

Parameters are declared with typed, constrained annotations so the host
validates them before a tool body runs. Errors are returned to the caller as
text prefixed with the operation that failed; nothing is retried.
"""

import sys
from typing import Annotated, Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from mcp.server import FastMCP
from pydantic import Field

from planner_mcp import tools
from planner_mcp.errors import PlannerError
from planner_mcp.graph import get_rest_client


SERVER_NAME = "microsoft-planner-mcp"

Percent = Annotated[int, Field(ge=0, le=100)]
CategorySlot = Annotated[str, Field(pattern=r"^category([1-9]|1[0-9]|2[0-5])$")]
ReferenceType = Literal["PowerPoint", "Excel", "Word", "OneNote", "Project", "Visio", "Pdf", "Other"]


async def _run(operation: str, func: Callable[..., Awaitable[str]], *args, **kwargs) -> str:
    """Run a tool body against the shared REST client and format failures."""
    try:
        client = await get_rest_client()
        return await func(client, *args, **kwargs)
    except PlannerError as e:
        print(f"❌ {operation} failed: {e}", file=sys.stderr, flush=True)
        return f"❌ {operation} failed: {e}"
    except Exception as e:
        error_type = type(e).__name__
        print(f"❌ {operation} failed: {error_type}: {e}", file=sys.stderr, flush=True)
        return f"❌ {operation} failed: {error_type}: {e}"


# ============================================================================
# PLANS AND PEOPLE
# ============================================================================

async def list_plans() -> str:
    """List all Planner plans accessible to the current user."""
    return await _run("List plans", tools.list_plans)


async def get_plan_details(
    planId: Annotated[str, Field(description="The Planner plan ID")],
) -> str:
    """
    Get a plan with its details record.

    The details include categoryDescriptions, the labels of category1..category25.
    """
    return await _run("Get plan details", tools.get_plan_details, planId)


async def get_my_tasks() -> str:
    """List all Planner tasks assigned to the current user."""
    return await _run("Get my tasks", tools.get_my_tasks)


async def list_group_members(
    planId: Annotated[str, Field(description="The Planner plan ID whose group members to list")],
) -> str:
    """List the members of the M365 group that owns a plan (user IDs for assignment)."""
    return await _run("List group members", tools.list_group_members, planId)


# ============================================================================
# BUCKETS
# ============================================================================

async def list_buckets(
    planId: Annotated[str, Field(description="The Planner plan ID")],
) -> str:
    """List all buckets in a Planner plan."""
    return await _run("List buckets", tools.list_buckets, planId)


async def create_bucket(
    planId: Annotated[str, Field(description="The plan ID")],
    name: Annotated[str, Field(min_length=1, description="Bucket name")],
) -> str:
    """Create a bucket at the end of a plan."""
    return await _run("Create bucket", tools.create_bucket, planId, name)


async def update_bucket(
    bucketId: Annotated[str, Field(description="The bucket ID")],
    name: Annotated[str, Field(min_length=1, description="New bucket name")],
) -> str:
    """Rename a bucket. Auto-fetches ETag."""
    return await _run("Update bucket", tools.update_bucket, bucketId, name)


async def delete_bucket(
    bucketId: Annotated[str, Field(description="The bucket ID to delete")],
) -> str:
    """Delete a bucket. Auto-fetches ETag."""
    return await _run("Delete bucket", tools.delete_bucket, bucketId)


# ============================================================================
# TASKS
# ============================================================================

async def list_tasks(
    planId: Annotated[str, Field(description="The Planner plan ID")],
) -> str:
    """List all tasks in a Planner plan."""
    return await _run("List tasks", tools.list_tasks, planId)


async def get_task(
    taskId: Annotated[str, Field(description="The task ID")],
) -> str:
    """Get details of a specific Planner task."""
    return await _run("Get task", tools.get_task, taskId)


async def get_task_details(
    taskId: Annotated[str, Field(description="The task ID")],
) -> str:
    """Get extended task details including description, checklist and references."""
    return await _run("Get task details", tools.get_task_details, taskId)


async def create_task(
    planId: Annotated[str, Field(description="The plan ID")],
    bucketId: Annotated[str, Field(description="The bucket ID")],
    title: Annotated[str, Field(min_length=1, description="Task title")],
) -> str:
    """Create a new task in a Planner plan."""
    return await _run("Create task", tools.create_task, planId, bucketId, title)


async def update_task(
    taskId: Annotated[str, Field(description="The task ID")],
    title: Annotated[Optional[str], Field(description="New title")] = None,
    percentComplete: Annotated[Optional[Percent], Field(description="Progress 0-100")] = None,
    assignUserId: Annotated[Optional[str], Field(description="User ID to assign")] = None,
    category: Annotated[
        Optional[CategorySlot], Field(description="Category to apply (category1-category25)")
    ] = None,
) -> str:
    """Update task properties (title, progress, assignments, categories). Auto-fetches ETag."""
    return await _run(
        "Update", tools.update_task, taskId,
        title=title, percent_complete=percentComplete, assign_user_id=assignUserId, category=category,
    )


async def update_task_details(
    taskId: Annotated[str, Field(description="The task ID")],
    description: Annotated[str, Field(description="Task description (plain text, may include URLs)")],
) -> str:
    """Update the task description. Auto-fetches ETag."""
    return await _run("Update details", tools.update_task_details, taskId, description)


async def move_task(
    taskId: Annotated[str, Field(description="The task ID")],
    bucketId: Annotated[str, Field(description="The destination bucket ID")],
) -> str:
    """Move a task to another bucket. Auto-fetches ETag."""
    return await _run("Move", tools.move_task, taskId, bucketId)


async def delete_task(
    taskId: Annotated[str, Field(description="The task ID to delete")],
) -> str:
    """Delete a Planner task. Auto-fetches ETag."""
    return await _run("Delete", tools.delete_task, taskId)


# ============================================================================
# CHECKLIST
# ============================================================================

async def add_checklist_item(
    taskId: Annotated[str, Field(description="The task ID")],
    title: Annotated[str, Field(min_length=1, description="Checklist item title")],
    isChecked: Annotated[bool, Field(description="Whether the item is checked")] = False,
) -> str:
    """Add a checklist item (subtask) to a Planner task."""
    return await _run("Add checklist item", tools.add_checklist_item, taskId, title, isChecked)


async def add_checklist_items(
    taskId: Annotated[str, Field(description="The task ID")],
    items: Annotated[List[str], Field(min_length=1, description="Array of checklist item titles")],
) -> str:
    """Add multiple checklist items (subtasks) to a Planner task in one operation."""
    return await _run("Add checklist items", tools.add_checklist_items, taskId, items)


async def update_checklist_item(
    taskId: Annotated[str, Field(description="The task ID")],
    itemId: Annotated[str, Field(description="The checklist item ID (from get-task-details)")],
    title: Annotated[Optional[str], Field(description="New title for the item")] = None,
    isChecked: Annotated[Optional[bool], Field(description="Set checked state")] = None,
) -> str:
    """Update a checklist item (toggle checked state or rename)."""
    return await _run("Update checklist item", tools.update_checklist_item, taskId, itemId, title, isChecked)


async def delete_checklist_item(
    taskId: Annotated[str, Field(description="The task ID")],
    itemId: Annotated[str, Field(description="The checklist item ID to delete")],
) -> str:
    """Delete a checklist item from a Planner task."""
    return await _run("Delete checklist item", tools.delete_checklist_item, taskId, itemId)


# ============================================================================
# COMMENTS AND REFERENCES
# ============================================================================

async def get_task_comments(
    taskId: Annotated[str, Field(description="The task ID")],
) -> str:
    """Get all comments on a task, in conversation order."""
    return await _run("Get comments", tools.get_task_comments, taskId)


async def add_task_comment(
    taskId: Annotated[str, Field(description="The task ID")],
    comment: Annotated[str, Field(min_length=1, description="Comment text")],
) -> str:
    """Add a comment to a task, starting its conversation if it has none."""
    return await _run("Add comment", tools.add_task_comment, taskId, comment)


async def add_reference(
    taskId: Annotated[str, Field(description="The task ID")],
    url: Annotated[str, Field(description="Absolute URL to attach (e.g. a GitHub PR)")],
    alias: Annotated[Optional[str], Field(description="Display name for the link")] = None,
    type: Annotated[Optional[ReferenceType], Field(description="Reference type")] = None,
) -> str:
    """Attach a link to a task. Auto-fetches ETag."""
    return await _run("Add reference", tools.add_reference, taskId, url, alias, type)


async def delete_reference(
    taskId: Annotated[str, Field(description="The task ID")],
    url: Annotated[str, Field(description="URL of the reference to remove")],
) -> str:
    """Remove a link from a task. Auto-fetches ETag."""
    return await _run("Delete reference", tools.delete_reference, taskId, url)


# ============================================================================
# REGISTRATION
# ============================================================================

TOOLS: Dict[str, Callable[..., Awaitable[str]]] = {
    "list-plans": list_plans,
    "get-plan-details": get_plan_details,
    "get-my-tasks": get_my_tasks,
    "list-group-members": list_group_members,
    "list-buckets": list_buckets,
    "create-bucket": create_bucket,
    "update-bucket": update_bucket,
    "delete-bucket": delete_bucket,
    "list-tasks": list_tasks,
    "get-task": get_task,
    "get-task-details": get_task_details,
    "create-task": create_task,
    "update-task": update_task,
    "update-task-details": update_task_details,
    "move-task": move_task,
    "delete-task": delete_task,
    "add-checklist-item": add_checklist_item,
    "add-checklist-items": add_checklist_items,
    "update-checklist-item": update_checklist_item,
    "delete-checklist-item": delete_checklist_item,
    "get-task-comments": get_task_comments,
    "add-task-comment": add_task_comment,
    "add-reference": add_reference,
    "delete-reference": delete_reference,
}

TOOLSETS: Dict[str, Tuple[str, ...]] = {
    "full": tuple(TOOLS),
    "tasks": (
        "list-plans",
        "list-buckets",
        "list-tasks",
        "get-task",
        "get-task-details",
        "create-task",
        "update-task",
        "update-task-details",
        "delete-task",
        "add-checklist-item",
        "add-checklist-items",
        "update-checklist-item",
        "delete-checklist-item",
    ),
    "readonly": (
        "list-plans",
        "get-plan-details",
        "get-my-tasks",
        "list-group-members",
        "list-buckets",
        "list-tasks",
        "get-task",
        "get-task-details",
        "get-task-comments",
    ),
}


def create_server(toolset: str = "full") -> FastMCP:
    """
    Build a FastMCP server with the tools of one tool set.

    Raises:
        ValueError: If toolset is unknown
    """
    if toolset not in TOOLSETS:
        raise ValueError(f"Unknown tool set {toolset!r} (expected one of {', '.join(TOOLSETS)})")

    mcp = FastMCP(SERVER_NAME)
    for name in TOOLSETS[toolset]:
        mcp.add_tool(TOOLS[name], name=name)
    return mcp
