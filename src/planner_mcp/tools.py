"""
Planner tool implementations.

Each coroutine takes the Graph REST client first, then the tool's
parameters, and returns the text handed back to the MCP caller. Reads go
straight through locate() and execute(); writes go through the guarded
mutation helpers.
"""

import json
from typing import Any, List, Optional

from planner_mcp import conversations
from planner_mcp.deltas import (
    assignment_upsert,
    bucket_create,
    category_apply,
    checklist_batch_upsert,
    checklist_item_delete,
    checklist_item_update,
    checklist_item_upsert,
    field_replace,
    merge_deltas,
    percent_complete as validate_percent,
    reference_delete,
    reference_upsert,
    task_create,
)
from planner_mcp.errors import ValidationError
from planner_mcp.graph import execute, get_json
from planner_mcp.locator import locate
from planner_mcp.mutations import guarded_delete, guarded_patch


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


async def _list_value(client, url: str) -> str:
    data = await get_json(client, url)
    return _dump(data.get("value", []))


# ----------------------------------------------------------------------------
# Plans and people
# ----------------------------------------------------------------------------

async def list_plans(client) -> str:
    return await _list_value(client, locate("mePlans"))


async def get_plan_details(client, plan_id: str) -> str:
    """Plan record plus its details (category labels and sharing)."""
    plan = await get_json(client, locate("plan", plan_id))
    plan["details"] = await get_json(client, locate("planDetails", plan_id))
    return _dump(plan)


async def get_my_tasks(client) -> str:
    return await _list_value(client, locate("meTasks"))


async def list_group_members(client, plan_id: str) -> str:
    group_id = await conversations.resolve_group_id(client, plan_id)
    if not group_id:
        raise ValidationError(f"Plan {plan_id} is not owned by a group")
    return await _list_value(client, locate("groupMembers", group_id))


# ----------------------------------------------------------------------------
# Buckets
# ----------------------------------------------------------------------------

async def list_buckets(client, plan_id: str) -> str:
    return await _list_value(client, locate("planBuckets", plan_id))


async def create_bucket(client, plan_id: str, name: str) -> str:
    return await execute(client, "POST", locate("buckets"), bucket_create(plan_id, name))


async def update_bucket(client, bucket_id: str, name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("name must be a non-empty string")
    return await guarded_patch(
        client, "bucket", bucket_id, field_replace(name=name), "Bucket updated successfully"
    )


async def delete_bucket(client, bucket_id: str) -> str:
    return await guarded_delete(client, "bucket", bucket_id, "Bucket deleted successfully")


# ----------------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------------

async def list_tasks(client, plan_id: str) -> str:
    return await _list_value(client, locate("planTasks", plan_id))


async def get_task(client, task_id: str) -> str:
    return await execute(client, "GET", locate("task", task_id))


async def get_task_details(client, task_id: str) -> str:
    return await execute(client, "GET", locate("taskDetails", task_id))


async def create_task(client, plan_id: str, bucket_id: str, title: str) -> str:
    return await execute(client, "POST", locate("tasks"), task_create(plan_id, bucket_id, title))


async def update_task(
    client,
    task_id: str,
    title: Optional[str] = None,
    percent_complete: Optional[int] = None,
    assign_user_id: Optional[str] = None,
    category: Optional[str] = None,
) -> str:
    """
    Update title, progress, an assignee and/or a category in one PATCH.

    All inputs are validated before the ETag is read.
    """
    deltas = []
    if title is not None or percent_complete is not None:
        deltas.append(field_replace(
            title=title,
            percentComplete=None if percent_complete is None else validate_percent(percent_complete),
        ))
    if assign_user_id:
        deltas.append(assignment_upsert(assign_user_id))
    if category:
        deltas.append(category_apply(category))
    if not deltas:
        raise ValidationError("No updates specified; provide title, percentComplete, assignUserId or category")

    return await guarded_patch(client, "task", task_id, merge_deltas(*deltas), "Task updated successfully")


async def update_task_details(client, task_id: str, description: str) -> str:
    return await guarded_patch(
        client, "taskDetails", task_id, field_replace(description=description),
        "Task details updated successfully",
    )


async def move_task(client, task_id: str, bucket_id: str) -> str:
    if not bucket_id:
        raise ValidationError("bucketId must be a non-empty string")
    return await guarded_patch(
        client, "task", task_id, field_replace(bucketId=bucket_id), "Task moved successfully"
    )


async def delete_task(client, task_id: str) -> str:
    return await guarded_delete(client, "task", task_id, "Task deleted successfully")


# ----------------------------------------------------------------------------
# Checklist
# ----------------------------------------------------------------------------

async def add_checklist_item(client, task_id: str, title: str, is_checked: bool = False) -> str:
    item_id, delta = checklist_item_upsert(title, is_checked)
    return await guarded_patch(
        client, "taskDetails", task_id, delta,
        _dump({"success": True, "itemId": item_id, "title": title}),
    )


async def add_checklist_items(client, task_id: str, items: List[str]) -> str:
    delta = checklist_batch_upsert(items)
    return await guarded_patch(
        client, "taskDetails", task_id, delta,
        _dump({"success": True, "itemCount": len(delta.entries), "itemIds": list(delta.entries)}),
    )


async def update_checklist_item(
    client,
    task_id: str,
    item_id: str,
    title: Optional[str] = None,
    is_checked: Optional[bool] = None,
) -> str:
    return await guarded_patch(
        client, "taskDetails", task_id, checklist_item_update(item_id, title, is_checked),
        "Checklist item updated successfully",
    )


async def delete_checklist_item(client, task_id: str, item_id: str) -> str:
    return await guarded_patch(
        client, "taskDetails", task_id, checklist_item_delete(item_id),
        "Checklist item deleted successfully",
    )


# ----------------------------------------------------------------------------
# Comments and references
# ----------------------------------------------------------------------------

async def get_task_comments(client, task_id: str) -> str:
    return _dump(await conversations.get_comments(client, task_id))


async def add_task_comment(client, task_id: str, comment: str) -> str:
    if not comment or not comment.strip():
        raise ValidationError("comment must be a non-empty string")
    return await conversations.add_comment(client, task_id, comment)


async def add_reference(
    client,
    task_id: str,
    url: str,
    alias: Optional[str] = None,
    ref_type: Optional[str] = None,
) -> str:
    return await guarded_patch(
        client, "taskDetails", task_id, reference_upsert(url, alias, ref_type),
        "Reference added successfully",
    )


async def delete_reference(client, task_id: str, url: str) -> str:
    return await guarded_patch(
        client, "taskDetails", task_id, reference_delete(url), "Reference deleted successfully"
    )
