"""
Microsoft Planner MCP Server

Exposes Planner plans, buckets, tasks, checklists, references and task
comments as MCP tools. Every write is guarded by the resource's ETag.
"""

__version__ = "1.0.0"
