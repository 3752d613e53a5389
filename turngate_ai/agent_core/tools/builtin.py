from __future__ import annotations

"""Built-in note-taking tools.

A small, self-contained tool set covering every ``ToolCategory``. It is loaded
by default by the server so a fresh installation can hold a complete
approval-gated conversation, and it doubles as the reference for writing
tool modules: a module exposes ``register_tools(registry)``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..errors import ToolExecutionError
from ..schemas.domain import ToolCategory
from .base import ToolContext, ToolDefinition, ValidationResult
from .registry import ToolRegistry


@dataclass
class NoteStore:
    """Notes kept in memory, partitioned by conversation."""

    notes: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)

    def for_conversation(self, conversation_id: str) -> Dict[str, Dict[str, str]]:
        return self.notes.setdefault(conversation_id, {})


class ListNotesParams(BaseModel):
    query: Optional[str] = Field(default=None, description="Only return notes whose title contains this text.")


class CreateNoteParams(BaseModel):
    title: str = Field(min_length=1, max_length=200, description="Note title.")
    body: str = Field(default="", description="Note body.")


class UpdateNoteParams(BaseModel):
    note_id: str = Field(description="Id of the note to update.")
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    body: Optional[str] = None


class DeleteNoteParams(BaseModel):
    note_ids: List[str] = Field(min_length=1, description="Ids of the notes to delete.")


def _check_create(params: CreateNoteParams) -> ValidationResult:
    if not params.body.strip():
        return ValidationResult.ok(["note body is empty"])
    return ValidationResult.ok()


def _check_update(params: UpdateNoteParams) -> ValidationResult:
    if params.title is None and params.body is None:
        return ValidationResult.failed("at least one of 'title' or 'body' must be provided")
    return ValidationResult.ok()


def _summarize_list(data: Any) -> Optional[str]:
    if isinstance(data, dict) and "count" in data:
        return f"Found {data['count']} note(s)"
    return None


def build_note_tools(store: NoteStore) -> list[ToolDefinition]:
    """
    Build the note tools bound to ``store``.

    Args:
        store: Backing note storage.

    Returns:
        The tool definitions, read tools first.
    """

    async def list_notes(params: ListNotesParams, ctx: ToolContext) -> Dict[str, Any]:
        notes = store.for_conversation(ctx.conversation_id)
        items = [
            {"id": nid, **note}
            for nid, note in notes.items()
            if not params.query or params.query.lower() in note["title"].lower()
        ]
        return {"notes": items, "count": len(items)}

    async def create_note(params: CreateNoteParams, ctx: ToolContext) -> Dict[str, Any]:
        note_id = uuid4().hex[:12]
        store.for_conversation(ctx.conversation_id)[note_id] = {"title": params.title, "body": params.body}
        return {"note_id": note_id, "message": f"Created note '{params.title}'"}

    async def update_note(params: UpdateNoteParams, ctx: ToolContext) -> Dict[str, Any]:
        notes = store.for_conversation(ctx.conversation_id)
        note = notes.get(params.note_id)
        if note is None:
            raise ToolExecutionError("update_note", f"Note not found: {params.note_id}")
        if params.title is not None:
            note["title"] = params.title
        if params.body is not None:
            note["body"] = params.body
        return {"note_id": params.note_id, "message": f"Updated note '{note['title']}'"}

    async def delete_note(params: DeleteNoteParams, ctx: ToolContext) -> Dict[str, Any]:
        notes = store.for_conversation(ctx.conversation_id)
        deleted = [nid for nid in params.note_ids if notes.pop(nid, None) is not None]
        return {"deleted": len(deleted), "note_ids": deleted}

    return [
        ToolDefinition(
            name="list_notes",
            display_name="List notes",
            description="List the notes of this conversation, optionally filtered by title.",
            category=ToolCategory.read,
            parameters=ListNotesParams,
            handler=list_notes,
            summarize=_summarize_list,
        ),
        ToolDefinition(
            name="create_note",
            display_name="Create note",
            description="Create a new note.",
            category=ToolCategory.generation,
            parameters=CreateNoteParams,
            handler=create_note,
            needs_confirmation=True,
            check=_check_create,
        ),
        ToolDefinition(
            name="update_note",
            display_name="Update note",
            description="Change the title or body of an existing note.",
            category=ToolCategory.modification,
            parameters=UpdateNoteParams,
            handler=update_note,
            needs_confirmation=True,
            check=_check_update,
        ),
        ToolDefinition(
            name="delete_note",
            display_name="Delete notes",
            description="Delete one or more notes.",
            category=ToolCategory.deletion,
            parameters=DeleteNoteParams,
            handler=delete_note,
            needs_confirmation=True,
        ),
    ]


def register_tools(registry: ToolRegistry, store: Optional[NoteStore] = None) -> None:
    for tool in build_note_tools(store or NoteStore()):
        registry.register(tool)
