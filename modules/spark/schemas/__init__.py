# Pydantic schemas package
from modules.spark.schemas.note import NoteItem, NoteState, RemoteNoteRecord

__all__ = [
    "NoteItem",
    "NoteState",
    "RemoteNoteRecord",
]
