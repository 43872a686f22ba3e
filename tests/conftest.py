"""Common utilities for tests."""

from __future__ import annotations

from typing import Any, Optional

from mockfirestore import CollectionReference, Query
from mockfirestore.document import DocumentReference


class MockTransaction:
    """Stand-in for a Firestore transaction that writes straight through.

    Use with ``firestore.transactional`` patched to the identity function.
    """

    def __init__(self) -> None:
        self.writes: list[tuple[str, Any]] = []

    def get(self, ref: Any) -> Any:
        return ref.get()

    def set(self, ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(("set", ref))
        ref.set(data, merge=merge)

    def update(self, ref: Any, data: dict[str, Any]) -> None:
        self.writes.append(("update", ref))
        ref.update(data)

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref))
        ref.delete()


def identity_transactional(func: Any) -> Any:
    return func


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore to support FieldFilter and transactions."""

    def collection_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:  # noqa: E501
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(CollectionReference, "_where"):
        CollectionReference._where = CollectionReference.where
        CollectionReference.where = collection_where

    def query_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(Query, "_where"):
        Query._where = Query.where
        Query.where = query_where

    def doc_ref_eq(self: Any, other: Any) -> bool:
        if not isinstance(other, DocumentReference):
            return False
        return self._path == other._path

    if not hasattr(DocumentReference, "_orig_eq"):
        DocumentReference._orig_eq = DocumentReference.__eq__
        DocumentReference.__eq__ = doc_ref_eq
        DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

    # Patch DocumentReference.get to handle transaction argument
    if not hasattr(DocumentReference, "_orig_get"):
        DocumentReference._orig_get = DocumentReference.get

        def doc_ref_get(self: Any, transaction: Any = None) -> Any:
            """Handle transaction argument in get."""
            return self._orig_get()

        DocumentReference.get = doc_ref_get
