"""In-memory stand-in for the Firestore client used by the record modules.

Only the surface the ledger touches is implemented:

- ``client.collection(name)`` / ``doc_ref.collection(name)``
- ``collection.document(id)`` / ``collection.stream()``
- ``doc_ref.get() / set() / create() / update() / delete()``
- ``client.batch()`` with ``set / create / update / delete / commit``

Documents are deep-copied on the way in and out so tests cannot mutate
stored state by accident. A batch checks every ``create`` before applying
anything, which mirrors Firestore's all-or-nothing commit.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any

from google.api_core.exceptions import AlreadyExists, NotFound


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentReference", data: dict[str, Any] | None) -> None:
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, client: "FakeFirestore", path: tuple[str, ...]) -> None:
        self._client = client
        self.path = path
        self.id = path[-1]

    def collection(self, name: str) -> "FakeCollectionReference":
        return FakeCollectionReference(self._client, self.path + (name,))

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self, self._client.docs.get(self.path))

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        self._client.writes += 1
        if merge and self.path in self._client.docs:
            self._client.docs[self.path].update(copy.deepcopy(data))
        else:
            self._client.docs[self.path] = copy.deepcopy(data)

    def create(self, data: dict[str, Any]) -> None:
        if self.path in self._client.docs:
            raise AlreadyExists(f"Document already exists: {'/'.join(self.path)}")
        self.set(data)

    def update(self, data: dict[str, Any]) -> None:
        if self.path not in self._client.docs:
            raise NotFound(f"No document to update: {'/'.join(self.path)}")
        self._client.writes += 1
        self._client.docs[self.path].update(copy.deepcopy(data))

    def delete(self) -> None:
        self._client.writes += 1
        self._client.docs.pop(self.path, None)


class FakeCollectionReference:
    def __init__(self, client: "FakeFirestore", path: tuple[str, ...]) -> None:
        self._client = client
        self.path = path
        self.id = path[-1]

    def document(self, document_id: str | None = None) -> FakeDocumentReference:
        return FakeDocumentReference(self._client, self.path + (document_id or uuid.uuid4().hex[:20],))

    def stream(self):
        depth = len(self.path) + 1
        children = sorted(
            p for p in self._client.docs if len(p) == depth and p[: len(self.path)] == self.path
        )
        for path in children:
            ref = FakeDocumentReference(self._client, path)
            yield FakeSnapshot(ref, self._client.docs[path])


class FakeWriteBatch:
    def __init__(self, client: "FakeFirestore") -> None:
        self._client = client
        self._ops: list[tuple[str, FakeDocumentReference, dict[str, Any] | None]] = []
        self.committed = False

    def set(self, reference: FakeDocumentReference, data: dict[str, Any]) -> None:
        self._ops.append(("set", reference, copy.deepcopy(data)))

    def create(self, reference: FakeDocumentReference, data: dict[str, Any]) -> None:
        self._ops.append(("create", reference, copy.deepcopy(data)))

    def update(self, reference: FakeDocumentReference, data: dict[str, Any]) -> None:
        self._ops.append(("update", reference, copy.deepcopy(data)))

    def delete(self, reference: FakeDocumentReference) -> None:
        self._ops.append(("delete", reference, None))

    def commit(self) -> None:
        # Validate first so a failing batch leaves no partial writes behind
        for op, ref, _ in self._ops:
            if op == "create" and ref.path in self._client.docs:
                raise AlreadyExists(f"Document already exists: {'/'.join(ref.path)}")
            if op == "update" and ref.path not in self._client.docs:
                raise NotFound(f"No document to update: {'/'.join(ref.path)}")

        for op, ref, data in self._ops:
            if op == "delete":
                ref.delete()
            elif op == "update":
                ref.update(data)
            else:
                ref.set(data)
        self.committed = True
        self._client.commits += 1


class FakeFirestore:
    """Dict-backed client: ``docs`` maps full document paths to their data."""

    def __init__(self) -> None:
        self.docs: dict[tuple[str, ...], dict[str, Any]] = {}
        self.writes = 0
        self.commits = 0

    def collection(self, name: str) -> FakeCollectionReference:
        return FakeCollectionReference(self, (name,))

    def batch(self) -> FakeWriteBatch:
        return FakeWriteBatch(self)

    # ---- test conveniences -------------------------------------------------

    def documents_in(self, *path: str) -> dict[str, dict[str, Any]]:
        """Return ``{doc_id: data}`` for the direct children of a collection path."""
        depth = len(path) + 1
        return {
            p[-1]: copy.deepcopy(d)
            for p, d in self.docs.items()
            if len(p) == depth and p[: len(path)] == path
        }
