"""
Test helpers: fault injection hooks, payloads and file readers.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from objectmesh.core.errors import ObjectMeshError, TransferError
from objectmesh.core.types import Result, Ok, Err
from objectmesh.transfer.partitioner import Part


class FailOnce:
    """
    Part hook failing each listed part index on its first attempt only.

    Attributes:
        seen: Part indices in the order the hook saw them.
    """

    def __init__(self, indices: Iterable[int]) -> None:
        self._pending = set(indices)
        self.seen: list[int] = []

    def __call__(self, part: Part) -> Result[None, ObjectMeshError]:
        self.seen.append(part.index)
        if part.index in self._pending:
            self._pending.discard(part.index)
            return Err(TransferError.part_failed(part.index, "test", RuntimeError("injected")))
        return Ok(None)


def make_payload(size: int) -> bytes:
    """Deterministic content that differs between neighbouring parts."""
    return bytes((i * 7 + i // 256) % 256 for i in range(size))


def read_json(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def write_json(path: str | Path, data: dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh)
