"""Hash tables of the virtual machine and conversion of cells to text."""

from __future__ import annotations

from collections.abc import Iterator

from alphavm.values import (
    TABLE_HASHSIZE,
    MemCell,
    MemCellType,
    hash_number,
    hash_string,
)


def _is_array_index(value: float) -> bool:
    return value >= 0 and value == int(value)


class Table:
    """Associative table keyed by strings and numbers, kept in hash buckets."""

    def __init__(self) -> None:
        self._str_buckets: list[list[tuple[MemCell, MemCell]]] = [
            [] for _ in range(TABLE_HASHSIZE)
        ]
        self._num_buckets: list[list[tuple[MemCell, MemCell]]] = [
            [] for _ in range(TABLE_HASHSIZE)
        ]
        self._total = 0

    def __len__(self) -> int:
        return self._total

    def _bucket(self, key: MemCell) -> list[tuple[MemCell, MemCell]] | None:
        if key.type is MemCellType.STRING:
            return self._str_buckets[hash_string(key.value)]
        if key.type is MemCellType.NUMBER:
            return self._num_buckets[hash_number(key.value)]
        return None

    @staticmethod
    def _find(
        bucket: list[tuple[MemCell, MemCell]], key: MemCell
    ) -> MemCell | None:
        return next(
            (
                value
                for stored, value in bucket
                if stored.type is key.type and stored.value == key.value
            ),
            None,
        )

    def get(self, key: MemCell) -> MemCell | None:
        """The stored cell for a key, or None; only string and number keys exist."""
        bucket = self._bucket(key)
        if bucket is None:
            return None
        return self._find(bucket, key)

    def set(self, key: MemCell, value: MemCell) -> None:
        """Store a copy of value under key; other key types are ignored."""
        bucket = self._bucket(key)
        if bucket is None:
            return
        content = MemCell.nil() if value.type is MemCellType.UNDEF else value.copy()
        existing = self._find(bucket, key)
        if existing is not None:
            existing.load(content)
            return
        bucket.insert(0, (key.copy(), content))
        self._total += 1

    def _walk(
        self, buckets: list[list[tuple[MemCell, MemCell]]]
    ) -> Iterator[tuple[MemCell, MemCell]]:
        for bucket in buckets:
            yield from bucket

    def items(self) -> list[tuple[MemCell, MemCell]]:
        """All key/value pairs: string keys first, then numeric keys, in bucket order."""
        return [*self._walk(self._str_buckets), *self._walk(self._num_buckets)]

    def is_array_like(self) -> bool:
        """True when the keys are exactly 0..n-1 with no string keys."""
        if self._total == 0:
            return True
        indices = [
            int(key.value)
            for key, _ in self._walk(self._num_buckets)
            if _is_array_index(key.value)
        ]
        if any(self._str_buckets):
            return False
        if not indices:
            return True
        return 0 in indices and len(indices) == max(indices) + 1

    def _array_text(self) -> str:
        max_index = max(
            (
                int(key.value)
                for key, _ in self._walk(self._num_buckets)
                if key.value >= 0
            ),
            default=0,
        )
        parts = ["[ "]
        for i in range(max_index + 1):
            elem = self.get(MemCell.number(i))
            if elem is not None:
                parts.append(tostring(elem))
                if i < max_index:
                    parts.append(", ")
        parts.append(" ]")
        return "".join(parts)

    def _map_text(self) -> str:
        body = ", ".join(f"{tostring(k)}: {tostring(v)}" for k, v in self.items())
        return "{ " + body + " }"

    def to_text(self) -> str:
        """Text of the table as printed by the machine."""
        return self._array_text() if self.is_array_like() else self._map_text()


def tostring(cell: MemCell) -> str:
    """Text of a cell as printed by the machine."""
    kind = cell.type
    if kind is MemCellType.NUMBER:
        return f"{cell.value:g}"
    if kind is MemCellType.STRING:
        return cell.value
    if kind is MemCellType.BOOL:
        return "true" if cell.value else "false"
    if kind is MemCellType.TABLE:
        return cell.value.to_text()
    if kind is MemCellType.USERFUNC:
        return f"[userfunc@{cell.value}]"
    if kind is MemCellType.LIBFUNC:
        return f"[libfunc:{cell.value}]"
    if kind is MemCellType.NIL:
        return "nil"
    return "undef"