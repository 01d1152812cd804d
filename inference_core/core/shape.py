"""Shape and data type descriptors for NDArrays."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Tuple, Union

import numpy as np


class DataType(Enum):
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    BOOLEAN = "bool"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @classmethod
    def from_numpy(cls, dtype: Union[np.dtype, type, str]) -> "DataType":
        name = np.dtype(dtype).name
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(f"Unsupported data type: {name}")

    def is_floating(self) -> bool:
        return self in (DataType.FLOAT16, DataType.FLOAT32, DataType.FLOAT64)


class Shape:
    """Immutable sequence of dimensions.

    A single ``-1`` is accepted as a placeholder for reshape targets and is
    resolved with :meth:`infer`.
    """

    def __init__(self, *dims: Union[int, Iterable[int]]) -> None:
        if len(dims) == 1 and not isinstance(dims[0], (int, np.integer)):
            dims = tuple(dims[0])  # type: ignore[assignment]
        values = tuple(int(dim) for dim in dims)  # type: ignore[arg-type]
        for dim in values:
            if dim < -1:
                raise ValueError(f"Invalid dimension {dim} in shape {values}")
        if values.count(-1) > 1:
            raise ValueError(f"Only one dimension can be inferred, got {values}")
        self._dims: Tuple[int, ...] = values

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._dims

    def get(self, index: int) -> int:
        return self._dims[index]

    def head(self) -> int:
        if not self._dims:
            raise IndexError("Scalar shape has no leading dimension")
        return self._dims[0]

    def dimension(self) -> int:
        return len(self._dims)

    def size(self) -> int:
        """Total element count. Undefined while a dimension is still unknown."""

        if self.has_unknown():
            raise ValueError(f"Shape {self} contains an unknown dimension")
        total = 1
        for dim in self._dims:
            total *= dim
        return total

    def has_unknown(self) -> bool:
        return -1 in self._dims

    def infer(self, total: int) -> "Shape":
        """Return a concrete shape holding ``total`` elements."""

        if not self.has_unknown():
            if self.size() != total:
                raise ValueError(f"Cannot reshape {total} elements into shape {self}")
            return self
        known = 1
        for dim in self._dims:
            if dim != -1:
                known *= dim
        if known == 0 or total % known != 0:
            raise ValueError(f"Cannot reshape {total} elements into shape {self}")
        return Shape(tuple(total // known if dim == -1 else dim for dim in self._dims))

    def __iter__(self):
        return iter(self._dims)

    def __len__(self) -> int:
        return len(self._dims)

    def __getitem__(self, index: int) -> int:
        return self._dims[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Shape):
            return self._dims == other._dims
        if isinstance(other, tuple):
            return self._dims == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._dims)

    def __repr__(self) -> str:
        return f"Shape{self._dims}"
