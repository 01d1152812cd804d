"""NDArray abstraction backed by numpy buffers owned by an NDManager."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

import numpy as np

from .exceptions import IllegalStateError
from .shape import DataType, Shape

LOGGER = logging.getLogger(__name__)

Operand = Union["NDArray", np.ndarray, float, int]
ShapeLike = Union[Shape, Sequence[int], int]


def _as_shape(shape: Union[ShapeLike, tuple]) -> Shape:
    if isinstance(shape, Shape):
        return shape
    if isinstance(shape, (int, np.integer)):
        return Shape(int(shape))
    return Shape(tuple(shape))


def _normalize_axis(axis: int, ndim: int) -> int:
    if not -ndim <= axis < ndim:
        raise ValueError(f"Axis {axis} is out of bounds for array of dimension {ndim}")
    return axis % ndim


class NDManager:
    """Owns NDArrays and releases them on close.

    Managers form a tree: closing a manager closes every array attached to it
    and every sub-manager created from it.
    """

    def __init__(self, parent: Optional["NDManager"] = None, device: Optional[Any] = None) -> None:
        self.parent = parent
        self.device = device if device is not None else (parent.device if parent is not None else None)
        self._arrays: Dict[int, "NDArray"] = {}
        self._children: List["NDManager"] = []
        self._closed = False

    @classmethod
    def new_base_manager(cls, device: Optional[Any] = None) -> "NDManager":
        return cls(device=device)

    def new_sub_manager(self, device: Optional[Any] = None) -> "NDManager":
        self._ensure_open()
        child = NDManager(parent=self, device=device)
        self._children.append(child)
        return child

    @property
    def is_closed(self) -> bool:
        return self._closed

    def create(
        self,
        data: Any,
        shape: Optional[ShapeLike] = None,
        data_type: Optional[DataType] = None,
    ) -> "NDArray":
        """Create an array from python or numpy data, optionally reshaped."""

        dtype = data_type.numpy_dtype if data_type else None
        array = np.array(data, dtype=dtype)
        if dtype is None and array.dtype == np.float64 and not isinstance(data, np.ndarray):
            array = array.astype(np.float32)
        if shape is not None:
            target = _as_shape(shape).infer(array.size)
            array = array.reshape(target.dims)
        return self.from_numpy(array)

    def from_numpy(self, array: np.ndarray) -> "NDArray":
        self._ensure_open()
        DataType.from_numpy(array.dtype)
        return NDArray(self, np.ascontiguousarray(array))

    def zeros(self, shape: ShapeLike, data_type: DataType = DataType.FLOAT32) -> "NDArray":
        return self.from_numpy(np.zeros(_as_shape(shape).dims, dtype=data_type.numpy_dtype))

    def ones(self, shape: ShapeLike, data_type: DataType = DataType.FLOAT32) -> "NDArray":
        return self.from_numpy(np.ones(_as_shape(shape).dims, dtype=data_type.numpy_dtype))

    def arange(
        self,
        start: float,
        stop: Optional[float] = None,
        step: float = 1,
        data_type: DataType = DataType.FLOAT32,
    ) -> "NDArray":
        if stop is None:
            start, stop = 0, start
        return self.from_numpy(np.arange(start, stop, step, dtype=data_type.numpy_dtype))

    def attach(self, array: "NDArray") -> None:
        self._ensure_open()
        if array.manager is not self:
            array.manager.detach(array)
            array._manager = self
        self._arrays[id(array)] = array

    def detach(self, array: "NDArray") -> None:
        self._arrays.pop(id(array), None)

    def close(self) -> None:
        if self._closed:
            return
        for child in list(self._children):
            child.close()
        for array in list(self._arrays.values()):
            array.close()
        self._arrays.clear()
        self._children.clear()
        if self.parent is not None and self in self.parent._children:
            self.parent._children.remove(self)
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise IllegalStateError("NDManager has been closed")

    @property
    def attached_count(self) -> int:
        return len(self._arrays)

    def __enter__(self) -> "NDManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NDArray:
    """Multi-dimensional numeric array.

    Every operation returns a new array attached to the same manager.
    """

    def __init__(self, manager: NDManager, data: np.ndarray) -> None:
        self._manager = manager
        self._data: Optional[np.ndarray] = data
        manager._arrays[id(self)] = self

    @property
    def manager(self) -> NDManager:
        return self._manager

    @property
    def _array(self) -> np.ndarray:
        if self._data is None:
            raise IllegalStateError("NDArray has been closed")
        return self._data

    @property
    def shape(self) -> Shape:
        return Shape(self._array.shape)

    @property
    def data_type(self) -> DataType:
        return DataType.from_numpy(self._array.dtype)

    @property
    def size(self) -> int:
        return int(self._array.size)

    @property
    def is_closed(self) -> bool:
        return self._data is None

    def _new(self, data: np.ndarray) -> "NDArray":
        return self._manager.from_numpy(data)

    def to_numpy(self) -> np.ndarray:
        return self._array.copy()

    def to_float_array(self) -> np.ndarray:
        return self._array.astype(np.float32).ravel()

    def to_int_array(self) -> np.ndarray:
        return self._array.astype(np.int32).ravel()

    def to_list(self) -> list:
        return self._array.tolist()

    def item(self) -> Union[int, float, bool]:
        return self._array.item()

    def to_type(self, data_type: DataType) -> "NDArray":
        return self._new(self._array.astype(data_type.numpy_dtype))

    def get(self, index: Union[int, slice, tuple]) -> "NDArray":
        return self._new(np.asarray(self._array[index]))

    def reshape(self, *shape: Union[int, ShapeLike]) -> "NDArray":
        if len(shape) == 1:
            target = _as_shape(shape[0])  # type: ignore[arg-type]
        else:
            target = Shape(shape)  # type: ignore[arg-type]
        resolved = target.infer(self.size)
        return self._new(self._array.reshape(resolved.dims))

    def flatten(self) -> "NDArray":
        return self._new(self._array.reshape(-1))

    def expand_dims(self, axis: int) -> "NDArray":
        ndim = self._array.ndim + 1
        return self._new(np.expand_dims(self._array, _normalize_axis(axis, ndim)))

    def squeeze(self, axis: Optional[Union[int, Sequence[int]]] = None) -> "NDArray":
        return self._new(np.squeeze(self._array, axis=axis))

    def transpose(self, *axes: int) -> "NDArray":
        return self._new(np.transpose(self._array, axes or None))

    def swap_axes(self, axis1: int, axis2: int) -> "NDArray":
        return self._new(np.swapaxes(self._array, axis1, axis2))

    def split(self, sections: Optional[Union[int, Sequence[int]]] = None, axis: int = 0) -> "NDList":
        """Split along ``axis``.

        Without ``sections`` the array is cut into ``shape[axis]`` slices and
        the split axis is removed from each of them.
        """

        if self._array.ndim == 0:
            raise ValueError("Cannot split a scalar array")
        axis = _normalize_axis(axis, self._array.ndim)
        if sections is None:
            parts = np.split(self._array, self._array.shape[axis], axis=axis)
            return NDList(self._new(np.squeeze(part, axis=axis)) for part in parts)
        if isinstance(sections, (int, np.integer)):
            if sections <= 0 or self._array.shape[axis] % sections != 0:
                raise ValueError(
                    f"Array of length {self._array.shape[axis]} cannot be split into {sections} equal parts"
                )
        parts = np.split(self._array, sections, axis=axis)
        return NDList(self._new(part) for part in parts)

    def stack(self, other: Union["NDArray", Sequence["NDArray"]], axis: int = 0) -> "NDArray":
        others = [other] if isinstance(other, NDArray) else list(other)
        return stack([self, *others], axis=axis)

    def concat(self, other: Union["NDArray", Sequence["NDArray"]], axis: int = 0) -> "NDArray":
        others = [other] if isinstance(other, NDArray) else list(other)
        return concat([self, *others], axis=axis)

    def add(self, other: Operand) -> "NDArray":
        return self._new(np.add(self._array, _unwrap(other)))

    def sub(self, other: Operand) -> "NDArray":
        return self._new(np.subtract(self._array, _unwrap(other)))

    def mul(self, other: Operand) -> "NDArray":
        return self._new(np.multiply(self._array, _unwrap(other)))

    def div(self, other: Operand) -> "NDArray":
        return self._new(np.true_divide(self._array, _unwrap(other)))

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = div

    def content_equals(self, other: Union["NDArray", np.ndarray]) -> bool:
        """Return True when both arrays have the same shape and values."""

        values = _unwrap(other)
        if not isinstance(values, np.ndarray):
            return False
        if values.shape != self._array.shape:
            return False
        return bool(np.array_equal(self._array, values))

    def all_close(self, other: Union["NDArray", np.ndarray], rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        values = _unwrap(other)
        if np.shape(values) != self._array.shape:
            return False
        return bool(np.allclose(self._array, values, rtol=rtol, atol=atol))

    def close(self) -> None:
        if self._data is None:
            return
        self._manager.detach(self)
        self._data = None

    def __enter__(self) -> "NDArray":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._data is None:
            return "NDArray(<closed>)"
        return f"NDArray(shape={self.shape.dims}, dtype={self.data_type.value})"


class NDList:
    """Ordered collection of NDArrays passed between translators and engines."""

    def __init__(self, *arrays: Union[NDArray, Iterable[NDArray]]) -> None:
        if len(arrays) == 1 and not isinstance(arrays[0], NDArray):
            arrays = tuple(arrays[0])  # type: ignore[assignment]
        self._arrays: List[NDArray] = list(arrays)  # type: ignore[arg-type]

    def head(self) -> NDArray:
        if not self._arrays:
            raise IndexError("NDList is empty")
        return self._arrays[0]

    def get(self, index: int) -> NDArray:
        return self._arrays[index]

    def add(self, array: NDArray) -> None:
        self._arrays.append(array)

    def size(self) -> int:
        return len(self._arrays)

    def close(self) -> None:
        for array in self._arrays:
            array.close()

    def __iter__(self) -> Iterator[NDArray]:
        return iter(self._arrays)

    def __len__(self) -> int:
        return len(self._arrays)

    def __getitem__(self, index: int) -> NDArray:
        return self._arrays[index]

    def __repr__(self) -> str:
        return f"NDList({self._arrays!r})"


def _unwrap(value: Operand) -> Union[np.ndarray, float, int]:
    if isinstance(value, NDArray):
        return value._array
    return value


def _require_arrays(arrays: Sequence[NDArray]) -> List[NDArray]:
    items = list(arrays)
    if not items:
        raise ValueError("At least one array is required")
    return items


def stack(arrays: Sequence[NDArray], axis: int = 0) -> NDArray:
    """Join arrays of identical shape along a new axis."""

    items = _require_arrays(arrays)
    expected = items[0].shape
    for array in items[1:]:
        if array.shape != expected:
            raise ValueError(f"Cannot stack arrays with shapes {expected} and {array.shape}")
    axis = _normalize_axis(axis, expected.dimension() + 1)
    return items[0]._new(np.stack([array._array for array in items], axis=axis))


def concat(arrays: Sequence[NDArray], axis: int = 0) -> NDArray:
    """Join arrays along an existing axis."""

    items = _require_arrays(arrays)
    first = items[0].shape
    if first.dimension() == 0:
        raise ValueError("Cannot concatenate scalar arrays")
    axis = _normalize_axis(axis, first.dimension())
    for array in items[1:]:
        shape = array.shape
        if shape.dimension() != first.dimension() or any(
            a != b for idx, (a, b) in enumerate(zip(first, shape)) if idx != axis
        ):
            raise ValueError(f"Cannot concatenate arrays with shapes {first} and {shape} on axis {axis}")
    LOGGER.debug("Concatenating %d arrays on axis %d", len(items), axis)
    return items[0]._new(np.concatenate([array._array for array in items], axis=axis))
