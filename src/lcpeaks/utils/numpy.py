"""Serializable numpy array types and array helpers."""

from __future__ import annotations

import base64
import json
from typing import Literal, TypeVar

import numpy
from numpy import floating, frombuffer, integer
from numpy.typing import NDArray
from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


def array_to_json_str(arr: NDArray) -> str:
    """Serialize a numpy array as a JSON string.

    :param arr: The numpy array to serialize
    :return: JSON string with the array `dtype`, `shape` and data encoded in `base64_bytes`.

    """
    d = {
        "dtype": str(arr.dtype),
        "shape": arr.shape,
        "base64_bytes": base64.b64encode(arr.tobytes()).decode("utf8"),
    }
    return json.dumps(d)


def json_str_to_array(s: str) -> NDArray:
    """Decode a string generated with :py:func:`array_to_json_str`."""
    d = json.loads(s)
    data = base64.b64decode(bytes(d["base64_bytes"], "utf8"))
    return frombuffer(data, dtype=d["dtype"]).reshape(d["shape"]).copy()


def validate_serializable_array(arr) -> NDArray:
    """Create an array from a serialized string or a sequence of numbers."""
    if isinstance(arr, str):
        arr = json_str_to_array(arr)
    elif not isinstance(arr, numpy.ndarray):
        arr = numpy.asarray(arr, dtype=float)
    return arr


def find_range(x: NDArray, low: float, high: float) -> tuple[int, int]:
    """Find the slice of a sorted array with values in the closed interval ``[low, high]``.

    :param x: sorted 1D array
    :param low: interval lower bound
    :param high: interval upper bound
    :return: start and end indices of the slice. ``start == end`` if no element is in the interval.

    """
    start = int(numpy.searchsorted(x, low, side="left"))
    end = int(numpy.searchsorted(x, high, side="right"))
    return start, max(start, end)


def check_same_length(**arrays: NDArray | None) -> None:
    """Raise a ValueError if the provided arrays do not share the same length. ``None`` values are skipped."""
    sizes = {name: arr.size for name, arr in arrays.items() if arr is not None}
    if len(set(sizes.values())) > 1:
        msg = ", ".join(f"{name}={size}" for name, size in sizes.items())
        raise ValueError(f"Arrays must have the same length. Got {msg}.")


FloatDtype = TypeVar("FloatDtype", bound=floating)
IntDtype = TypeVar("IntDtype", bound=integer)


FloatArray1D = Annotated[
    NDArray[FloatDtype],
    Literal["N"],
    BeforeValidator(validate_serializable_array),
    PlainSerializer(array_to_json_str, return_type=str),
]

IntArray1D = Annotated[
    NDArray[IntDtype],
    Literal["N"],
    BeforeValidator(validate_serializable_array),
    PlainSerializer(array_to_json_str, return_type=str),
]
