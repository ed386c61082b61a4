"""Pipeline context: a value paired with a metadata side-channel."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar, Union, get_origin

from .errors import TypeMismatchError

T = TypeVar("T")


@dataclass(frozen=True)
class ContextKey:
    """Type-safe context key identifier.

    When ``value_type`` is set, :meth:`PipelineContext.get` checks the stored
    payload against it unless the caller passes an explicit type.
    """

    name: str
    value_type: Optional[type] = None

    def __str__(self) -> str:
        return self.name


KeyLike = Union[str, ContextKey]


def _runtime_type(expected_type: Any) -> Any:
    """Reduce a type hint to something isinstance accepts; None means unchecked."""
    if expected_type is None or expected_type is Any:
        return None
    if isinstance(expected_type, tuple):
        if any(t is Any for t in expected_type):
            return None
        return tuple(get_origin(t) or t for t in expected_type)
    return get_origin(expected_type) or expected_type


@dataclass
class PipelineContext(Generic[T]):
    """
    Mutable container threaded through a context pipeline.

    ``value`` is the primary value that transform steps replace. The
    metadata mapping is a side-channel effect steps can write to; it is
    owned by this container and never shared between executions.
    """

    value: T
    _metadata: Dict[str, Any] = field(default_factory=dict)

    def set(self, key: KeyLike, payload: Any) -> None:
        """Store payload under key, replacing any previous entry."""
        self._metadata[str(key)] = payload

    def get(
        self,
        key: KeyLike,
        expected_type: Optional[Any] = None,
        default: Any = None,
    ) -> Any:
        """
        Get metadata payload for key.

        Args:
            key: Metadata key (string or ContextKey)
            expected_type: Type (or tuple of types) the payload must be an
                instance of. Generic aliases such as ``list[int]`` are
                checked against their origin only, and ``Any`` disables the
                check. Falls back to the ContextKey's type.
            default: Returned when the key was never set

        Returns:
            The stored payload, or ``default`` if the key is absent

        Raises:
            TypeMismatchError: If the key is present but the payload is not
                an instance of the expected type
        """
        name = str(key)
        if name not in self._metadata:
            return default

        payload = self._metadata[name]
        if expected_type is None and isinstance(key, ContextKey):
            expected_type = key.value_type

        checked = _runtime_type(expected_type)
        if checked is not None and not isinstance(payload, checked):
            raise TypeMismatchError(name, expected_type, type(payload))
        return payload

    def has(self, key: KeyLike) -> bool:
        """Check if key exists in metadata."""
        return str(key) in self._metadata

    def keys(self) -> list[str]:
        """Get all metadata keys."""
        return list(self._metadata.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dict (for logging or serialization)."""
        return {
            "value": self.value,
            "metadata": self._metadata.copy(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineContext":
        """Create context from dict."""
        return cls(
            value=data.get("value"),
            _metadata=dict(data.get("metadata", {})),
        )
