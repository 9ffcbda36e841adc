"""
Header class registry with decorator support.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from pktcraft.protocols.base import Layer

if TYPE_CHECKING:
    from pktcraft.protocols.base import Header


class HeaderRegistry:
    """
    Global registry of header classes.

    Supports registration via decorator and allows querying header classes
    by name or layer. Registration order is kept: it is the order in which
    first headers are guessed when parsing without a hint.
    """

    def __init__(self):
        self._headers: dict[str, type[Header]] = {}
        self._by_layer: dict[int, list[str]] = {}

    def register(self, header_cls: type[Header]) -> type[Header]:
        """Register a header class."""
        if not header_cls.name:
            raise ValueError(f"Header {header_cls.__name__} must have a name")
        if 'body' not in header_cls._schema:
            raise ValueError(f"Header {header_cls.__name__} must define a body field")

        key = header_cls.name.lower()
        if key in self._headers:
            raise ValueError(f"Header {header_cls.name} already registered")

        self._headers[key] = header_cls
        self._by_layer.setdefault(header_cls.layer.value, []).append(key)
        return header_cls

    def get(self, name: str | type[Header]) -> type[Header] | None:
        """Get header class by name (case-insensitive) or class."""
        if isinstance(name, type):
            return name if name in self._headers.values() else None
        return self._headers.get(name.lower())

    def get_by_layer(self, layer: Layer) -> list[type[Header]]:
        """Get all header classes of a specific layer."""
        keys = self._by_layer.get(layer.value, [])
        return [self._headers[key] for key in keys if key in self._headers]

    def list_headers(self) -> list[str]:
        """List all registered header names."""
        return [cls.name for cls in self._headers.values()]

    def header_classes(self) -> list[type[Header]]:
        """Registered header classes, in registration order."""
        return list(self._headers.values())

    def unregister(self, name: str | type[Header]) -> bool:
        """Unregister a header class by name."""
        header_cls = self.get(name)
        if not header_cls:
            return False

        key = header_cls.name.lower()
        if header_cls.layer.value in self._by_layer:
            self._by_layer[header_cls.layer.value] = [
                k for k in self._by_layer[header_cls.layer.value] if k != key
            ]

        del self._headers[key]
        return True

    def clear(self) -> None:
        """Clear all registered header classes."""
        self._headers.clear()
        self._by_layer.clear()

    def __contains__(self, name: str | type[Header]) -> bool:
        return self.get(name) is not None


# Global registry instance
_global_registry = HeaderRegistry()


def get_global_registry() -> HeaderRegistry:
    """Get the global header registry."""
    return _global_registry


def register_header(
    name: str,
    layer: Layer = Layer.APPLICATION,
    registry: HeaderRegistry | None = None
) -> Callable[[type[Header]], type[Header]]:
    """
    Decorator to register a header class.

    Args:
        name: Protocol name, also used for packet attribute lookup
        layer: Protocol layer of the header
        registry: Registry to use (defaults to global)

    Example:
        @register_header('IP', Layer.NETWORK)
        class IP(Header):
            ...
    """
    if registry is None:
        registry = _global_registry

    def decorator(cls: type[Header]) -> type[Header]:
        cls.name = name
        cls.layer = layer
        return registry.register(cls)

    return decorator


def unregister_header(name: str, registry: HeaderRegistry | None = None) -> bool:
    """Unregister a header class by name."""
    if registry is None:
        registry = _global_registry
    return registry.unregister(name)
