"""Data source registry: register and look up source classes by name."""

from repocredit.sources.base import DataSource

# Registry of all available sources
_SOURCES: dict[str, type[DataSource]] = {}


def register(name: str):
    """Decorator to register a source class by name."""

    def wrapper(cls: type[DataSource]):
        _SOURCES[name] = cls
        return cls

    return wrapper


def get_source(name: str) -> type[DataSource]:
    """Get a registered source class by name."""
    if name not in _SOURCES:
        available = ", ".join(sorted(_SOURCES.keys()))
        raise KeyError(f"Unknown source '{name}'. Available: {available}")
    return _SOURCES[name]


def list_sources() -> list[str]:
    return sorted(_SOURCES.keys())
