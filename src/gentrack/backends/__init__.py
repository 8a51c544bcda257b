from __future__ import annotations

import importlib
import inspect
from pathlib import Path

from gentrack.backends.base import BaseBackend
from gentrack.status import ItemKind

__all__ = [
    "BaseBackend",
    "BACKEND_CLASSES",
    "get_backend_class",
]


def _discover_backend_module_names() -> list[str]:
    """
    Discover backend module names from files in this package.

    Returns
    -------
    list[str]
        Sorted module names excluding package and base modules.
    """
    package_dir = Path(__file__).resolve().parent
    return sorted(
        file_path.stem
        for file_path in package_dir.glob("*.py")
        if file_path.name not in {"__init__.py", "base.py"}
    )


def _discover_backend_classes() -> dict[ItemKind, type[BaseBackend]]:
    """
    Discover concrete backend classes, indexed by the item kind they serve.

    Returns
    -------
    dict[ItemKind, type[BaseBackend]]
        Backend class per item kind.
    """
    backend_classes: dict[ItemKind, type[BaseBackend]] = {}
    for module_name in _discover_backend_module_names():
        module = importlib.import_module(name=f"{__name__}.{module_name}")
        for attr in vars(module).values():
            if not inspect.isclass(attr):
                continue
            if not issubclass(attr, BaseBackend) or attr is BaseBackend:
                continue
            if inspect.isabstract(attr) or attr.__module__ != module.__name__:
                continue
            backend_classes[attr.kind] = attr
    return backend_classes


BACKEND_CLASSES: dict[ItemKind, type[BaseBackend]] = _discover_backend_classes()


def get_backend_class(kind: ItemKind | str) -> type[BaseBackend]:
    """
    Resolve the backend adapter class for an item kind.

    Parameters
    ----------
    kind : ItemKind | str
        Item kind served by the backend.

    Returns
    -------
    type[BaseBackend]
        Backend class.

    Raises
    ------
    KeyError
        If no backend serves the kind.
    """
    resolved = ItemKind(kind)
    try:
        return BACKEND_CLASSES[resolved]
    except KeyError:
        raise KeyError(f"No backend registered for item kind: {resolved.value}") from None
