"""Base class for runtime configs with change notification and GUI metadata.

Uses dataclasses with field metadata for range hints and GUI integration.
"""

from __future__ import annotations

import threading
import warnings
from dataclasses import dataclass, fields, field, MISSING
from typing import Any, Callable, TypeVar

T = TypeVar('T')


# Valid metadata keys for config fields
METADATA_KEYS = {
    "description",  # Field description for tooltips/help
    "fixed",        # Field can be set at init, then becomes readonly
    "label",        # Custom display label (auto-generated if omitted)
    "min",          # Minimum value (GUI hint)
    "max",          # Maximum value (GUI hint)
}


def config_field(
    default: T = MISSING,
    *,
    default_factory: Any = MISSING,
    description: str = "",
    label: str | None = None,
    min: float | int | None = None,
    max: float | int | None = None,
    fixed: bool = False,
) -> T:
    """Create a config field with metadata.

    Returns a dataclass Field at runtime, typed as T for the type checker.

    Examples:
        >>> curl: float = config_field(30.0, min=0.0, max=100.0, description="Vorticity strength")
        >>> startup_burst: bool = config_field(True, fixed=True)
    """
    metadata: dict[str, Any] = {}
    if description:
        metadata["description"] = description
    if label:
        metadata["label"] = label
    if min is not None:
        metadata["min"] = min
    if max is not None:
        metadata["max"] = max
    if fixed:
        metadata["fixed"] = True

    return field(  # type: ignore[return-value]
        default=default,
        default_factory=default_factory,
        metadata=metadata
    )


def _generate_label(name: str) -> str:
    """Turn a field name into a display label, keeping acronyms ("sim_resolution" -> "Sim Resolution")."""
    return ' '.join(part if part.isupper() and len(part) > 1 else part.capitalize()
                    for part in name.split('_'))


@dataclass
class ConfigBase:
    """Dataclass config with change listeners and fixed (init-only) fields.

    Example:
        @dataclass
        class SplatConfig(ConfigBase):
            radius: float = config_field(0.25, min=0.01, max=1.0)
            seeded: bool = config_field(True, fixed=True)

    Assigning an undeclared attribute raises AttributeError, as does assigning
    a fixed field after construction. Listeners run after the value is stored,
    outside the internal lock.
    """

    def __post_init__(self) -> None:
        object.__setattr__(self, '_listeners', set())
        object.__setattr__(self, '_lock', threading.Lock())

        fixed_set: set[str] = set()
        for f in fields(self):
            for key in f.metadata:
                if key not in METADATA_KEYS:
                    warnings.warn(
                        f"{self.__class__.__name__}.{f.name}: unknown metadata key '{key}'",
                        UserWarning,
                        stacklevel=2
                    )
            if f.metadata.get('fixed'):
                fixed_set.add(f.name)

            if 'min' in f.metadata and 'max' in f.metadata:
                val = getattr(self, f.name)
                if not (f.metadata['min'] <= val <= f.metadata['max']):
                    warnings.warn(
                        f"{self.__class__.__name__}.{f.name}: value {val} is outside "
                        f"[{f.metadata['min']}, {f.metadata['max']}]",
                        UserWarning,
                        stacklevel=2
                    )

        object.__setattr__(self, '_fixed_fields', fixed_set)
        object.__setattr__(self, '_initialized', True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith('_'):
            object.__setattr__(self, name, value)
            return

        if name not in {f.name for f in fields(self)}:
            raise AttributeError(f"Cannot set undeclared attribute '{name}' on {self.__class__.__name__}")

        if not hasattr(self, '_initialized'):
            object.__setattr__(self, name, value)
            return

        if name in self._fixed_fields:  # type: ignore
            raise AttributeError(f"Cannot modify fixed field '{name}'")

        with self._lock:  # type: ignore
            object.__setattr__(self, name, value)
            listeners_copy = list(self._listeners)  # type: ignore

        for listener in listeners_copy:
            listener()

    def watch(self, callback: Callable, attribute: str | None = None) -> Callable[[], None]:
        """Call `callback` on changes. Returns a function that stops watching.

        Without `attribute` the callback takes no arguments and fires on any
        change. With `attribute` it receives that field's current value.
        """
        if attribute is None:
            listener = callback
        else:
            if attribute not in {f.name for f in fields(self)}:
                raise AttributeError(f"Attribute '{attribute}' not found in {self.__class__.__name__}")

            def listener() -> None:
                callback(getattr(self, attribute))

        with self._lock:  # type: ignore
            self._listeners.add(listener)  # type: ignore

        def unwatch() -> None:
            with self._lock:  # type: ignore
                self._listeners.discard(listener)  # type: ignore
        return unwatch

    def info(self, attribute: str | None = None) -> dict[str, Any]:
        """Field metadata for GUI generation, for one field or all of them."""
        result: dict[str, dict[str, Any]] = {}
        for f in fields(self):
            if f.default is not MISSING:
                default_val = f.default
            elif f.default_factory is not MISSING:
                default_val = f.default_factory()
            else:
                default_val = None

            entry = {**f.metadata, "type": f.type, "default": default_val, "value": getattr(self, f.name)}
            entry.setdefault("label", _generate_label(f.name))
            entry.setdefault("description", "")
            entry.setdefault("min", None)
            entry.setdefault("max", None)
            entry.setdefault("fixed", False)
            result[f.name] = entry

        if attribute is not None:
            if attribute not in result:
                raise AttributeError(f"Attribute '{attribute}' not found in {self.__class__.__name__}")
            return result[attribute]
        return result

    def help_text(self, attribute: str) -> str:
        """One line for a command line --help: description, range and default."""
        info: dict[str, Any] = self.info(attribute)
        text: str = info['description'] or info['label']
        if info['min'] is not None and info['max'] is not None:
            text += f" [{info['min']}-{info['max']}]"
        return f"{text} (default: {info['default']})"
