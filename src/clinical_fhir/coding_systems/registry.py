"""Code System Registry.

Read-only lookup of the codes each known code system defines. The registry
is built once per process from a ``TerminologySource`` and never mutated
afterwards, so concurrent readers need no locking.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Protocol, Tuple

from clinical_fhir.core.exceptions import ConfigurationError
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CodeSystem:
    """A code system: its canonical URL and the codes it defines."""

    url: str
    name: str
    concepts: Mapping[str, str] = field(default_factory=dict)
    version: Optional[str] = None

    def __post_init__(self) -> None:
        """Freeze the concept table."""
        object.__setattr__(self, "concepts", MappingProxyType(dict(self.concepts)))

    def __contains__(self, code: object) -> bool:
        """Return True when ``code`` is defined by this system."""
        return code in self.concepts

    def display(self, code: str) -> Optional[str]:
        """Return the display text for ``code``."""
        return self.concepts.get(code)


class BindingStrength(str, Enum):
    """FHIR binding strengths."""

    REQUIRED = "required"
    EXTENSIBLE = "extensible"
    PREFERRED = "preferred"
    EXAMPLE = "example"


@dataclass(frozen=True)
class ValueSetBinding:
    """Binding of a coded element to the codes of one code system."""

    system: str
    strength: BindingStrength = BindingStrength.REQUIRED


class TerminologySource(Protocol):
    """Anything able to supply the code systems the registry is built from."""

    def load_code_systems(self) -> Iterable[CodeSystem]:
        """Return every code system to register."""
        ...


class CodeSystemRegistry:
    """Immutable mapping from code system URL to its code set."""

    def __init__(self, code_systems: Iterable[CodeSystem]):
        """Initialize registry.

        Args:
            code_systems: Code systems to register; later entries with the same
                URL extend earlier ones
        """
        merged: dict = {}
        names: dict = {}
        for system in code_systems:
            merged.setdefault(system.url, {}).update(system.concepts)
            names.setdefault(system.url, system.name)
        self._codes: Mapping[str, frozenset] = MappingProxyType(
            {url: frozenset(concepts) for url, concepts in merged.items()}
        )
        self._systems: Mapping[str, CodeSystem] = MappingProxyType(
            {url: CodeSystem(url, names[url], concepts) for url, concepts in merged.items()}
        )

    def contains_code(self, system: str, code: str) -> bool:
        """Return True iff ``code`` is registered under ``system``."""
        codes = self._codes.get(system)
        return codes is not None and code in codes

    def has_system(self, system: str) -> bool:
        """Return True iff the system URL is known."""
        return system in self._codes

    def codes(self, system: str) -> frozenset:
        """Return every code of ``system``; empty when unknown."""
        return self._codes.get(system, frozenset())

    def display(self, system: str, code: str) -> Optional[str]:
        """Return the display text of ``code`` in ``system``."""
        code_system = self._systems.get(system)
        return code_system.display(code) if code_system else None

    def get(self, system: str) -> Optional[CodeSystem]:
        """Return the code system registered under ``system``."""
        return self._systems.get(system)

    @property
    def systems(self) -> Tuple[str, ...]:
        """URLs of every registered code system."""
        return tuple(self._systems)

    def __iter__(self) -> Iterator[CodeSystem]:
        """Iterate over registered code systems."""
        return iter(self._systems.values())

    def __len__(self) -> int:
        """Return number of registered code systems."""
        return len(self._systems)


_registry: Optional[CodeSystemRegistry] = None
_registry_source: Optional[TerminologySource] = None
_registry_lock = threading.Lock()


def initialize_registry(source: Optional[TerminologySource] = None) -> CodeSystemRegistry:
    """Build the process-wide registry exactly once.

    Args:
        source: Terminology source; defaults to the built-in HL7 and LOINC set

    Returns:
        The shared registry

    Raises:
        ConfigurationError: If the registry was already built from another source
    """
    global _registry, _registry_source

    with _registry_lock:
        if _registry is not None:
            if source is not None and source is not _registry_source:
                raise ConfigurationError(
                    "code system registry is already initialized from another source"
                )
            return _registry

        if source is None:
            # Imported here: the built-in source depends on this module
            from clinical_fhir.terminology import BuiltinTerminologySource

            source = BuiltinTerminologySource()

        _registry = CodeSystemRegistry(source.load_code_systems())
        _registry_source = source
        logger.debug(
            "code_system_registry_initialized",
            source=type(source).__name__,
            systems=len(_registry),
        )
        return _registry


def get_registry() -> CodeSystemRegistry:
    """Return the shared registry, building it from built-ins on first use."""
    registry = _registry
    if registry is None:
        return initialize_registry()
    return registry


def reset_registry() -> None:
    """Forget the shared registry so it can be initialized again."""
    global _registry, _registry_source

    with _registry_lock:
        _registry = None
        _registry_source = None


def contains_code(system: str, code: str) -> bool:
    """Check ``code`` against the shared registry."""
    return get_registry().contains_code(system, code)
