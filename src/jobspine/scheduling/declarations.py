"""Job declarations and the declaration registry.

Business code declares a recurring job by decorating a class::

    @job(cron="0 0/1 * * * ?")
    class Job1:
        def execute(self) -> None:
            ...

    @job(cron="${job3.cron:0 0/5 * * * ?}", entry_point="do_it", factory=make_job3)
    class Job3:
        def do_it(self) -> None:
            ...

The decorator only records a :class:`JobDeclaration`; nothing is scheduled
until the bootstrap feeds the declarations to
:class:`JobDeclarationRegistry`, which normalizes them into
:class:`JobDefinition` objects.  The registry does not care how the
declarations were collected: :func:`discover` scans packages, but a plain
list works just as well.

Tags:
    jobspine, scheduling, declarations, registry, discovery
"""

from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from jobspine.errors import ConfigurationError
from jobspine.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENTRY_POINT = "execute"
DECLARATION_ATTR = "__jobspine_declaration__"

T = TypeVar("T", bound=type)


@dataclass(frozen=True)
class JobDeclaration:
    """What a ``@job`` decorator records about its class."""

    owner: type
    cron: str
    entry_point: str = DEFAULT_ENTRY_POINT
    factory: Callable[[], Any] | None = None

    @property
    def identifier(self) -> str:
        return self.owner.__name__


@dataclass(frozen=True)
class JobDefinition:
    """Normalized, immutable description of one schedulable job."""

    identifier: str
    schedule_expression: str
    entry_point: str
    owner: type
    factory: Callable[[], Any] | None = None

    def create_instance(self) -> Any:
        """Build the business object that backs this job."""
        if self.factory is not None:
            return self.factory()
        return self.owner()


class DeclarationCatalog:
    """Process-wide, ordered record of every ``@job`` declaration seen."""

    def __init__(self) -> None:
        self._declarations: list[JobDeclaration] = []

    def add(self, declaration: JobDeclaration) -> None:
        self._declarations.append(declaration)
        logger.debug(
            "job_declared",
            identifier=declaration.identifier,
            module=declaration.owner.__module__,
        )

    def declarations(self, module_prefixes: Iterable[str] | None = None) -> list[JobDeclaration]:
        """Declarations in discovery order, optionally limited to some modules."""
        if module_prefixes is None:
            return list(self._declarations)
        prefixes = tuple(module_prefixes)
        return [
            d
            for d in self._declarations
            if any(
                d.owner.__module__ == p or d.owner.__module__.startswith(p + ".")
                for p in prefixes
            )
        ]

    def clear(self) -> None:
        """Forget all declarations (for testing)."""
        self._declarations.clear()

    def __len__(self) -> int:
        return len(self._declarations)


catalog = DeclarationCatalog()


def job(
    cron: str,
    entry_point: str = DEFAULT_ENTRY_POINT,
    factory: Callable[[], Any] | None = None,
) -> Callable[[T], T]:
    """Class decorator declaring a recurring job.

    Args:
        cron: Schedule expression; may contain ``${key:default}`` placeholders
        entry_point: Name of the zero-argument method to call on each fire
        factory: Builds the instance; defaults to calling the class with no args
    """

    def decorator(cls: T) -> T:
        declaration = JobDeclaration(owner=cls, cron=cron, entry_point=entry_point, factory=factory)
        setattr(cls, DECLARATION_ATTR, declaration)
        catalog.add(declaration)
        return cls

    return decorator


def declaration_of(cls: type) -> JobDeclaration | None:
    """The declaration attached to *cls* by ``@job``, if any."""
    return cls.__dict__.get(DECLARATION_ATTR)


def discover(*module_names: str) -> list[JobDeclaration]:
    """Import *module_names* (recursively for packages) and return their declarations.

    With no module names, every declaration seen so far is returned.

    Raises:
        ConfigurationError: A module cannot be imported.
    """
    for name in module_names:
        _import_recursive(name)
    return catalog.declarations(module_names or None)


def _import_recursive(name: str) -> None:
    try:
        module = importlib.import_module(name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import job module: {name}", cause=e) from e

    path = getattr(module, "__path__", None)
    if path is None:
        return
    for info in pkgutil.walk_packages(path, prefix=f"{name}."):
        try:
            importlib.import_module(info.name)
        except ImportError as e:
            raise ConfigurationError(f"Cannot import job module: {info.name}", cause=e) from e


class JobDeclarationRegistry:
    """Normalizes declarations into job definitions.

    Example:
        >>> registry = JobDeclarationRegistry(discover("myapp.jobs"))
        >>> [d.identifier for d in registry.definitions()]
        ['Job1', 'Job2', 'Job3']
    """

    def __init__(self, declarations: Iterable[JobDeclaration]) -> None:
        self._declarations = list(declarations)

    def definitions(self) -> list[JobDefinition]:
        """Definitions in discovery order.

        Raises:
            ConfigurationError: Two declarations derive the same identifier.
        """
        if not self._declarations:
            logger.warning("no_jobs_declared", hint="Did you decorate your jobs with @job?")
            return []

        seen: dict[str, JobDeclaration] = {}
        definitions: list[JobDefinition] = []
        for declaration in self._declarations:
            identifier = declaration.identifier
            if identifier in seen:
                # Re-registering the very same class (module imported twice) is harmless.
                if seen[identifier].owner is declaration.owner:
                    continue
                raise ConfigurationError(
                    f"Duplicate job identifier '{identifier}' declared by "
                    f"{seen[identifier].owner.__module__} and {declaration.owner.__module__}"
                ).with_context(identifier=identifier)
            seen[identifier] = declaration
            definitions.append(
                JobDefinition(
                    identifier=identifier,
                    schedule_expression=declaration.cron,
                    entry_point=declaration.entry_point,
                    owner=declaration.owner,
                    factory=declaration.factory,
                )
            )
        return definitions
