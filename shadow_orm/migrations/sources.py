"""
Migration sources: where units come from.

The runner only needs an unordered list of units; sorting and ledger logic
stay in the runner, so discovery can be a directory scan, an in-code list, or
anything else implementing `MigrationSource`.
"""

from __future__ import annotations

import abc
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable, List, Union

from shadow_orm.errors import InvalidMigration
from shadow_orm.migrations.base import Migration
from shadow_orm.utils.logging import get_logger

log = get_logger(__name__)


class MigrationSource(abc.ABC):
    @abc.abstractmethod
    def load(self) -> List[Migration]:  # pragma: no cover - interface only
        """Return every unit this source knows about, in any order."""
        raise NotImplementedError


class StaticSource(MigrationSource):
    """Units registered in code (Migration objects, mappings, or modules)."""

    def __init__(self, units: Iterable[Any]) -> None:
        self._units = list(units)

    def load(self) -> List[Migration]:
        return [
            Migration.from_object(unit, origin=f"unit #{position}")
            for position, unit in enumerate(self._units)
        ]


class DirectorySource(MigrationSource):
    """
    Python files in a directory, one unit per file.

    A file either defines a ``migration`` attribute (a Migration or a
    mapping) or module-level ``id``, ``name``, ``up`` and optional ``down``.
    Files whose name starts with an underscore are ignored. A missing
    directory yields no units.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _import(self, file: Path) -> ModuleType:
        spec = importlib.util.spec_from_file_location(f"_shadow_orm_migration_{file.stem}", file)
        if spec is None or spec.loader is None:
            raise InvalidMigration(f"{file}: cannot be imported")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise InvalidMigration(f"{file}: failed to import: {exc}") from exc
        return module

    def load(self) -> List[Migration]:
        if not self.path.is_dir():
            log.warning("Migrations directory not found", extra={"path": str(self.path)})
            return []
        units = []
        for file in sorted(self.path.glob("*.py")):
            if file.name.startswith("_"):
                continue
            module = self._import(file)
            units.append(Migration.from_object(getattr(module, "migration", module), origin=str(file)))
        return units

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.path)!r})"


SourceLike = Union[MigrationSource, str, Path, Iterable[Any]]


def as_source(source: SourceLike) -> MigrationSource:
    """Paths become DirectorySource, other iterables StaticSource."""
    if isinstance(source, MigrationSource):
        return source
    if isinstance(source, (str, Path)):
        return DirectorySource(source)
    return StaticSource(source)


__all__ = ["DirectorySource", "MigrationSource", "SourceLike", "StaticSource", "as_source"]
