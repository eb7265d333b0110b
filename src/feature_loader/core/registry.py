"""Feature module descriptors, principals and the module registry.

Descriptors are declared in the ``[[modules]]`` array of the TOML config:

    [[modules]]
    id = "expenses"
    name = "Expense Tracking"
    required_role = "accountant"
    import_path = "shop.features.expenses"
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from feature_loader.core.errors.loading import ModuleNotRegisteredError

logger = logging.getLogger(__name__)


class ModuleDescriptor(BaseModel):
    """Static description of a loadable feature module."""

    id: str = Field(..., min_length=1, description="Unique module id (e.g. 'expenses')")
    name: str = Field(..., min_length=1, description="Display name")
    required_role: str = Field(default="employee", description="Minimum role allowed to load it")
    import_path: Optional[str] = Field(
        None, description="Dotted Python module path used by the default loader"
    )
    description: str = Field(default="", description="Short description for listings")
    preload: bool = Field(default=False, description="Load in the background after login")
    timeout: Optional[float] = Field(
        None, gt=0, description="Seconds one load attempt may take (orchestrator default when unset)"
    )

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("required_role")
    @classmethod
    def normalize_role(cls, value: str) -> str:
        return value.strip().lower()


class Principal(BaseModel):
    """The user requesting a module."""

    user_id: str = Field(..., min_length=1)
    role: str = Field(..., description="Role name, compared by RoleHierarchyGate")

    model_config = {"frozen": True}

    @field_validator("role")
    @classmethod
    def normalize_role(cls, value: str) -> str:
        return value.strip().lower()


@dataclass
class LoadedModule:
    """A module that finished loading and is held by the orchestrator."""

    descriptor: ModuleDescriptor
    module: Any
    load_duration: float
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Orchestrator clock reading, used for cache expiry and eviction
    cached_at: float = field(default=0.0, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module_id": self.descriptor.id,
            "name": self.descriptor.name,
            "loaded_at": self.loaded_at.isoformat(),
            "load_duration": round(self.load_duration, 6),
        }


class ModuleRegistry:
    """Lookup table of module descriptors keyed by id."""

    def __init__(self, descriptors: Iterable[ModuleDescriptor] = ()) -> None:
        self._descriptors: Dict[str, ModuleDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]]) -> "ModuleRegistry":
        """Build a registry from raw ``[[modules]]`` tables.

        Raises:
            pydantic.ValidationError: If an entry is malformed
            ValueError: If two entries share an id
        """
        return cls(ModuleDescriptor.model_validate(dict(entry)) for entry in entries)

    def register(self, descriptor: ModuleDescriptor) -> None:
        if descriptor.id in self._descriptors:
            raise ValueError(f"Duplicate module id: {descriptor.id}")
        self._descriptors[descriptor.id] = descriptor

    def get(self, module_id: str) -> ModuleDescriptor:
        try:
            return self._descriptors[module_id]
        except KeyError:
            raise ModuleNotRegisteredError(module_id) from None

    def list(self) -> List[ModuleDescriptor]:
        return list(self._descriptors.values())

    def preloadable(self) -> List[ModuleDescriptor]:
        return [d for d in self._descriptors.values() if d.preload]

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


async def import_feature_module(descriptor: ModuleDescriptor) -> Any:
    """Default module loader: import ``descriptor.import_path`` in a worker thread.

    Raises:
        ModuleNotFoundError: If the descriptor has no import path or the
            path cannot be imported
    """
    if not descriptor.import_path:
        raise ModuleNotFoundError(f"Module '{descriptor.id}' has no import_path configured")
    logger.debug("Importing %s for module %s", descriptor.import_path, descriptor.id)
    return await asyncio.to_thread(importlib.import_module, descriptor.import_path)
