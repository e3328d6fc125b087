"""Remove OpenAPI models that would declare an already-seen group/version/kind.

An aggregated OpenAPI document may carry several definitions for the same
group/version/kind. A GVK parser rejects such documents, so the first model
(in sorted name order) for each GVK is kept and later ones are dropped.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

GROUP_VERSION_KIND_EXTENSION_KEY = "x-kubernetes-group-version-kind"


@dataclass(frozen=True)
class GroupVersionKind:
    group: str = ""
    version: str = ""
    kind: str = ""


class Models(ABC):
    """A collection of named schemas. A schema exposes an ``extensions`` mapping."""

    @abstractmethod
    def lookup_model(self, model: str) -> Optional[Any]:
        """Return the schema with the given name, or ``None``."""

    @abstractmethod
    def list_models(self) -> list[str]:
        """Return all model names, sorted."""


class UniqueModels(Models):
    """Models in which no two schemas share a group/version/kind."""

    def __init__(self, models: Optional[Mapping[str, Any]] = None) -> None:
        self.models: dict[str, Any] = dict(models or {})

    def lookup_model(self, model: str) -> Optional[Any]:
        return self.models.get(model)

    def list_models(self) -> list[str]:
        return sorted(self.models)


def parse_group_version_kind(schema: Any) -> list[GroupVersionKind]:
    """Read the group/version/kind extension of a schema; malformed entries are skipped."""
    extensions = getattr(schema, "extensions", None) or {}
    entries = extensions.get(GROUP_VERSION_KIND_EXTENSION_KEY)
    if not isinstance(entries, list):
        return []

    result = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        group, version, kind = (entry.get(k) for k in ("group", "version", "kind"))
        if not all(isinstance(v, str) for v in (group, version, kind)):
            continue
        result.append(GroupVersionKind(group=group, version=version, kind=kind))
    return result


def _already_processed(
    gvk_list: list[GroupVersionKind], seen: Mapping[GroupVersionKind, str]
) -> Optional[GroupVersionKind]:
    return next((gvk for gvk in gvk_list if gvk.kind and gvk in seen), None)


def new_unique_models(models: Models) -> tuple[UniqueModels, list[GroupVersionKind]]:
    """Return the de-duplicated models and the GVKs that were found more than once."""
    tainted: list[GroupVersionKind] = []
    seen: dict[GroupVersionKind, str] = {}
    unique = UniqueModels()
    for name in models.list_models():
        model = models.lookup_model(name)
        if model is None:
            raise LookupError(
                f"ListModels returns a model that can't be looked-up for: {name}"
            )
        gvk_list = parse_group_version_kind(model)
        duplicate = _already_processed(gvk_list, seen)
        if duplicate is not None:
            tainted.append(duplicate)
            continue
        unique.models[name] = model
        for gvk in gvk_list:
            if gvk.kind:
                seen[gvk] = name
    return unique, tainted