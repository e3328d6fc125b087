"""Sync tasks and the order in which they are applied."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gitopskit.kube import NAMESPACE_KIND, Unstructured, is_crd
from gitopskit.syncwaves import wave as object_wave


class SyncPhase(str, Enum):
    PRE_SYNC = "PreSync"
    SYNC = "Sync"
    POST_SYNC = "PostSync"
    SYNC_FAIL = "SyncFail"


SYNC_PHASE_ORDER = {
    SyncPhase.PRE_SYNC: -1,
    SyncPhase.SYNC: 0,
    SyncPhase.POST_SYNC: 1,
    SyncPhase.SYNC_FAIL: 2,
}

_KINDS = (
    "Namespace",
    "NetworkPolicy",
    "ResourceQuota",
    "LimitRange",
    "PodSecurityPolicy",
    "PodDisruptionBudget",
    "ServiceAccount",
    "Secret",
    "SecretList",
    "ConfigMap",
    "StorageClass",
    "PersistentVolume",
    "PersistentVolumeClaim",
    "CustomResourceDefinition",
    "ClusterRole",
    "ClusterRoleList",
    "ClusterRoleBinding",
    "ClusterRoleBindingList",
    "Role",
    "RoleList",
    "RoleBinding",
    "RoleBindingList",
    "Service",
    "DaemonSet",
    "Pod",
    "ReplicationController",
    "ReplicaSet",
    "Deployment",
    "HorizontalPodAutoscaler",
    "StatefulSet",
    "Job",
    "CronJob",
    "IngressClass",
    "Ingress",
    "APIService",
)

# Every known kind gets a negative rank so unknown kinds (custom resources) sort last at 0.
KIND_ORDER = {kind: index - len(_KINDS) for index, kind in enumerate(_KINDS)}


def kind_order(kind: str) -> int:
    """Return the rank of a kind; unknown kinds rank 0."""
    return KIND_ORDER.get(kind, 0)


@dataclass
class SyncTask:
    """A resource to be synced, in a given phase."""

    phase: SyncPhase = SyncPhase.SYNC
    target_obj: Optional[Unstructured] = None
    live_obj: Optional[Unstructured] = None
    wave_override: Optional[int] = None

    def obj(self) -> Optional[Unstructured]:
        """Return the target object, or the live object when there is no target."""
        return self.target_obj if self.target_obj is not None else self.live_obj

    def wave(self) -> int:
        if self.wave_override is not None:
            return self.wave_override
        return object_wave(self.obj())

    def name(self) -> str:
        return self.obj().name


def sort_key(task: SyncTask) -> tuple[int, int, int, str]:
    """Order by phase, then wave, then kind, then name."""
    obj = task.obj()
    return (SYNC_PHASE_ORDER[task.phase], task.wave(), kind_order(obj.kind), obj.name)


DepKey = Callable[[Unstructured], Optional[str]]


def _namespace_dep(obj: Unstructured) -> Optional[str]:
    if obj.kind == NAMESPACE_KIND and obj.group_version_kind().group == "":
        return obj.name
    return None


def _namespace_ref(obj: Unstructured) -> Optional[str]:
    return obj.namespace or None


def _crd_dep(obj: Unstructured) -> Optional[str]:
    if not is_crd(obj):
        return None
    group = obj.nested("spec", "group")
    kind = obj.nested("spec", "names", "kind")
    if not isinstance(group, str) or not isinstance(kind, str):
        return None
    return f"{group}/{kind}"


def _crd_ref(obj: Unstructured) -> Optional[str]:
    gvk = obj.group_version_kind()
    return f"{gvk.group}/{gvk.kind}"


class SyncTasks(list):
    """A list of sync tasks with ordering and query helpers."""

    def sort(self) -> None:  # type: ignore[override]
        """Sort in sync order, then move dependencies ahead of their dependents.

        Namespaces go before the resources in them, and CRDs before their
        custom resources.
        """
        super().sort(key=sort_key)
        self._adjust_deps(_namespace_dep, _namespace_ref)
        self._adjust_deps(_crd_dep, _crd_ref)

    def _adjust_deps(self, is_dep: DepKey, refs_dep: DepKey) -> None:
        first_index: dict[str, int] = {}
        for i in range(len(self)):
            task = self[i]
            if task.target_obj is None:
                continue
            dep_key = is_dep(task.target_obj)
            if dep_key is not None:
                index = first_index.get(dep_key)
                if index is None:
                    continue
                # A dependency runs in the same phase and wave as its first dependent.
                task.wave_override = self[index].wave()
                task.phase = self[index].phase
                self.insert(index, self.pop(i))
                for key, value in first_index.items():
                    if value >= index:
                        first_index[key] = value + 1
                continue
            ref_key = refs_dep(task.target_obj)
            if ref_key is not None:
                first_index.setdefault(ref_key, i)

    def filter(self, predicate: Callable[[SyncTask], bool]) -> "SyncTasks":
        return SyncTasks(task for task in self if predicate(task))

    def split(
        self, predicate: Callable[[SyncTask], bool]
    ) -> tuple["SyncTasks", "SyncTasks"]:
        matching, rest = SyncTasks(), SyncTasks()
        for task in self:
            (matching if predicate(task) else rest).append(task)
        return matching, rest

    def map(self, func: Callable[[SyncTask], str]) -> list[str]:
        """Return the distinct results of ``func`` over the tasks."""
        return list(dict.fromkeys(func(task) for task in self))

    def all(self, predicate: Callable[[SyncTask], bool]) -> bool:
        return all(predicate(task) for task in self)

    def any(self, predicate: Callable[[SyncTask], bool]) -> bool:
        return any(predicate(task) for task in self)

    def find(self, predicate: Callable[[SyncTask], bool]) -> Optional[SyncTask]:
        return next((task for task in self if predicate(task)), None)

    def __str__(self) -> str:
        return "[" + ", ".join(str(task) for task in self) + "]"

    def phase(self) -> Optional[SyncPhase]:
        return self[0].phase if self else None

    def wave(self) -> int:
        return self[0].wave() if self else 0

    def last_phase(self) -> Optional[SyncPhase]:
        return self[-1].phase if self else None

    def last_wave(self) -> int:
        return self[-1].wave() if self else 0

    def multi_step(self) -> bool:
        return self.wave() != self.last_wave() or self.phase() != self.last_phase()