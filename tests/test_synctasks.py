import copy

from gitopskit.kube import Unstructured
from gitopskit.synctasks import (
    KIND_ORDER,
    SyncPhase,
    SyncTask,
    SyncTasks,
    kind_order,
    sort_key,
)

WAVE = "argocd.argoproj.io/sync-wave"

_POD = {
    "apiVersion": "v1",
    "kind": "Pod",
    "metadata": {"name": "my-pod"},
    "spec": {"containers": [{"image": "nginx:1.7.9", "name": "nginx"}]},
}


def new_pod() -> Unstructured:
    return Unstructured(copy.deepcopy(_POD))


def annotate(obj: Unstructured, key: str, val: str) -> Unstructured:
    annotations = obj.annotations
    annotations[key] = val
    obj.annotations = annotations
    return obj


def t_kind(kind):
    return SyncTask(target_obj=Unstructured({"GroupVersion": "v1", "kind": kind}))


def t_gv_only():
    return SyncTask(target_obj=Unstructured({"GroupVersion": "v1"}))


def t_wave(value):
    return SyncTask(
        target_obj=Unstructured({"metadata": {"annotations": {WAVE: value}}})
    )


def t_name(name):
    return SyncTask(target_obj=Unstructured({"metadata": {"name": name}}))


def t_phase(phase):
    return SyncTask(phase=phase, target_obj=Unstructured())


def unsorted_tasks():
    return SyncTasks(
        [
            t_kind("Pod"),
            t_kind("Service"),
            t_kind("PersistentVolume"),
            t_phase(SyncPhase.SYNC_FAIL),
            t_wave("1"),
            t_name("b"),
            t_name("a"),
            t_wave("-1"),
            t_gv_only(),
            t_phase(SyncPhase.PRE_SYNC),
            t_phase(SyncPhase.POST_SYNC),
            t_kind("ConfigMap"),
        ]
    )


def sorted_tasks():
    return SyncTasks(
        [
            t_phase(SyncPhase.PRE_SYNC),
            t_wave("-1"),
            t_kind("ConfigMap"),
            t_kind("PersistentVolume"),
            t_kind("Service"),
            t_kind("Pod"),
            t_gv_only(),
            t_name("a"),
            t_name("b"),
            t_wave("1"),
            t_phase(SyncPhase.POST_SYNC),
            t_phase(SyncPhase.SYNC_FAIL),
        ]
    )


def named_obj_tasks():
    return [t_name("a"), t_name("b")]


def unnamed_tasks():
    return [
        t_phase(SyncPhase.PRE_SYNC),
        t_wave("-1"),
        t_kind("ConfigMap"),
        t_kind("PersistentVolume"),
        t_kind("Service"),
        t_kind("Pod"),
        t_gv_only(),
        t_wave("1"),
        t_phase(SyncPhase.POST_SYNC),
        t_phase(SyncPhase.SYNC_FAIL),
    ]


def test_kind_order():
    assert KIND_ORDER["Namespace"] == -35
    assert KIND_ORDER["APIService"] == -1
    assert kind_order("MyCRD") == 0


def test_sort_by_key():
    assert sorted(unsorted_tasks(), key=sort_key) == sorted_tasks()


def test_sort_method_matches_key_order_without_dependencies():
    tasks = unsorted_tasks()
    tasks.sort()
    assert tasks == sorted_tasks()


def test_any():
    tasks = unsorted_tasks()
    assert tasks.any(lambda task: task.name() == "a") is True
    assert tasks.any(lambda task: task.name() == "does-not-exist") is False


def test_all():
    tasks = unsorted_tasks()
    assert tasks.all(lambda task: task.name() != "") is False
    assert tasks.all(lambda task: task.name() == "a") is False


def test_split():
    named, unnamed = sorted_tasks().split(lambda task: task.name() != "")
    assert named == named_obj_tasks()
    assert unnamed == unnamed_tasks()


def test_filter():
    tasks = SyncTasks([SyncTask(phase=SyncPhase.SYNC), SyncTask(phase=SyncPhase.POST_SYNC)])
    result = tasks.filter(lambda task: task.phase == SyncPhase.SYNC)
    assert result == [SyncTask(phase=SyncPhase.SYNC)]
    assert isinstance(result, SyncTasks)


def test_find():
    tasks = unsorted_tasks()
    found = tasks.find(lambda task: task.name() == "b")
    assert found == t_name("b")
    assert tasks.find(lambda task: task.name() == "zzz") is None


def test_map_returns_distinct_values():
    tasks = unsorted_tasks()
    assert sorted(tasks.map(lambda task: task.phase.value)) == [
        "PostSync",
        "PreSync",
        "Sync",
        "SyncFail",
    ]


def test_namespace_sorts_before_crd_kind():
    crd = SyncTask(target_obj=Unstructured({"kind": "Workflow"}))
    namespace = SyncTask(target_obj=Unstructured({"kind": "Namespace"}))
    result = sorted([crd, namespace], key=sort_key)
    assert result[0] is namespace
    assert result[1] is crd


def test_sort_namespace_and_object_in_namespace():
    hook1 = SyncTask(
        phase=SyncPhase.PRE_SYNC,
        target_obj=Unstructured(
            {"kind": "Job", "metadata": {"namespace": "myNamespace1", "name": "mySyncHookJob1"}}
        ),
    )
    hook2 = SyncTask(
        phase=SyncPhase.PRE_SYNC,
        target_obj=Unstructured(
            {"kind": "Job", "metadata": {"namespace": "myNamespace2", "name": "mySyncHookJob2"}}
        ),
    )
    namespace1 = SyncTask(
        target_obj=Unstructured(
            {
                "kind": "Namespace",
                "metadata": {"name": "myNamespace1", "annotations": {WAVE: "1"}},
            }
        )
    )
    namespace2 = SyncTask(
        target_obj=Unstructured(
            {
                "kind": "Namespace",
                "metadata": {"name": "myNamespace2", "annotations": {WAVE: "2"}},
            }
        )
    )
    tasks = SyncTasks([hook1, hook2, namespace1, namespace2])
    tasks.sort()

    assert [id(t) for t in tasks] == [id(namespace1), id(hook1), id(namespace2), id(hook2)]
    assert namespace1.wave() == 0
    assert namespace1.phase == SyncPhase.PRE_SYNC
    assert namespace2.wave() == 0
    assert namespace2.phase == SyncPhase.PRE_SYNC


def test_sort_crd_and_cr():
    cr = SyncTask(
        phase=SyncPhase.PRE_SYNC,
        target_obj=Unstructured({"kind": "Workflow", "apiVersion": "argoproj.io/v1"}),
    )
    crd = SyncTask(
        target_obj=Unstructured(
            {
                "apiVersion": "apiextensions.k8s.io/v1",
                "kind": "CustomResourceDefinition",
                "spec": {"group": "argoproj.io", "names": {"kind": "Workflow"}},
            }
        )
    )
    tasks = SyncTasks([cr, crd])
    tasks.sort()
    assert [id(t) for t in tasks] == [id(crd), id(cr)]
    assert crd.phase == SyncPhase.PRE_SYNC


def test_multi_step_single():
    tasks = SyncTasks(
        [SyncTask(live_obj=annotate(new_pod(), WAVE, "-1"), phase=SyncPhase.SYNC)]
    )
    assert tasks.phase() == SyncPhase.SYNC
    assert tasks.wave() == -1
    assert tasks.last_phase() == SyncPhase.SYNC
    assert tasks.last_wave() == -1
    assert tasks.multi_step() is False


def test_multi_step_double():
    tasks = SyncTasks(
        [
            SyncTask(live_obj=annotate(new_pod(), WAVE, "-1"), phase=SyncPhase.PRE_SYNC),
            SyncTask(live_obj=annotate(new_pod(), WAVE, "1"), phase=SyncPhase.POST_SYNC),
        ]
    )
    assert tasks.phase() == SyncPhase.PRE_SYNC
    assert tasks.wave() == -1
    assert tasks.last_phase() == SyncPhase.POST_SYNC
    assert tasks.last_wave() == 1
    assert tasks.multi_step() is True


def test_empty_tasks_defaults():
    tasks = SyncTasks()
    assert tasks.phase() is None
    assert tasks.wave() == 0
    assert tasks.last_wave() == 0
    assert str(tasks) == "[]"


def test_task_obj_prefers_target():
    target = Unstructured({"metadata": {"name": "target"}})
    live = Unstructured({"metadata": {"name": "live"}})
    assert SyncTask(target_obj=target, live_obj=live).name() == "target"
    assert SyncTask(live_obj=live).name() == "live"