import copy

import pytest

from gitopskit.kube import Unstructured
from gitopskit.syncwaves import wave

_POD = {
    "apiVersion": "v1",
    "kind": "Pod",
    "metadata": {"name": "my-pod"},
    "spec": {
        "containers": [
            {"image": "nginx:1.7.9", "name": "nginx", "resources": {"requests": {"cpu": 0.2}}}
        ]
    },
}


def new_pod() -> Unstructured:
    return Unstructured(copy.deepcopy(_POD))


def annotate(obj: Unstructured, key: str, val: str) -> Unstructured:
    annotations = obj.annotations
    annotations[key] = val
    obj.annotations = annotations
    return obj


def test_wave_default():
    assert wave(new_pod()) == 0


def test_wave_from_sync_wave_annotation():
    assert wave(annotate(new_pod(), "argocd.argoproj.io/sync-wave", "1")) == 1


def test_wave_from_helm_hook_weight():
    assert wave(annotate(new_pod(), "helm.sh/hook-weight", "1")) == 1


def test_sync_wave_takes_precedence_over_helm_weight():
    pod = annotate(new_pod(), "helm.sh/hook-weight", "5")
    annotate(pod, "argocd.argoproj.io/sync-wave", "-3")
    assert wave(pod) == -3


@pytest.mark.parametrize("text", ["abc", " 1", "1.5", ""])
def test_invalid_sync_wave_falls_back_to_helm_weight(text):
    pod = annotate(new_pod(), "argocd.argoproj.io/sync-wave", text)
    assert wave(pod) == 0
    annotate(pod, "helm.sh/hook-weight", "7")
    assert wave(pod) == 7