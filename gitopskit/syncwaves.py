"""Sync wave of a Kubernetes object, read from its annotations."""

import re
from typing import Optional

from gitopskit.kube import Unstructured

SYNC_WAVE_ANNOTATION = "argocd.argoproj.io/sync-wave"
HELM_HOOK_WEIGHT_ANNOTATION = "helm.sh/hook-weight"

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _parse_int(text: Optional[str]) -> Optional[int]:
    """Parse a plain decimal integer: optional sign, digits only, no spaces."""
    if text is None or not _INTEGER.fullmatch(text):
        return None
    return int(text)


def _helm_weight(obj: Unstructured) -> int:
    value = _parse_int(obj.annotations.get(HELM_HOOK_WEIGHT_ANNOTATION))
    return 0 if value is None else value


def wave(obj: Unstructured) -> int:
    """Return the object's sync wave.

    The sync-wave annotation wins when it holds an integer; otherwise the
    Helm hook weight is used, which defaults to 0.
    """
    value = _parse_int(obj.annotations.get(SYNC_WAVE_ANNOTATION))
    if value is not None:
        return value
    return _helm_weight(obj)