"""API resource discovery helpers and concurrent task running."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from gitopskit.kube import (
    LIST_VERB,
    WATCH_VERB,
    APIResource,
    APIResourceList,
    GroupKind,
    GroupVersionResource,
    ResourceFilter,
    is_supported_verb,
    to_group_version_resource,
)

logger = logging.getLogger(__name__)


@dataclass
class APIResourceInfo:
    """An API resource served by the cluster, with its group/kind and resource path."""

    group_kind: GroupKind = field(default_factory=GroupKind)
    meta: APIResource = field(default_factory=APIResource)
    group_version_resource: GroupVersionResource = field(default_factory=GroupVersionResource)


def _split_group_version(group_version: str) -> tuple[str, str]:
    """Split ``group/version``; a bare version belongs to the core group."""
    if group_version in ("", "/"):
        return "", ""
    parts = group_version.split("/")
    if len(parts) == 1:
        return "", group_version
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected GroupVersion string: {group_version}")


def _discover(discovery: Any, preferred: bool) -> list[APIResourceList]:
    """Ask the discovery client for resource lists, tolerating partial failures.

    A failing discovery call may attach what it managed to fetch as a
    ``resources`` attribute on the exception; in that case the failure is
    logged and the partial result is used.
    """
    try:
        if preferred:
            return list(discovery.server_preferred_resources())
        _, resources = discovery.server_groups_and_resources()
        return list(resources)
    except Exception as err:
        partial = list(getattr(err, "resources", None) or [])
        if not partial:
            raise
        logger.error("Partial success when performing preferred resource discovery: %s", err)
        return partial


def filter_api_resources(
    discovery: Any,
    preferred: bool,
    resource_filter: ResourceFilter,
    host: str,
    predicate: Callable[[APIResource], bool],
) -> list[APIResourceInfo]:
    """Return the discovered API resources that are not excluded and match ``predicate``.

    ``discovery`` provides ``server_preferred_resources()`` returning a list of
    :class:`APIResourceList`, and ``server_groups_and_resources()`` returning a
    pair of groups and such a list. ``host`` is handed to the filter as the cluster.
    """
    result: list[APIResourceInfo] = []
    for resource_list in _discover(discovery, preferred):
        try:
            group, _ = _split_group_version(resource_list.group_version)
        except ValueError:
            group = ""
        for api_resource in resource_list.api_resources:
            if resource_filter.is_excluded_resource(group, api_resource.kind, host):
                continue
            if not predicate(api_resource):
                continue
            gvr = to_group_version_resource(resource_list.group_version, api_resource)
            resource_group, _ = _split_group_version(resource_list.group_version)
            result.append(
                APIResourceInfo(
                    group_kind=GroupKind(group=resource_group, kind=api_resource.kind),
                    meta=api_resource,
                    group_version_resource=gvr,
                )
            )
    return result


def get_api_resources(
    discovery: Any, preferred: bool, resource_filter: ResourceFilter, host: str
) -> list[APIResourceInfo]:
    """Return the API resources that can be both listed and watched."""
    return filter_api_resources(
        discovery,
        preferred,
        resource_filter,
        host,
        lambda resource: is_supported_verb(resource, LIST_VERB)
        and is_supported_verb(resource, WATCH_VERB),
    )


def run_all_async(count: int, action: Callable[[int], Any]) -> None:
    """Run ``action(i)`` for each ``i`` below ``count`` in parallel threads.

    Once an action has failed no further actions are started. After all
    started actions have finished, the first failure is raised.
    """
    failed = threading.Event()
    lock = threading.Lock()
    errors: list[Exception] = []

    def run(index: int) -> None:
        try:
            action(index)
        except Exception as err:  # noqa: BLE001 - reported to the caller below
            with lock:
                errors.append(err)
            failed.set()

    threads: list[threading.Thread] = []
    for index in range(count):
        thread = threading.Thread(target=run, args=(index,), daemon=True)
        thread.start()
        threads.append(thread)
        if failed.is_set():
            break
    for thread in threads:
        thread.join()

    first: Optional[Exception] = errors[0] if errors else None
    if first is not None:
        raise first