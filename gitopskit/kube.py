"""Helpers for working with Kubernetes objects held as plain dictionaries."""

import base64
import copy
import json
import logging
import os
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import yaml

from gitopskit.uniquemodels import GroupVersionKind

LIST_VERB = "list"
WATCH_VERB = "watch"

SECRET_KIND = "Secret"
SERVICE_KIND = "Service"
SERVICE_ACCOUNT_KIND = "ServiceAccount"
ENDPOINTS_KIND = "Endpoints"
DEPLOYMENT_KIND = "Deployment"
REPLICA_SET_KIND = "ReplicaSet"
STATEFUL_SET_KIND = "StatefulSet"
DAEMON_SET_KIND = "DaemonSet"
INGRESS_KIND = "Ingress"
JOB_KIND = "Job"
PERSISTENT_VOLUME_CLAIM_KIND = "PersistentVolumeClaim"
CUSTOM_RESOURCE_DEFINITION_KIND = "CustomResourceDefinition"
POD_KIND = "Pod"
API_SERVICE_KIND = "APIService"
NAMESPACE_KIND = "Namespace"
HORIZONTAL_POD_AUTOSCALER_KIND = "HorizontalPodAutoscaler"

IN_CLUSTER_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"


@dataclass(frozen=True)
class GroupKind:
    group: str = ""
    kind: str = ""


@dataclass(frozen=True)
class GroupVersionResource:
    group: str = ""
    version: str = ""
    resource: str = ""


def _parse_group_version(group_version: str) -> tuple[str, str]:
    if group_version in ("", "/"):
        return "", ""
    parts = group_version.split("/")
    if len(parts) == 1:
        return "", group_version
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected GroupVersion string: {group_version}")


def _format_group_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


@dataclass(frozen=True)
class GroupVersionKindRef(GroupVersionKind):
    """A group/version/kind that knows how to parse and render API versions."""

    @classmethod
    def from_api_version_and_kind(cls, api_version: str, kind: str) -> "GroupVersionKindRef":
        """Build from an ``apiVersion`` string; an unparsable version keeps only the kind."""
        try:
            group, version = _parse_group_version(api_version)
        except ValueError:
            return cls(kind=kind)
        return cls(group=group, version=version, kind=kind)

    def group_version(self) -> str:
        """Return ``group/version``, or just ``version`` for the core group."""
        return _format_group_version(self.group, self.version)


@dataclass
class Unstructured:
    """A Kubernetes object held as a nested dictionary."""

    object: dict[str, Any] = field(default_factory=dict)

    def nested(self, *args: str) -> Any:
        """Return the value at the given key path, or ``None`` when it is absent."""
        value: Any = self.object
        for key in args:
            if not isinstance(value, Mapping) or key not in value:
                return None
            value = value[key]
        return value

    def _string_at(self, *path: str) -> str:
        value = self.nested(*path)
        return value if isinstance(value, str) else ""

    def _string_map_at(self, *path: str) -> dict[str, str]:
        value = self.nested(*path)
        if not isinstance(value, Mapping) or not all(isinstance(v, str) for v in value.values()):
            return {}
        return dict(value)

    def _set_metadata_map(self, key: str, values: Optional[Mapping[str, str]]) -> None:
        metadata = self.object.get("metadata")
        if not values:
            if isinstance(metadata, dict):
                metadata.pop(key, None)
            return
        if not isinstance(metadata, dict):
            metadata = {}
            self.object["metadata"] = metadata
        metadata[key] = dict(values)

    @property
    def api_version(self) -> str:
        return self._string_at("apiVersion")

    @property
    def kind(self) -> str:
        return self._string_at("kind")

    @property
    def name(self) -> str:
        return self._string_at("metadata", "name")

    @property
    def namespace(self) -> str:
        return self._string_at("metadata", "namespace")

    @property
    def labels(self) -> dict[str, str]:
        return self._string_map_at("metadata", "labels")

    @labels.setter
    def labels(self, values: Optional[Mapping[str, str]]) -> None:
        self._set_metadata_map("labels", values)

    @property
    def annotations(self) -> dict[str, str]:
        return self._string_map_at("metadata", "annotations")

    @annotations.setter
    def annotations(self, values: Optional[Mapping[str, str]]) -> None:
        self._set_metadata_map("annotations", values)

    def group_version_kind(self) -> GroupVersionKindRef:
        """Return the group/version/kind declared by the object."""
        return GroupVersionKindRef.from_api_version_and_kind(self.api_version, self.kind)

    def deep_copy(self) -> "Unstructured":
        return Unstructured(copy.deepcopy(self.object))


@dataclass(frozen=True)
class ResourceKey:
    group: str = ""
    kind: str = ""
    namespace: str = ""
    name: str = ""

    def __str__(self) -> str:
        return f"{self.group}/{self.kind}/{self.namespace}/{self.name}"

    def group_kind(self) -> GroupKind:
        return GroupKind(group=self.group, kind=self.kind)


@dataclass
class APIResource:
    name: str = ""
    kind: str = ""
    namespaced: bool = False
    group: str = ""
    version: str = ""
    verbs: list[str] = field(default_factory=list)


@dataclass
class APIResourceList:
    group_version: str = ""
    api_resources: list[APIResource] = field(default_factory=list)


def _qualified_resource(group: str, resource: str) -> str:
    return f"{resource}.{group}" if group else resource


class NotFoundError(LookupError):
    """The requested resource does not exist on the server."""

    def __init__(self, group: str, resource: str, name: str = "") -> None:
        self.group = group
        self.resource = resource
        self.name = name
        super().__init__(f'{_qualified_resource(group, resource)} "{name}" not found')


class MethodNotSupportedError(Exception):
    """The resource exists but does not support the requested verb."""

    def __init__(self, group: str, resource: str, action: str) -> None:
        self.group = group
        self.resource = resource
        self.action = action
        super().__init__(
            f'{action} is not supported on resources of kind "{_qualified_resource(group, resource)}"'
        )


class _ManifestError(ValueError):
    """A manifest could not be parsed; ``objects`` holds what was parsed before the failure."""

    def __init__(self, message: str, objects: list) -> None:
        super().__init__(message)
        self.objects = objects


class ResourceFilter(ABC):
    """Decides which resources are left out of processing."""

    @abstractmethod
    def is_excluded_resource(self, group: str, kind: str, cluster: str) -> bool:
        """Return True when resources of this group and kind are excluded in the cluster."""


@dataclass
class RestConfig:
    """Connection settings for a Kubernetes API server."""

    host: str = ""
    username: str = ""
    password: str = ""
    bearer_token: str = ""
    exec_provider: Optional[dict[str, Any]] = None
    proxy_url: Optional[str] = None
    tls_server_name: str = ""
    insecure: bool = False
    ca_file: str = ""
    ca_data: bytes = b""
    cert_file: str = ""
    cert_data: bytes = b""
    key_file: str = ""
    key_data: bytes = b""


def get_resource_key(obj: Unstructured) -> ResourceKey:
    gvk = obj.group_version_kind()
    return ResourceKey(group=gvk.group, kind=gvk.kind, namespace=obj.namespace, name=obj.name)


def get_app_instance_label(obj: Unstructured, key: str) -> str:
    """Return the value of the label ``key``, or an empty string."""
    return obj.labels.get(key, "")


def unset_label(target: Unstructured, key: str) -> None:
    """Remove the label ``key``; drop the labels map entirely once it is empty."""
    labels = target.labels
    if key in labels:
        del labels[key]
        target.labels = labels


def is_crd_group_version_kind(gvk: GroupVersionKind) -> bool:
    return gvk.kind == CUSTOM_RESOURCE_DEFINITION_KIND and gvk.group == "apiextensions.k8s.io"


def is_crd(obj: Unstructured) -> bool:
    return is_crd_group_version_kind(obj.group_version_kind())


def is_supported_verb(api_resource: APIResource, verb: str) -> bool:
    """Return whether the resource supports ``verb``, matched case-insensitively."""
    if verb in ("", "*"):
        return True
    wanted = verb.casefold()
    return any(v.casefold() == wanted for v in api_resource.verbs)


def to_group_version_resource(group_version: str, api_resource: APIResource) -> GroupVersionResource:
    gvk = GroupVersionKindRef.from_api_version_and_kind(group_version, api_resource.kind)
    return GroupVersionResource(group=gvk.group, version=gvk.version, resource=api_resource.name)


def server_resource_for_group_version_kind(
    discovery: Any, gvk: GroupVersionKind, verb: str
) -> APIResource:
    """Find the server's API resource for ``gvk`` that supports ``verb``.

    ``discovery`` must provide ``server_resources_for_group_version(group_version)``
    returning an :class:`APIResourceList`. Raises :class:`NotFoundError` when no
    resource has the kind, :class:`MethodNotSupportedError` when none supports the verb.
    """
    error: Exception = NotFoundError(gvk.group, gvk.kind, "")
    group_version = _format_group_version(gvk.group, gvk.version)
    resources = discovery.server_resources_for_group_version(group_version)
    for resource in resources.api_resources:
        if resource.kind != gvk.kind:
            continue
        if is_supported_verb(resource, verb):
            return resource
        error = MethodNotSupportedError(gvk.group, gvk.kind, verb)
    raise error


_KUBECTL_ERR_OUT = re.compile(
    r'^(error: )?(error validating|error when creating|error when creating) "\S+": '
)
_KUBECTL_APPLY_PATCH_ERR_OUT = re.compile(
    r'^error when applying patch:.*\nfor: "\S+": ', re.DOTALL
)
_KUBECTL_ERR_OUT_MAP = re.compile(r"map\[.*\]")
_VALIDATE_HINT = "; if you choose to ignore these errors, turn validation off with --validate=false"


def clean_kubectl_output(text: str) -> str:
    """Make kubectl error output easier to read."""
    text = text.strip()
    text = _KUBECTL_ERR_OUT.sub("", text)
    text = _KUBECTL_ERR_OUT_MAP.sub("", text)
    text = _KUBECTL_APPLY_PATCH_ERR_OUT.sub("", text)
    return text.replace(_VALIDATE_HINT, "")


def _encode_data(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _new_auth_info(rest_config: RestConfig) -> dict[str, Any]:
    auth_info: dict[str, Any] = {}
    candidates = [
        ("client-certificate", rest_config.cert_file, str),
        ("client-certificate-data", rest_config.cert_data, _encode_data),
        ("client-key", rest_config.key_file, str),
        ("client-key-data", rest_config.key_data, _encode_data),
        ("username", rest_config.username, str),
        ("password", rest_config.password, str),
        ("token", rest_config.bearer_token, str),
    ]
    for key, value, convert in candidates:
        if value:
            auth_info[key] = convert(value)
    if rest_config.exec_provider is not None:
        auth_info["exec"] = copy.deepcopy(rest_config.exec_provider)
    if not auth_info:
        # Without credentials, assume an in-cluster config using the service account token.
        auth_info["tokenFile"] = IN_CLUSTER_TOKEN_FILE
    return auth_info


def new_kube_config(rest_config: RestConfig, namespace: str = "") -> dict[str, Any]:
    """Build a kubeconfig document for ``rest_config``, keyed by its host."""
    host = rest_config.host
    cluster: dict[str, Any] = {"server": host}
    if rest_config.tls_server_name:
        cluster["tls-server-name"] = rest_config.tls_server_name
    if rest_config.insecure:
        cluster["insecure-skip-tls-verify"] = True
    if rest_config.ca_file:
        cluster["certificate-authority"] = rest_config.ca_file
    if rest_config.ca_data:
        cluster["certificate-authority-data"] = _encode_data(rest_config.ca_data)
    if rest_config.proxy_url:
        cluster["proxy-url"] = rest_config.proxy_url

    context: dict[str, Any] = {"cluster": host, "user": host}
    if namespace:
        context["namespace"] = namespace

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "preferences": {},
        "current-context": host,
        "clusters": [{"name": host, "cluster": cluster}],
        "contexts": [{"name": host, "context": context}],
        "users": [{"name": host, "user": _new_auth_info(rest_config)}],
    }


def write_kube_config(
    rest_config: RestConfig, namespace: str, filename: "Union[str, os.PathLike[str]]"
) -> None:
    """Write ``rest_config`` as a kubeconfig file readable only by its owner."""
    document = new_kube_config(rest_config, namespace)
    directory = os.path.dirname(os.fspath(filename))
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filename, "w", encoding="utf-8") as handle:
        yaml.safe_dump(document, handle, default_flow_style=False)
    os.chmod(filename, 0o600)


class _ManifestLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings."""


_ManifestLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _split_json(text: str) -> list[str]:
    decoder = json.JSONDecoder()
    documents: list[str] = []
    position = 0
    while True:
        while position < len(text) and text[position].isspace():
            position += 1
        if position >= len(text):
            return documents
        try:
            _, end = decoder.raw_decode(text, position)
        except json.JSONDecodeError as err:
            raise _ManifestError(f"failed to unmarshal manifest: {err}", documents) from err
        raw = text[position:end].strip()
        if raw and raw != "null":
            documents.append(raw)
        position = end


def _split_yaml(text: str) -> list[str]:
    documents: list[str] = []
    try:
        for document in yaml.load_all(text, Loader=_ManifestLoader):
            if document is None:
                continue
            documents.append(
                json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
            )
    except yaml.YAMLError as err:
        raise _ManifestError(f"failed to unmarshal manifest: {err}", documents) from err
    return documents


def split_yaml_to_string(data: Union[bytes, str]) -> list[str]:
    """Split a YAML or JSON stream into one JSON text per non-empty document.

    Raises ValueError on malformed input; its ``objects`` attribute holds the
    documents parsed before the failure.
    """
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    if text.lstrip().startswith("{"):
        return _split_json(text)
    return _split_yaml(text)


def split_yaml(data: Union[bytes, str]) -> list[Unstructured]:
    """Split a YAML or JSON stream into objects.

    Raises ValueError when a document is not an object with a kind; its
    ``objects`` attribute holds the objects parsed before the failure.
    """
    objects: list[Unstructured] = []
    for document in split_yaml_to_string(data):
        content = json.loads(document)
        if not isinstance(content, dict):
            raise _ManifestError(
                f"failed to unmarshal manifest: not an object: '{document}'", objects
            )
        kind = content.get("kind")
        if not isinstance(kind, str) or not kind:
            raise _ManifestError(
                f"failed to unmarshal manifest: Object 'Kind' is missing in '{document}'", objects
            )
        objects.append(Unstructured(content))
    return objects


def watch_with_retry(
    get_watch: Callable[[], Iterable[Any]],
    stop_event: Optional[threading.Event] = None,
    retry_interval: float = 1.0,
) -> Iterator[Any]:
    """Yield watch events, re-opening the watch each time it ends.

    Stops once ``stop_event`` is set. An exception raised by ``get_watch``
    ends the stream and propagates to the consumer. A watch with a ``close``
    method is closed when it is left.
    """
    stop_event = stop_event or threading.Event()
    while not stop_event.is_set():
        watch = get_watch()
        try:
            for event in watch:
                if stop_event.is_set():
                    return
                yield event
        finally:
            close = getattr(watch, "close", None)
            if callable(close):
                close()
        if stop_event.wait(retry_interval):
            return


def get_deployment_replicas(obj: Unstructured) -> Optional[int]:
    """Return ``spec.replicas`` when it is an integer, otherwise ``None``."""
    value = obj.nested("spec", "replicas")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


_CONTAINER_PATHS = (
    ("spec", "containers"),
    ("spec", "template", "spec", "containers"),
    ("spec", "jobTemplate", "spec", "template", "spec", "containers"),
)


def get_resource_images(obj: Unstructured) -> Optional[list[str]]:
    """Return the container images of a pod-like object, or ``None`` when there are none."""
    containers = next(
        (c for c in (obj.nested(*path) for path in _CONTAINER_PATHS) if isinstance(c, list)),
        None,
    )
    if containers is None:
        return None
    images = [
        container["image"]
        for container in containers
        if isinstance(container, Mapping) and isinstance(container.get("image"), str)
    ]
    return images or None


def retry_until_succeed(
    stop_event: threading.Event,
    interval: float,
    desc: str,
    log: logging.Logger,
    action: Callable[[], Any],
) -> bool:
    """Run ``action`` until it stops raising or ``stop_event`` is set.

    Returns True when the action succeeded and False when retrying was stopped.
    """
    while True:
        log.debug("Start %s", desc)
        try:
            action()
        except Exception as err:  # noqa: BLE001 - any failure means another attempt
            log.debug("Failed to %s: %s, retrying in %ss", desc, err, interval)
        else:
            log.debug("Completed %s", desc)
            return True
        if stop_event.wait(interval):
            log.debug("Stop retrying %s", desc)
            return False