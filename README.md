# gitopskit

Building blocks for GitOps tooling that works with Kubernetes manifests. The
package works on plain data: it parses and inspects manifests, decides the
order in which resources are synced, builds kubeconfig documents and times
operations.

## Installation

```
pip install gitopskit
```

The only runtime dependency is PyYAML.

## Modules

### `gitopskit.kube`

- `Unstructured` wraps a Kubernetes object held as a dictionary. It has the
  properties `api_version`, `kind`, `name`, `namespace`, `labels` and
  `annotations` (the last two can be assigned), and the methods
  `group_version_kind()`, `deep_copy()` and `nested(*keys)`.
- `split_yaml(data)` splits a YAML or JSON stream (bytes or text) into
  `Unstructured` objects; `split_yaml_to_string(data)` returns one JSON text
  per non-empty document. Malformed input raises `ValueError`, whose `objects`
  attribute holds what was parsed before the failure. A document without a
  `kind` is rejected by `split_yaml`.
- `get_resource_images(obj)` returns the container images of pods, templated
  workloads and cron jobs, or `None` when there are none.
  `get_deployment_replicas(obj)` returns `spec.replicas` or `None`.
- `get_app_instance_label(obj, key)` and `unset_label(target, key)` work on
  labels; removing the last label drops the labels map.
- `get_resource_key(obj)` returns a `ResourceKey`; `is_crd(obj)` and
  `is_crd_group_version_kind(gvk)` recognise CustomResourceDefinitions.
- `new_kube_config(rest_config, namespace)` builds a kubeconfig dictionary from
  a `RestConfig`, and `write_kube_config(rest_config, namespace, filename)`
  writes it as YAML with mode `0600`. With no credentials set, the user entry
  points at the in-cluster service account token file.
- `clean_kubectl_output(text)` strips noise from kubectl error messages.
- `server_resource_for_group_version_kind(discovery, gvk, verb)` picks the
  `APIResource` for a group/version/kind that supports a verb, raising
  `NotFoundError` or `MethodNotSupportedError`. `discovery` is any object with a
  `server_resources_for_group_version(group_version)` method returning an
  `APIResourceList`.
- `is_supported_verb`, `to_group_version_resource`, `GroupKind`,
  `GroupVersionResource`, `GroupVersionKindRef` and the abstract
  `ResourceFilter` support the above.
- `watch_with_retry(get_watch, stop_event, retry_interval)` yields events from
  an iterable watch, reopening it each time it ends, until the stop event is
  set. `retry_until_succeed(stop_event, interval, desc, log, action)` calls an
  action until it stops raising; it returns `True` on success and `False` when
  stopped.

### `gitopskit.ctl`

- `filter_api_resources(discovery, preferred, resource_filter, host, predicate)`
  turns discovery results into `APIResourceInfo` records, leaving out resources
  excluded by the `ResourceFilter` or rejected by the predicate. Partial
  discovery results carried on an exception's `resources` attribute are used
  and the failure is logged.
- `get_api_resources(...)` keeps the resources that support both `list` and
  `watch`.
- `run_all_async(count, action)` runs `action(i)` in threads, starts no new
  ones after a failure, and raises the first failure once all started threads
  have finished.

### `gitopskit.synctasks`

`SyncTask`, `SyncTasks` (a `list` subclass) and `SyncPhase` order sync work.
`SyncTasks.sort()` orders by phase, wave, kind and name, then moves each
Namespace ahead of the first object in it and each CustomResourceDefinition
ahead of its first custom resource, giving the moved task that object's phase
and wave. `filter`, `split`, `map`, `all`, `any`, `find`, `phase`, `wave`,
`last_phase`, `last_wave` and `multi_step` query the list. `sort_key(task)` is
the sort key used.

### `gitopskit.syncwaves`

`wave(obj)` reads the `argocd.argoproj.io/sync-wave` annotation and falls back
to `helm.sh/hook-weight`, then to 0.

### `gitopskit.tracing`

`LoggingTracer(logger)` creates spans that log `"Trace"` through the standard
`logging` module when finished, passing the baggage, `operation_name` and
`time_ms` as `extra={"trace": ...}`. `NopTracer` creates spans that do nothing.
Spans can be used as context managers.

### `gitopskit.uniquemodels`

`new_unique_models(models)` takes a `Models` collection whose schemas expose an
`extensions` mapping and returns a `UniqueModels` in which no two schemas share
a group/version/kind, together with the list of duplicated `GroupVersionKind`
values. `parse_group_version_kind(schema)` reads the extension.

### `gitopskit.jsonfields`, `gitopskit.text`, `gitopskit.fileutil`

- `remove_map_fields(config, live)` and `remove_list_fields(config, live)` drop
  from a live object the fields the configuration lacks; extra list items are
  kept.
- `first_non_empty(*args)` and `with_default(val, default_value)`.
- `default_temp_dir()` returns `/dev/shm` when it is a directory, otherwise
  `None`; `delete_file(path)` deletes a file, ignoring failures.

## Example

```python
from gitopskit.kube import split_yaml, get_resource_images
from gitopskit.synctasks import SyncTask, SyncTasks

with open("app.yaml") as handle:
    objects = split_yaml(handle.read())

for obj in objects:
    print(obj.group_version_kind(), get_resource_images(obj))

tasks = SyncTasks(SyncTask(target_obj=obj) for obj in objects)
tasks.sort()
for task in tasks:
    print(task.wave(), task.obj().kind, task.name())
```

## What it does not do

The package has no client for the Kubernetes API server. It does not apply,
create, patch, replace or delete resources, does not convert objects between
API versions, and does not fetch discovery data or OpenAPI documents: the
discovery and watch objects it works with are supplied by the caller. There is
no command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```