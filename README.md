# cvoperator

Building blocks for keeping a cluster's resources in line with a release
payload. Objects are plain dictionaries in their usual Kubernetes JSON
shape, so no generated client or schema is needed.

## Modules

### `cvoperator.manifest`

- `parse_manifests(stream)` reads a YAML or JSON stream that may hold
  several documents. The stream can be a file object, text or bytes. It
  returns `Manifest` objects, each with `raw` (compact JSON with sorted
  keys), `gvk` (a `GroupVersionKind`) and `obj` (the decoded dictionary).
  Empty and `null` documents are skipped.
- `decode_manifest(raw)` decodes a single JSON object. It returns `None`
  for an empty or `null` document.
- `manifests_from_files(files)` parses each path in order and sets
  `original_filename` to the file's base name. All open and parse
  failures are collected and raised together as one `ManifestError`.

### Merging: `cvoperator.meta`, `cvoperator.podmerge`, `cvoperator.merge`

The `ensure_*` functions change `existing` in place so that it carries
what `required` asks for. They return `True` when they changed anything.

- `ensure_object_meta` sets the name and namespace when they are given.
  It merges labels and annotations. It adds or replaces owner references,
  matched by UID.
- `ensure_pod_spec` and `ensure_containers` keep exactly the required
  containers and init containers, matched by name. Containers that are
  not required are removed.
  - Within a container, command and args are always taken from the
    requirement.
  - Env and resources are replaced when they are set.
  - Ports and volume mounts are required when they are specified.
  - Probes and security contexts are merged.
  - At pod level, volumes, tolerations (matched by key), affinity,
    security context, node selector and priority settings follow the same
    rules.
- `ensure_config_map` and `ensure_pod_template_spec` are also provided.
- `cvoperator.merge` has these functions:
  - `ensure_deployment`, `ensure_daemon_set` and `ensure_job`.
  - `ensure_custom_resource_definition` and `ensure_api_service`, which
    replace the whole spec.
  - `ensure_cluster_version` and `ensure_cluster_version_status`.
  - The RBAC functions `ensure_cluster_role`, `ensure_cluster_role_binding`,
    `ensure_role` and `ensure_role_binding`.
  - `ensure_security_context_constraints`.

### `cvoperator.conditions`

- `set_operator_status_condition` adds or updates a condition. It stamps
  `lastTransitionTime` when the condition is added or its status changes.
- `remove_operator_status_condition` and `find_operator_status_condition`
  remove and look up a condition.
- The `is_operator_status_condition_*` predicates test a condition.
- `ensure_cluster_operator_status` merges a cluster operator's metadata
  and status.

### `cvoperator.podspec`

`update_pod_spec_with_proxy(pod_spec, container_names, http_proxy,
https_proxy, no_proxy)` appends `HTTP_PROXY`, `HTTPS_PROXY` and `NO_PROXY`
to the named containers and init containers. It does nothing when all
three values are empty. It raises `ValueError` for a name that matches no
container.

### `cvoperator.apply`

The `apply_*` functions take a client object that has
`get(namespace, name)`, `create(obj)` and `update(obj)` methods. `get`
must raise `NotFoundError` when the object is missing. The
`*_from_cache` variants also take a lister that has `get(namespace, name)`.

Each function does one of three things:

- It creates the object when it is missing.
- It does nothing when the object has the
  `release.openshift.io/create-only` annotation set to `"true"`.
- Otherwise it merges the required object into the existing one and
  sends an update only if the merge changed something.

Every function returns `(actual, updated)`. `apply_resource` and
`apply_resource_from_cache` accept any `ensure` function.

### `cvoperator.read`

Each `read_*` function decodes one raw JSON or YAML object of a given
kind and returns it as a dictionary. Examples are `read_deployment_v1`,
`read_config_map_v1`, `read_cluster_role_v1` and
`read_image_stream_v1`. RBAC and APIService objects in `v1beta1` are
returned with their `apiVersion` set to `v1`. An unknown kind or a
mismatched kind raises `DecodeError`.

### Updates

- `cvoperator.cincinnati`:
  - `parse_version` and `Version` cover semantic versions. Build metadata
    is ignored when versions are compared.
  - `Client(client_id, proxy_url, tls_config).get_updates(upstream, arch,
    channel, version)` fetches the update graph over HTTP. It returns the
    `Update` nodes that can be reached in one step from the current
    version.
  - Errors are raised as `CincinnatiError`.
- `cvoperator.available_updates`:
  - `calculate_available_updates_status` returns the updates together
    with a `RetrievedUpdates` condition. When the check fails, the
    condition says why.
  - `AvailableUpdates.needs_update` returns an updated copy of a
    ClusterVersion, or `None` when nothing changed.
  - `get_https_proxy_url` and `get_tls_config` read the proxy settings
    and the CA bundle through listers.
- `cvoperator.autoupdate`:
  - `next_update` picks the highest available version.
  - `Controller` is a queue-driven worker. When its ClusterVersion has
    available updates, it sets the ClusterVersion's desired update to the
    highest one. The methods are `enqueue`, `sync` and
    `run(workers, stop_event)`.
- `cvoperator.validation`:
  - `validate_cluster_version` returns a list of `FieldError`. It checks
    the name, the upstream URL, the cluster ID (an RFC 4122 version-4
    UUID) and the desired update.
  - `clear_invalid_fields` returns a copy of the ClusterVersion with the
    offending fields removed.

## Example

```python
import io

from cvoperator.autoupdate import next_update
from cvoperator.manifest import parse_manifests
from cvoperator.meta import ensure_object_meta

text = """
apiVersion: v1
kind: ConfigMap
metadata:
  name: a-config
  namespace: default
data:
  color: red
"""

for manifest in parse_manifests(io.StringIO(text)):
    print(manifest.gvk)  # /v1, Kind=ConfigMap

best = next_update([{"version": "0.0.1"}, {"version": "0.0.2"}])
print(best["version"])  # 0.0.2

existing = {"name": "a", "labels": {"app": "x"}}
changed = ensure_object_meta(existing, {"name": "a", "labels": {"tier": "web"}})
# existing["labels"] == {"app": "x", "tier": "web"}, changed is True
```

## What this package does not do

- It has no command-line tool.
- It ships no Kubernetes API client. You supply the client and lister
  objects that the apply functions and the controller call.
- Nothing here picks a handler by group, version and kind to apply a
  manifest.
- Nothing here waits for deployments, daemon sets, jobs or custom
  resource definitions to finish rolling out.