import uuid

from cvoperator.validation import FieldError, clear_invalid_fields, validate_cluster_version


def _config(**spec):
    return {"metadata": {"name": "version"}, "spec": spec}


def _fields(errors):
    return [(e.field, e.detail) for e in errors]


def test_valid_config():
    config = _config(clusterID=str(uuid.uuid4()), channel="stable", upstream="https://example.com/graph")
    assert validate_cluster_version(config) == []


def test_missing_name():
    errors = validate_cluster_version({"spec": {}})
    assert _fields(errors) == [("metadata.name", "name or generateName is required")]


def test_cluster_id_variant_and_version():
    errors = validate_cluster_version(_config(clusterID="not-a-uuid"))
    assert _fields(errors) == [("spec.clusterID", "must be an RFC4122-variant UUID")]
    errors = validate_cluster_version(_config(clusterID=str(uuid.uuid1())))
    assert _fields(errors) == [("spec.clusterID", "must be a version-4 UUID")]


def test_desired_update_errors():
    path = "spec.desiredUpdate.version"
    assert _fields(validate_cluster_version(_config(desiredUpdate={}))) == [
        (path, "must specify version or image")
    ]
    assert _fields(validate_cluster_version(_config(desiredUpdate={"version": "v1"}))) == [
        (path, "must be a semantic version (1.2.3[-...])")
    ]
    assert _fields(validate_cluster_version(_config(desiredUpdate={"version": "1.2.3"}))) == [
        (path, "when image is empty the update must be a previous version or an available update")
    ]


def test_desired_update_payload_counts():
    config = _config(desiredUpdate={"version": "1.2.3"})
    config["status"] = {"availableUpdates": [{"version": "1.2.3", "image": "a"}]}
    assert validate_cluster_version(config) == []
    config["status"]["availableUpdates"].append({"version": "1.2.3", "image": "b"})
    assert _fields(validate_cluster_version(config)) == [(
        "spec.desiredUpdate.version",
        "there are multiple possible payloads for this version, specify the exact image",
    )]
    config["status"] = {"history": [{"version": "1.2.3", "image": "a"}]}
    assert validate_cluster_version(config) == []


def test_bad_upstream():
    errors = validate_cluster_version(_config(upstream="http://example.com/%zz"))
    assert _fields(errors) == [("spec.upstream", "must be a valid URL or empty")]


def test_clear_invalid_fields():
    config = _config(upstream="http://example.com/%zz", clusterID="bad", desiredUpdate={}, channel="c")
    errors = validate_cluster_version(config)
    cleared = clear_invalid_fields(config, errors)
    assert cleared["spec"] == {"channel": "c"}
    assert config["spec"]["clusterID"] == "bad"
    assert validate_cluster_version(cleared) == []
    assert clear_invalid_fields(config, []) is config
    assert isinstance(errors[0], FieldError)