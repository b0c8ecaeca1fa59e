from datetime import datetime

from cvoperator.conditions import (
    ensure_cluster_operator_status,
    find_operator_status_condition,
    is_operator_status_condition_false,
    is_operator_status_condition_not_in,
    is_operator_status_condition_present_and_equal,
    is_operator_status_condition_true,
    remove_operator_status_condition,
    set_operator_status_condition,
)

OLD_TIME = "2000-01-01T00:00:00Z"


def _conditions():
    return [
        {"type": "Available", "status": "True", "lastTransitionTime": OLD_TIME},
        {"type": "Degraded", "status": "False", "lastTransitionTime": OLD_TIME},
    ]


def test_set_adds_new_condition_with_timestamp():
    conditions = []
    new = {"type": "Progressing", "status": "True", "reason": "Working"}
    set_operator_status_condition(conditions, new)
    assert len(conditions) == 1
    added = conditions[0]
    assert added["type"] == "Progressing"
    assert added["reason"] == "Working"
    parsed = datetime.strptime(added["lastTransitionTime"], "%Y-%m-%dT%H:%M:%SZ")
    assert parsed.year >= 2020
    assert "lastTransitionTime" not in new


def test_set_same_status_keeps_timestamp_and_updates_text():
    conditions = _conditions()
    set_operator_status_condition(
        conditions, {"type": "Available", "status": "True", "reason": "R", "message": "M"}
    )
    available = conditions[0]
    assert available["lastTransitionTime"] == OLD_TIME
    assert available["reason"] == "R"
    assert available["message"] == "M"
    assert len(conditions) == 2


def test_set_changed_status_restamps():
    conditions = _conditions()
    set_operator_status_condition(conditions, {"type": "Degraded", "status": "True"})
    degraded = conditions[1]
    assert degraded["status"] == "True"
    assert degraded["lastTransitionTime"] > OLD_TIME


def test_remove_condition():
    conditions = _conditions()
    remove_operator_status_condition(conditions, "Available")
    assert [c["type"] for c in conditions] == ["Degraded"]


def test_find_returns_live_entry():
    conditions = _conditions()
    assert find_operator_status_condition(conditions, "Degraded") is conditions[1]
    assert find_operator_status_condition(conditions, "Missing") is None


def test_status_predicates():
    conditions = _conditions()
    assert is_operator_status_condition_true(conditions, "Available") is True
    assert is_operator_status_condition_true(conditions, "Degraded") is False
    assert is_operator_status_condition_false(conditions, "Degraded") is True
    assert is_operator_status_condition_false(conditions, "Missing") is False
    assert is_operator_status_condition_present_and_equal(conditions, "Available", "True")
    assert is_operator_status_condition_not_in(conditions, "Available", "False") is True
    assert is_operator_status_condition_not_in(conditions, "Available", "False", "True") is False
    assert is_operator_status_condition_not_in(conditions, "Missing", "True") is True


def test_ensure_cluster_operator_status():
    existing = {"metadata": {"name": "op"}, "status": {"conditions": _conditions()}}
    required = {
        "metadata": {"name": "op"},
        "status": {"conditions": _conditions()[:1], "versions": [{"name": "operator"}]},
    }
    assert ensure_cluster_operator_status(existing, required) is True
    assert existing["status"]["conditions"] == required["status"]["conditions"]
    assert existing["status"]["versions"] == [{"name": "operator"}]
    assert ensure_cluster_operator_status(existing, required) is False