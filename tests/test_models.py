"""Tests for procpanel data models."""

import json

import pytest

from procpanel.models import (
    UNKNOWN_NAME,
    OpenFile,
    ProcessDetail,
    ProcessRecord,
    ProcessTreeNode,
    QueryResult,
    QuerySpec,
    Snapshot,
)

from conftest import make_record


def test_process_record_creation():
    """Test ProcessRecord dataclass creation."""
    record = ProcessRecord(
        pid=123,
        ppid=1,
        name="test_process",
        username="testuser",
        status="running",
        cpu_percent=50.0,
        memory_percent=25.0,
        rss=1024000,
        num_threads=4,
        nice=0,
        cmd_line="/usr/bin/test",
    )

    assert record.pid == 123
    assert record.ppid == 1
    assert record.name == "test_process"
    assert record.username == "testuser"
    assert record.status == "running"
    assert record.cpu_percent == 50.0
    assert record.rss == 1024000
    assert record.num_threads == 4
    assert record.cmd_line == "/usr/bin/test"


def test_process_record_defaults_are_zero_values():
    """Unset fields hold their type's zero value and the name sentinel."""
    record = ProcessRecord(pid=1)
    assert record.name == UNKNOWN_NAME
    assert record.rss == 0
    assert record.envs == ()
    assert record.unavailable == frozenset()


def test_process_record_is_frozen():
    """Test that ProcessRecord is immutable (frozen)."""
    record = make_record(1)

    with pytest.raises(AttributeError):
        record.pid = 999  # type: ignore[misc]


def test_process_record_uses_slots():
    """Test that ProcessRecord uses __slots__ for memory efficiency."""
    record = make_record(1)

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(record, "__dict__")


def test_process_record_to_dict_is_json_serializable():
    """to_dict output survives json.dumps with nested values flattened."""
    record = make_record(
        5,
        open_files=(OpenFile(path="/tmp/x", fd=3),),
        children=(6, 7),
        unavailable=frozenset({"exe", "cwd"}),
    )
    data = json.loads(json.dumps(record.to_dict()))
    assert data["open_files"] == [{"path": "/tmp/x", "fd": 3}]
    assert data["children"] == [6, 7]
    assert data["unavailable"] == ["cwd", "exe"]


def test_snapshot_len_iter_and_lookup():
    """Snapshot behaves as a read-only collection of records."""
    snapshot = Snapshot(records=(make_record(1), make_record(2)), taken_at=0.0)
    assert len(snapshot) == 2
    assert [r.pid for r in snapshot] == [1, 2]
    assert snapshot.by_pid()[2].name == "proc2"


class TestQuerySpec:
    """Tests for QuerySpec normalization."""

    def test_defaults(self):
        spec = QuerySpec()
        assert spec.page == 1
        assert spec.limit == 20
        assert spec.sort_by == "pid"
        assert spec.sort_dir == "asc"
        assert spec.status == spec.username == spec.search == ""

    @pytest.mark.parametrize("page", [0, -3, "abc", None, 1.5j, float("inf"), float("nan")])
    def test_invalid_page_falls_back(self, page):
        assert QuerySpec(page=page).page == 1

    def test_invalid_limit_falls_back(self):
        assert QuerySpec(limit=0).limit == 20
        assert QuerySpec(limit="x").limit == 20

    def test_unknown_sort_key_and_direction_fall_back(self):
        spec = QuerySpec(sort_by="weight", sort_dir="sideways")
        assert spec.sort_by == "pid"
        assert spec.sort_dir == "asc"

    def test_sort_values_must_match_exactly(self):
        spec = QuerySpec(sort_by="CPU", sort_dir="DESC")
        assert spec.sort_by == "pid"
        assert spec.sort_dir == "asc"

    def test_from_params_coerces_strings(self):
        spec = QuerySpec.from_params(page="3", limit="15", search="nginx")
        assert spec.page == 3
        assert spec.limit == 15
        assert spec.search == "nginx"

    def test_from_params_never_raises_on_infinite_numbers(self):
        spec = QuerySpec.from_params(page=float("inf"), limit=float("-inf"))
        assert spec.page == 1
        assert spec.limit == 20

    def test_from_params_uses_default_limit(self):
        assert QuerySpec.from_params(default_limit=50).limit == 50
        assert QuerySpec.from_params(limit=5, default_limit=50).limit == 5

    def test_non_string_filters_are_ignored(self):
        spec = QuerySpec(status=3, username=None, search=["x"])
        assert spec.status == spec.username == spec.search == ""


def test_tree_node_to_dict_nests_children():
    """Tree nodes serialize their children and level recursively."""
    child = ProcessTreeNode(record=make_record(2, ppid=1), level=1)
    root = ProcessTreeNode(record=make_record(1, ppid=0), children=[child])
    data = root.to_dict()
    assert data["level"] == 0
    assert data["children"][0]["pid"] == 2
    assert data["children"][0]["level"] == 1


def test_detail_to_dict_without_parent():
    """A detail without a parent serializes parent as None."""
    detail = ProcessDetail(record=make_record(9), command_line=("a", "b"))
    data = detail.to_dict()
    assert data["parent"] is None
    assert data["command_line"] == ["a", "b"]
    assert data["children_detail"] == []


def test_query_result_to_dict():
    result = QueryResult(items=(make_record(1),), total=7)
    data = result.to_dict()
    assert data["total"] == 7
    assert data["items"][0]["pid"] == 1
