"""
Unit tests for the file coordination ledger.
"""

import json
from pathlib import Path

import pytest

from branch_orchestrator.core.ledger import FileCoordinationLedger, normalize_path
from branch_orchestrator.errors import CoordinationConflictError, MissingResourceError
from branch_orchestrator.models.declaration import FileOperation


@pytest.fixture
def store(temp_directory: Path) -> FileCoordinationLedger:
    return FileCoordinationLedger(temp_directory)


class TestNormalizePath:
    def test_variants_compare_equal(self):
        assert normalize_path("./src/app.py") == "src/app.py"
        assert normalize_path("src\\app.py") == "src/app.py"
        assert normalize_path(" docs/ ") == "docs"


class TestDeclare:
    """Tests for declaring files."""

    def test_declare_writes_record(self, store: FileCoordinationLedger):
        declaration = store.declare(
            "claude", "ab12-cd34", ["src/app.py"], reason="refactor", estimated_duration=60
        )

        path = store.active_dir / "claude-ab12-cd34.json"
        data = json.loads(path.read_text())
        assert data["files"] == ["src/app.py"]
        assert data["estimatedDuration"] == 60
        assert "declaredAt" in data
        assert declaration.operation == FileOperation.EDIT

    def test_overlap_with_other_session_is_rejected(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["src/app.py", "README.md"], reason="first")

        with pytest.raises(CoordinationConflictError) as exc_info:
            store.declare("cursor", "s2", ["./src/app.py", "other.py"])

        conflicts = exc_info.value.conflicts
        assert len(conflicts) == 1
        assert conflicts[0].file == "src/app.py"
        assert conflicts[0].agent == "claude"
        assert conflicts[0].session == "s1"
        assert conflicts[0].reason == "first"
        assert store.find("cursor", "s2") is None

    def test_disjoint_sessions_coexist(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])
        store.declare("cursor", "s2", ["b.txt"])

        assert len(store.active_declarations()) == 2

    def test_redeclare_same_session(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])
        store.declare("claude", "s1", ["b.txt"])

        assert store.find("claude", "s1").files == ["b.txt"]

    def test_append_keeps_existing_files(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])
        store.declare("claude", "s1", ["b.txt", "a.txt"], append=True)

        assert store.find("claude", "s1").files == ["a.txt", "b.txt"]

    def test_empty_declaration(self, store: FileCoordinationLedger):
        with pytest.raises(ValueError):
            store.declare("claude", "s1", ["", "  "])

    def test_unreadable_record_is_ignored(self, store: FileCoordinationLedger):
        store.active_dir.mkdir(parents=True)
        (store.active_dir / "broken-s9.json").write_text("{not json")
        store.declare("claude", "s1", ["a.txt"])

        assert [d.session for d in store.active_declarations()] == ["s1"]


class TestQueries:
    """Tests for availability checks and audits."""

    def test_check_availability(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])

        assert store.check_availability(["a.txt", "b.txt"]) == {"a.txt": False, "b.txt": True}
        assert store.check_availability(["a.txt"], session="s1") == {"a.txt": True}

    def test_audit(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])
        store.declare("cursor", "s2", ["shared.txt"])

        audit = store.audit("s1", ["a.txt", "b.txt", "shared.txt"])

        assert audit.declared_files == ["a.txt"]
        assert audit.undeclared_files == ["b.txt", "shared.txt"]
        assert [c.session for c in audit.held_by_others] == ["s2"]
        assert audit.clean is False

    def test_clean_audit(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt", "b.txt"])

        assert store.audit("s1", ["a.txt"]).clean is True


class TestRelease:
    """Tests for releasing declarations."""

    def test_release_archives_record(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])

        archived = store.release("claude", "s1")

        assert archived.parent == store.completed_dir
        assert archived.name.startswith("claude-s1-")
        assert json.loads(archived.read_text())["releasedAt"] is not None
        assert store.find("claude", "s1") is None
        assert store.check_availability(["a.txt"]) == {"a.txt": True}

    def test_release_missing(self, store: FileCoordinationLedger):
        with pytest.raises(MissingResourceError):
            store.release("claude", "nope")

    def test_release_session(self, store: FileCoordinationLedger):
        store.declare("claude", "s1", ["a.txt"])
        store.declare("cursor", "s2", ["b.txt"])

        assert len(store.release_session("s1")) == 1
        assert store.release_session("s1") == []
        assert [d.session for d in store.active_declarations()] == ["s2"]
