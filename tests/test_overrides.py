"""Tests for override detection."""
import pytest

from config_packager.config_engine import (
    DiffEngine,
    DiffKind,
    OverrideDetector,
    Package,
    PackageStatus,
)
from config_packager.config_store import StorageError


class MemoryStorage:
    """Dict-backed storage; names in `broken` fail to read."""

    def __init__(self, documents=None, broken=()):
        self.documents = dict(documents or {})
        self.broken = set(broken)
        self.writes = []

    def read(self, name):
        if name in self.broken:
            raise StorageError(f"cannot read {name}")
        return self.documents.get(name)

    def write(self, name, document):
        self.writes.append(name)
        self.documents[name] = document

    def list(self):
        return sorted(self.documents)


class CountingDiffEngine(DiffEngine):
    """DiffEngine that counts diff calls."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def diff(self, packaged, active):
        self.calls += 1
        return super().diff(packaged, active)


@pytest.fixture
def scenario():
    """Items a (unchanged) and b (drifted) in package P."""
    active = MemoryStorage({"a": {"x": 1}, "b": {"y": 2}})
    packaged = MemoryStorage({"a": {"x": 1}, "b": {"y": 3}})
    package = Package(machine_name="P", name="P", config=["a", "b"])
    return OverrideDetector(active, packaged), package


class TestDetect:
    """Tests for OverrideDetector.detect."""

    def test_shallow(self, scenario):
        detector, package = scenario

        assert detector.detect(package) == ["b"]

    def test_deep(self, scenario):
        detector, package = scenario

        assert detector.detect(package, deep=True) == ["b"]

    def test_shallow_skips_line_diff(self):
        engine = CountingDiffEngine()
        active = MemoryStorage({"a": {"x": 1}, "b": {"y": 2}})
        packaged = MemoryStorage({"a": {"x": 1}, "b": {"y": 3}})
        detector = OverrideDetector(active, packaged, engine)
        package = Package(machine_name="P", name="P", config=["a", "b"])

        assert detector.detect(package) == ["b"]
        assert engine.calls == 0

        assert detector.detect(package, deep=True) == ["b"]
        assert engine.calls > 0

    def test_no_drift(self):
        documents = {"a": {"x": 1}, "b": {"y": 2, "z": [1, 2]}}
        detector = OverrideDetector(MemoryStorage(documents), MemoryStorage(documents))
        package = Package(machine_name="P", name="P", config=["a", "b"])

        assert detector.detect(package) == []
        assert detector.detect(package, deep=True) == []

    def test_key_order_is_not_drift(self):
        active = MemoryStorage({"a": {"x": 1, "y": 2}})
        packaged = MemoryStorage({"a": {"y": 2, "x": 1}})
        package = Package(machine_name="P", name="P", config=["a"])

        assert OverrideDetector(active, packaged).detect(package) == []

    def test_missing_packaged_counts_as_override(self):
        detector = OverrideDetector(MemoryStorage({"a": {"x": 1}}), MemoryStorage())
        package = Package(machine_name="P", name="P", config=["a"])

        assert detector.detect(package) == ["a"]
        assert detector.detect(package, deep=True) == ["a"]

    def test_read_failure_skips_item(self):
        active = MemoryStorage({"a": {"x": 1}, "b": {"y": 2}}, broken=["a"])
        packaged = MemoryStorage({"a": {"x": 2}, "b": {"y": 3}})
        package = Package(machine_name="P", name="P", config=["a", "b"])

        detector = OverrideDetector(active, packaged)

        assert detector.detect(package) == ["b"]
        assert [o.name for o in detector.inspect(package)] == ["b"]

    def test_result_in_package_order(self):
        active = MemoryStorage({"z": {"v": 1}, "a": {"v": 1}})
        packaged = MemoryStorage({"z": {"v": 2}, "a": {"v": 2}})
        package = Package(machine_name="P", name="P", config=["z", "a"])

        assert OverrideDetector(active, packaged).detect(package) == ["z", "a"]


class TestInspect:
    """Tests for OverrideDetector.inspect."""

    def test_scenario_rows(self, scenario):
        detector, package = scenario

        overrides = detector.inspect(package)

        assert len(overrides) == 1
        rows = overrides[0].rows
        assert [(r.kind, r.text) for r in rows] == [
            (DiffKind.REMOVED, "y: 3"),
            (DiffKind.ADDED, "y: 2"),
        ]
        assert overrides[0].message == "2 changed line(s)"

    def test_missing_flagged(self):
        detector = OverrideDetector(MemoryStorage({"a": {"x": 1}}), MemoryStorage())
        package = Package(machine_name="P", name="P", config=["a"])

        override = detector.inspect(package)[0]

        assert override.missing
        assert override.rows == []
        assert "not exported" in override.message

    def test_uses_context_window(self):
        active = MemoryStorage({"a": {"k1": 1, "k2": 2, "k3": 3, "k4": 4}})
        packaged = MemoryStorage({"a": {"k1": 1, "k2": 2, "k3": 0, "k4": 4}})
        package = Package(machine_name="P", name="P", config=["a"])

        detector = OverrideDetector(active, packaged, DiffEngine(context_lines=0))

        rows = detector.inspect(package)[0].rows
        assert [r.marker for r in rows] == ["-", "+"]


class TestRefreshStatus:
    """Tests for status derivation."""

    def test_overridden(self, scenario):
        detector, package = scenario

        assert detector.refresh_status(package) == PackageStatus.OVERRIDDEN
        assert package.status == PackageStatus.OVERRIDDEN

    def test_default(self):
        documents = {"a": {"x": 1}}
        detector = OverrideDetector(MemoryStorage(documents), MemoryStorage(documents))
        package = Package(machine_name="P", name="P", config=["a"])

        assert detector.refresh_status(package) == PackageStatus.DEFAULT

    def test_excluded_wins(self, scenario):
        detector, package = scenario
        package.excluded = True

        assert detector.refresh_status(package) == PackageStatus.NO_EXPORT
