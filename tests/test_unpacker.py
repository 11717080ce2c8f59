from dataclasses import dataclass
from pathlib import Path

from deploystore import (
    AUTHORING,
    PACKAGED,
    BundleUnpacker,
    DiagnosticLog,
    Encodable,
    HostEnvironment,
    LoadStatus,
    LogConfig,
    Manifest,
    ObjectStore,
    PickleCodec,
    Severity,
    StoreConfig,
)


@dataclass
class Level(Encodable):
    number: int = 0


def author_saves(make_store, *pairs):
    store = make_store(AUTHORING)
    for name, value in pairs:
        assert store.save(Level(value), name, True).success
    return store


def runtime_files(data_root: Path) -> dict:
    return {p.name: p.read_bytes() for p in data_root.glob("DS_*.bytes")}


class MemoryBundle:
    def __init__(self, blobs):
        self.blobs = blobs
        self.reads = []

    def read(self, logical_name):
        self.reads.append(logical_name)
        return self.blobs.get(logical_name)


def test_missing_tracker_returns_false(make_store, data_root):
    store = make_store(PACKAGED)
    assert store.unpack_persistent_saves() is False
    record = store.log.parse_records()[-1]
    assert record.severity is Severity.WARNING
    assert "nothing to unpack yet" in record.message
    assert runtime_files(data_root) == {}


def test_unpack_copies_bundled_bytes_verbatim(make_store, project_root, data_root):
    author_saves(make_store, ("A", 27), ("B", 3))
    packaged = make_store(PACKAGED)

    assert packaged.unpack_persistent_saves() is True
    files = runtime_files(data_root)
    assert set(files) == {"DS_A.bytes", "DS_B.bytes"}
    assert files["DS_A.bytes"] == (project_root / "Resources" / "DS_A.bytes").read_bytes()

    report = packaged.unpacker.last_report
    assert report.copied == ["A", "B"]
    assert report.complete


def test_unpack_is_idempotent(make_store, data_root):
    author_saves(make_store, ("A", 1), ("B", 2), ("A", 3))
    packaged = make_store(PACKAGED)

    packaged.unpack_persistent_saves()
    once = runtime_files(data_root)
    packaged.unpack_persistent_saves()
    assert runtime_files(data_root) == once


def test_partial_unpack_skips_missing_and_continues(make_store, project_root, data_root):
    author_saves(make_store, ("A", 1), ("B", 2), ("C", 3))
    (project_root / "Resources" / "DS_B.bytes").unlink()
    packaged = make_store(PACKAGED)

    assert packaged.unpack_persistent_saves() is True
    assert set(runtime_files(data_root)) == {"DS_A.bytes", "DS_C.bytes"}
    report = packaged.unpacker.last_report
    assert report.missing == ["B"]
    assert not report.complete


def test_corrupt_bundled_tracker_aborts(make_store, project_root, data_root):
    author_saves(make_store, ("A", 1))
    (project_root / "Resources" / "PersistentTracker.bytes").write_bytes(b"junk")
    packaged = make_store(PACKAGED)

    assert packaged.unpack_persistent_saves() is False
    assert runtime_files(data_root) == {}
    assert packaged.log.parse_records()[-1].severity is Severity.ERROR


def test_persistent_load_in_packaged_mode_unpacks_first(make_store):
    author_saves(make_store, ("A", 27))
    packaged = make_store(PACKAGED)

    assert not packaged.unpacker.has_run
    result = packaged.load("A", Level, True)
    assert result.status is LoadStatus.FOUND
    assert result.value == Level(27)
    assert packaged.unpacker.has_run


def test_session_unpack_runs_once(make_store, data_root):
    author_saves(make_store, ("A", 1))
    packaged = make_store(PACKAGED)
    assert packaged.start_session() is True

    # A runtime edit made during the session survives later persistent loads.
    packaged.save(Level(99), "A", True)
    assert packaged.start_session() is True
    assert packaged.load("A", Level, True).value == Level(99)


def test_start_session_is_noop_while_authoring(make_store, data_root):
    author_saves(make_store, ("A", 1))
    store = make_store(AUTHORING)
    assert store.start_session() is False
    assert runtime_files(data_root) == {}


def test_custom_bundle_source(project_root, data_root):
    codec = PickleCodec()
    bundle = MemoryBundle(
        {
            "PersistentTracker": codec.serialize(Manifest(["X"])),
            "DS_X": codec.serialize(Level(5)),
        }
    )
    env = HostEnvironment(mode=PACKAGED, project_root=project_root, data_root=data_root)
    log = DiagnosticLog(env.log_path(), LogConfig(console_enabled=False))
    unpacker = BundleUnpacker(env, log, bundle=bundle)

    assert unpacker.ensure_unpacked() is True
    assert codec.deserialize((data_root / "DS_X.bytes").read_bytes(), Level) == Level(5)


def test_packaged_save_then_load_returns_the_saved_value(make_store):
    author_saves(make_store, ("A", 1))
    packaged = make_store(PACKAGED)

    assert packaged.save(Level(99), "A", True).success
    assert packaged.unpacker.has_run
    assert packaged.load("A", Level, True).value == Level(99)


def test_runtime_edit_survives_a_new_session(make_store):
    author_saves(make_store, ("A", 1), ("B", 2))
    first = make_store(PACKAGED)
    assert first.start_session() is True
    first.save(Level(42), "A", True)

    second = make_store(PACKAGED)
    assert second.start_session() is True
    assert second.load("A", Level, True).value == Level(42)
    assert second.load("B", Level, True).value == Level(2)
    report = second.unpacker.last_report
    assert report.kept == ["A", "B"]
    assert report.copied == []


def test_new_bundled_names_are_unpacked_next_to_existing_ones(make_store, data_root):
    author_saves(make_store, ("A", 1))
    make_store(PACKAGED).start_session()

    author_saves(make_store, ("B", 2))
    packaged = make_store(PACKAGED)
    packaged.start_session()
    assert packaged.unpacker.last_report.copied == ["B"]
    assert set(runtime_files(data_root)) == {"DS_A.bytes", "DS_B.bytes"}


def test_unusable_data_root_is_reported_not_raised(make_store, project_root, tmp_path):
    author_saves(make_store, ("A", 1))
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    config = StoreConfig()
    env = HostEnvironment(config, mode=PACKAGED, project_root=project_root, data_root=blocker / "data")
    log = DiagnosticLog(tmp_path / "diag.txt", LogConfig(console_enabled=False))

    with ObjectStore(config, environment=env, log=log) as store:
        loaded = store.load("A", Level, True)
        saved = store.save(Level(2), "A", True)
        assert store.start_session() is False

    assert loaded.status is LoadStatus.IO_ERROR
    assert saved.code == "IO_ERROR"
    errors = [r.message for r in log.parse_records() if r.severity is Severity.ERROR]
    assert any("unusable" in m for m in errors)


def test_tracker_with_non_list_names_aborts_unpack(project_root, data_root):
    codec = PickleCodec()
    bundle = MemoryBundle({"PersistentTracker": codec.serialize(Manifest(None))})
    env = HostEnvironment(StoreConfig(), mode=PACKAGED, project_root=project_root, data_root=data_root)
    log = DiagnosticLog(env.log_path(), LogConfig(console_enabled=False))

    assert BundleUnpacker(env, log, bundle=bundle).unpack_persistent_saves() is False
    assert log.parse_records()[-1].severity is Severity.ERROR


def test_tracker_entries_that_escape_the_bundle_are_refused(project_root, data_root):
    codec = PickleCodec()
    bundle = MemoryBundle(
        {
            "PersistentTracker": codec.serialize(Manifest(["../x", "X"])),
            "DS_X": codec.serialize(Level(5)),
        }
    )
    env = HostEnvironment(StoreConfig(), mode=PACKAGED, project_root=project_root, data_root=data_root)
    log = DiagnosticLog(env.log_path(), LogConfig(console_enabled=False))
    unpacker = BundleUnpacker(env, log, bundle=bundle)

    assert unpacker.unpack_persistent_saves() is True
    assert unpacker.last_report.failed == ["../x"]
    assert unpacker.last_report.copied == ["X"]
    assert "DS_../x" not in bundle.reads
    assert set(runtime_files(data_root)) == {"DS_X.bytes"}
