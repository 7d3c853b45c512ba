"""
Tests for curve persistence and the shared curve state
"""

import json
import threading
import pytest
from unittest.mock import patch

from fancurve.control.curve import (
    CurveConfig,
    CurvePoint,
    InterpolationMode,
    default_config,
    generate_curve_data
)
from fancurve.control.state import CurveState, ReadWriteLock
from fancurve.control.storage import ConfigRepository, CurveRepository
from fancurve.errors import ConfigIOError

# Test Data
USER_CONFIG = CurveConfig(
    points=[CurvePoint(40, 20), CurvePoint(70, 90)],
    mode=InterpolationMode.HARDCUT
)


@pytest.fixture
def config_repo(tmp_path):
    """Create a config repository in a temporary directory"""
    return ConfigRepository(str(tmp_path / "config.json"))


@pytest.fixture
def curve_repo(tmp_path):
    """Create a curve repository in a temporary directory"""
    return CurveRepository(str(tmp_path / "curve.json"))


# Repositories

def test_config_round_trip(config_repo):
    """Test saving and loading a configuration"""
    config_repo.save(USER_CONFIG)
    assert config_repo.load() == USER_CONFIG


def test_config_file_format(config_repo):
    """Test the file is pretty-printed JSON with API field names"""
    config_repo.save(USER_CONFIG)
    with open(config_repo.path) as f:
        text = f.read()
    assert text.startswith("{\n  \"points\"")
    assert json.loads(text) == {
        "points": [
            {"temperature": 40, "fanSpeed": 20},
            {"temperature": 70, "fanSpeed": 90}
        ],
        "interpolationMode": "hardcut"
    }


def test_save_overwrites(config_repo):
    """Test every save fully replaces the document"""
    config_repo.save(USER_CONFIG)
    config_repo.save(CurveConfig(points=[], mode=InterpolationMode.GRADUAL))
    loaded = config_repo.load()
    assert loaded.points == []
    assert loaded.mode is InterpolationMode.GRADUAL


def test_save_creates_directory(tmp_path):
    """Test parent directories are created on save"""
    repo = ConfigRepository(str(tmp_path / "state" / "config.json"))
    repo.save(USER_CONFIG)
    assert repo.exists()


def test_load_missing(config_repo):
    """Test loading a missing file"""
    assert not config_repo.exists()
    with pytest.raises(ConfigIOError, match="No saved document"):
        config_repo.load()
    assert config_repo.load_or_none() is None


def test_load_corrupt(config_repo):
    """Test unparsable and invalid documents"""
    with open(config_repo.path, "w") as f:
        f.write("{not json")
    with pytest.raises(ConfigIOError, match="Failed to read"):
        config_repo.load()

    with open(config_repo.path, "w") as f:
        json.dump({"points": [{"temperature": 30, "fanSpeed": 300}]}, f)
    with pytest.raises(ConfigIOError, match="Invalid document"):
        config_repo.load()
    assert config_repo.load_or_none() is None


def test_save_failure(tmp_path):
    """Test write errors are reported as ConfigIOError"""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    repo = ConfigRepository(str(blocker / "config.json"))
    with pytest.raises(ConfigIOError, match="Failed to write"):
        repo.save(USER_CONFIG)


def test_curve_round_trip(curve_repo):
    """Test saving and loading a generated curve"""
    curve = generate_curve_data(default_config())
    curve_repo.save(curve)
    loaded = curve_repo.load()
    assert loaded.samples == curve.samples
    assert loaded.control_points == curve.control_points

    with open(curve_repo.path) as f:
        data = json.load(f)
    assert len(data["curveData"]) == 101
    assert data["controlPoints"][2] == {"temperature": 80, "fanSpeed": 100}


# Curve state

def test_state_defaults_without_saved_config(config_repo):
    """Test the default curve is used when nothing is saved"""
    state = CurveState(config_repo)
    assert state.get() == default_config()
    assert not state.persisted
    assert not config_repo.exists()


def test_state_loads_saved_config(config_repo):
    """Test startup picks up the persisted curve"""
    config_repo.save(USER_CONFIG)
    state = CurveState(config_repo)
    assert state.get() == USER_CONFIG
    assert state.persisted


def test_state_falls_back_on_corrupt_file(config_repo):
    """Test a corrupt file does not prevent startup"""
    with open(config_repo.path, "w") as f:
        f.write("garbage")
    state = CurveState(config_repo)
    assert state.get() == default_config()


def test_state_falls_back_on_oversized_number(config_repo):
    """Test a number too large for a float is treated as an invalid file"""
    with open(config_repo.path, "w") as f:
        f.write('{"points": [{"temperature": 1' + "0" * 400 + ', "fanSpeed": 20}]}')
    with pytest.raises(ConfigIOError, match="Invalid document"):
        config_repo.load()
    state = CurveState(config_repo)
    assert state.get() == default_config()



def test_state_set_persists(config_repo):
    """Test set replaces the value and writes it"""
    state = CurveState(config_repo)
    state.set(USER_CONFIG)
    assert state.get() == USER_CONFIG
    assert config_repo.load() == USER_CONFIG


def test_state_returns_copies(config_repo):
    """Test callers cannot mutate the shared value"""
    state = CurveState(config_repo)
    config = state.get()
    config.points.append(CurvePoint(99, 99))
    assert len(state.get().points) == 3

    update = CurveConfig(points=[CurvePoint(10, 10)])
    state.set(update)
    update.points.clear()
    assert len(state.get().points) == 1


def test_state_set_failure_keeps_new_value(config_repo):
    """Test a failed save still updates the running curve"""
    state = CurveState(config_repo)
    with patch.object(config_repo, "save", side_effect=ConfigIOError("disk full")):
        with pytest.raises(ConfigIOError):
            state.set(USER_CONFIG)
    assert state.get() == USER_CONFIG
    assert not state.persisted


def test_get_or_create_default_persists(config_repo):
    """Test first access writes the default curve"""
    state = CurveState(config_repo)
    assert state.get_or_create_default() == default_config()
    assert config_repo.load() == default_config()
    assert state.persisted


def test_get_or_create_default_keeps_saved(config_repo):
    """Test an existing curve is returned and not rewritten"""
    config_repo.save(USER_CONFIG)
    state = CurveState(config_repo)
    with patch.object(config_repo, "save") as mock_save:
        assert state.get_or_create_default() == USER_CONFIG
        mock_save.assert_not_called()


def test_get_or_create_default_save_failure(config_repo):
    """Test a failed default save still returns the curve"""
    state = CurveState(config_repo)
    with patch.object(config_repo, "save", side_effect=ConfigIOError("read-only")):
        assert state.get_or_create_default() == default_config()
    assert not state.persisted


def test_state_concurrent_access(config_repo):
    """Test readers and writers interleave without errors"""
    state = CurveState(config_repo)
    configs = [
        CurveConfig(points=[CurvePoint(t, t)], mode=InterpolationMode.GRADUAL)
        for t in range(20)
    ]
    errors = []

    def writer():
        for config in configs:
            state.set(config)

    def reader():
        try:
            for _ in range(200):
                config = state.get()
                assert len(config.points) in (1, 3)
        except AssertionError as e:
            errors.append(e)

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert not errors
    assert state.get() == configs[-1]
    assert config_repo.load() == configs[-1]


# Read/write lock

def test_rwlock_allows_concurrent_readers():
    """Test two readers can hold the lock at once"""
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=5)

    def reader():
        with lock.read_locked():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert not inside.broken


def test_rwlock_writer_excludes_readers():
    """Test a reader waits for an active writer"""
    lock = ReadWriteLock()
    events = []
    writer_in = threading.Event()
    release = threading.Event()

    def writer():
        with lock.write_locked():
            writer_in.set()
            release.wait(5)
            events.append("writer done")

    def reader():
        with lock.read_locked():
            events.append("reader")

    w = threading.Thread(target=writer)
    w.start()
    writer_in.wait(5)
    r = threading.Thread(target=reader)
    r.start()
    r.join(timeout=0.1)
    assert events == []
    release.set()
    w.join(timeout=5)
    r.join(timeout=5)
    assert events == ["writer done", "reader"]
