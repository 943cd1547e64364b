import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import MutableClock, jakarta  # noqa: E402
from xeyla.infra.store import RecordStore  # noqa: E402


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(jakarta(2026, 1, 13, 9, 30, 12))


@pytest.fixture
def store(tmp_path: Path, clock: MutableClock) -> RecordStore:
    record_store = RecordStore(tmp_path / "xeyla.db", clock=clock)
    yield record_store
    record_store.close()
