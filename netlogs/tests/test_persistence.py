import json
import time
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from netlogs.core.errors import DuplicateTimestampError, StorageTimeoutError, StorageUnavailableError
from netlogs.models.network_log import NetworkLog, SCHEMA_VERSION
from netlogs.services.persistence import PersistenceCoordinator, entry_to_row
from netlogs.services.validation import validate_entry
from netlogs.tests.factories import minimal_entry, sample_entry

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def parse(raw):
    return validate_entry(raw, now=NOW)


def row_count(session_factory):
    session = session_factory()
    try:
        return session.execute(select(func.count(NetworkLog.id))).scalar()
    finally:
        session.close()


def test_entry_to_row_flattens_and_encodes():
    entry = parse(sample_entry('2026-02-01T08:30:00+01:00'))
    row = entry_to_row(entry)
    assert row.timestamp == '2026-02-01T07:30:00.000000Z'
    assert row.schema_version == SCHEMA_VERSION
    assert row.nq_download_mbps == 100
    assert row.st_server_country == 'Netherlands'
    ping = json.loads(row.ping_results)
    assert ping[0]['packetLossPercent'] == 0.0
    assert ping[0]['rttStats']['avg'] == 10.2
    assert json.loads(row.mtr_results)[0]['hops'][0]['lossPercent'] == 0.0


def test_sub_millisecond_instants_keep_distinct_keys():
    first = entry_to_row(parse(minimal_entry('2026-02-01T07:30:00.0001Z')))
    second = entry_to_row(parse(minimal_entry('2026-02-01T07:30:00.0009Z')))
    assert first.timestamp == '2026-02-01T07:30:00.000100Z'
    assert second.timestamp == '2026-02-01T07:30:00.000900Z'


def test_persist_writes_every_row(session_factory, ctx):
    coordinator = PersistenceCoordinator(session_factory)
    batch = [parse(minimal_entry(f'2026-02-01T0{i}:00:00Z')) for i in range(3)]
    assert coordinator.persist(batch, ctx) == 3
    assert row_count(session_factory) == 3


def test_constraint_violation_rolls_back_whole_batch(session_factory, ctx):
    coordinator = PersistenceCoordinator(session_factory)
    coordinator.persist([parse(minimal_entry('2026-02-01T00:00:00Z'))], ctx)

    batch = [
        parse(minimal_entry('2026-02-01T01:00:00Z')),
        parse(minimal_entry('2026-02-01T00:00:00Z')),
    ]
    with pytest.raises(DuplicateTimestampError):
        coordinator.persist(batch, ctx)
    assert row_count(session_factory) == 1


def test_store_failure_is_retryable_storage_error(session_factory, ctx):
    coordinator = PersistenceCoordinator(session_factory)
    failure = OperationalError('INSERT', {}, Exception('disk I/O error'))
    with patch.object(PersistenceCoordinator, '_commit', side_effect=failure):
        with pytest.raises(StorageUnavailableError) as excinfo:
            coordinator.persist([parse(minimal_entry('2026-02-01T00:00:00Z'))], ctx)
    assert excinfo.value.retryable
    assert excinfo.value.to_dict()['category'] == 'storage_unavailable'
    assert row_count(session_factory) == 0


def test_commit_timeout_is_storage_timeout(session_factory, ctx):
    coordinator = PersistenceCoordinator(session_factory, timeout=0.05)
    with patch.object(PersistenceCoordinator, '_commit', side_effect=lambda rows: time.sleep(0.5)):
        with pytest.raises(StorageTimeoutError):
            coordinator.persist([parse(minimal_entry('2026-02-01T00:00:00Z'))], ctx)
