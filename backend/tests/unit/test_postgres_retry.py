import asyncpg
import pytest

from studio.domain.errors import TransientStoreError, ValidationError
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra import postgres
from studio.infra.postgres import retry_read, store_errors


@pytest.mark.asyncio
async def test_read_retried_once_after_transient_failure():
    calls = []

    async def _read(value):
        calls.append(value)
        if len(calls) == 1:
            raise TransientStoreError()
        return value * 2

    assert await retry_read(_read, 21) == 42
    assert calls == [21, 21]


@pytest.mark.asyncio
async def test_read_gives_up_after_retry_budget():
    calls = []

    async def _read():
        calls.append(1)
        raise TransientStoreError()

    with pytest.raises(TransientStoreError):
        await retry_read(_read)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried():
    calls = []

    async def _read():
        calls.append(1)
        raise ValidationError("bad")

    with pytest.raises(ValidationError):
        await retry_read(_read)
    assert calls == [1]


@pytest.mark.parametrize("exc", [ConnectionResetError("reset"), asyncpg.InterfaceError("closed"), TimeoutError()])
def test_store_errors_translates_connection_failures(exc):
    with pytest.raises(TransientStoreError) as excinfo:
        with store_errors():
            raise exc
    assert excinfo.value.status_code == 503
    assert excinfo.value.__cause__ is exc


def test_store_errors_leaves_constraint_errors_alone():
    with pytest.raises(asyncpg.UniqueViolationError):
        with store_errors():
            raise asyncpg.UniqueViolationError("duplicate")


@pytest.mark.asyncio
async def test_memory_mode_reports_no_pool():
    assert await postgres.get_pool_or_none() is None


@pytest.mark.asyncio
async def test_unreachable_database_does_not_fall_back_to_memory(monkeypatch):
    monkeypatch.setattr(postgres, "_memory_only", False)

    with pytest.raises(TransientStoreError):
        await postgres.get_pool_or_none()
    with pytest.raises(TransientStoreError):
        await ClassTemplateRepository().list()


@pytest.mark.asyncio
async def test_pool_creation_failure_is_reported_as_transient(monkeypatch):
    async def _refuse():
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(postgres, "_memory_only", False)
    monkeypatch.setattr(postgres, "init_pool", _refuse)

    with pytest.raises(TransientStoreError) as excinfo:
        await postgres.get_pool_or_none()
    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)
