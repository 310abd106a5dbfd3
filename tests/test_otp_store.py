import threading
from datetime import timedelta

import pytest

from app.core.locking import KeyedLock
from app.models import OTPRecord
from app.services import InMemoryOTPStore
from app.services import exceptions

PHONE = "+255712345678"


def _record(code: str = "123456", provider: str = "beem") -> OTPRecord:
    return OTPRecord(phone=PHONE, code=code, provider_used=provider)


def test_put_stamps_timestamps_and_resets_state(store, clock):
    stored = store.put(_record())

    assert stored.created_at == clock.now
    assert stored.expires_at == clock.now + timedelta(minutes=10)
    assert stored.attempts == 0
    assert stored.verified is False

    fetched = store.get(PHONE)
    assert fetched == stored


def test_get_missing_returns_none(store):
    assert store.get("+255700000000") is None


def test_put_overwrites_previous_record(store, clock):
    store.put(_record(code="111111", provider="beem"))
    store.increment_attempts(PHONE)
    clock.advance(minutes=1)
    store.put(_record(code="222222", provider="twilio"))

    record = store.get(PHONE)
    assert record.code == "222222"
    assert record.provider_used == "twilio"
    assert record.attempts == 0
    assert record.created_at == clock.now


def test_increment_attempts_counts_up(store):
    store.put(_record())
    assert store.increment_attempts(PHONE) == 1
    assert store.increment_attempts(PHONE) == 2
    assert store.get(PHONE).attempts == 2


def test_increment_attempts_on_missing_record(store):
    with pytest.raises(exceptions.NotFoundError):
        store.increment_attempts(PHONE)


def test_mark_verified_happens_once(store, clock):
    store.put(_record())
    assert store.mark_verified(PHONE) is True
    assert store.mark_verified(PHONE) is False

    record = store.get(PHONE)
    assert record.verified is True
    assert record.verified_at == clock.now


def test_mark_verified_on_missing_record(store):
    assert store.mark_verified(PHONE) is False


def test_delete_removes_record(store):
    store.put(_record())
    store.delete(PHONE)
    assert store.get(PHONE) is None
    store.delete(PHONE)


def test_created_at_never_goes_backwards(memory_store, clock):
    first = memory_store.put(_record())
    clock.advance(seconds=-30)
    second = memory_store.put(_record(code="654321"))
    assert second.created_at == first.created_at


def test_concurrent_increments_are_not_lost(store):
    store.put(_record())
    workers = 8
    per_worker = 5
    barrier = threading.Barrier(workers)

    def bump():
        barrier.wait()
        for _ in range(per_worker):
            store.increment_attempts(PHONE)

    threads = [threading.Thread(target=bump) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get(PHONE).attempts == workers * per_worker


def test_transaction_excludes_other_writers(clock):
    store = InMemoryOTPStore(clock=clock, lock=KeyedLock(wait_timeout=0.05))
    store.put(_record())
    inside = threading.Event()
    release = threading.Event()
    errors = []

    def hold():
        with store.transaction(PHONE):
            inside.set()
            release.wait(timeout=5)

    holder = threading.Thread(target=hold)
    holder.start()
    inside.wait(timeout=5)

    def contender():
        try:
            store.increment_attempts(PHONE)
        except exceptions.StoreError as exc:
            errors.append(exc)

    other = threading.Thread(target=contender)
    other.start()
    other.join()
    release.set()
    holder.join()

    assert len(errors) == 1
    assert store.get(PHONE).attempts == 0


def test_transaction_is_reentrant_for_the_holder(store):
    store.put(_record())
    with store.transaction(PHONE):
        assert store.increment_attempts(PHONE) == 1
        store.delete(PHONE)
    assert store.get(PHONE) is None


def test_guarded_writes_refuse_a_replaced_record(store, clock):
    seen = store.put(_record(code="111111"))
    clock.advance(seconds=30)
    store.put(_record(code="222222", provider="tigo"))

    assert store.mark_verified(PHONE, expected=seen) is False
    with pytest.raises(exceptions.StaleRecordError):
        store.increment_attempts(PHONE, expected=seen)
    assert store.delete(PHONE, expected=seen) is False

    current = store.get(PHONE)
    assert current.code == "222222"
    assert current.attempts == 0
    assert current.verified is False


def test_guarded_increment_refuses_an_outdated_attempt_count(store):
    seen = store.put(_record())
    store.increment_attempts(PHONE)

    with pytest.raises(exceptions.StaleRecordError):
        store.increment_attempts(PHONE, expected=seen)
    assert store.get(PHONE).attempts == 1
    assert store.increment_attempts(PHONE, expected=store.get(PHONE)) == 2
