"""Unit tests for StageRunner."""

import json
from unittest.mock import MagicMock

import pytest

from fundtracker_common import keys
from fundtracker_common.exceptions import DeliveryError, RateLimitError
from fundtracker_common.models import notify_subject
from fundtracker_common.queue import (
    LeaseManager,
    QueueName,
    QueueStore,
    RetryController,
    StageRunner,
    StageStats,
)

URLS = [f"https://example.com/opportunities/call-{i}" for i in range(3)]


@pytest.fixture
def queue_store(memory_store, clock):
    return QueueStore(memory_store, clock=clock)


@pytest.fixture
def leases(memory_store, clock):
    return LeaseManager(memory_store, clock=clock)


@pytest.fixture
def retry(queue_store, leases, clock):
    return RetryController(queue_store, leases, clock=clock)


@pytest.fixture
def make_runner(queue_store, leases, retry):
    def _make(batch_size=10, max_attempts=3, delay_ms=0, sleep=None, queue=QueueName.SUMMARIZE):
        return StageRunner(
            "Test",
            queue_store,
            leases,
            retry,
            queue,
            batch_size=batch_size,
            max_attempts=max_attempts,
            delay_ms=delay_ms,
            sleep=sleep or MagicMock(),
        )

    return _make


@pytest.fixture
def entries(queue_store, clock):
    keys = []
    for url in URLS:
        keys.append(queue_store.enqueue(QueueName.SUMMARIZE, url, {"url": url}))
        clock.advance(1)
    return keys


class TestStageStats:
    def test_to_dict_rounds_duration(self):
        stats = StageStats(processed=2, succeeded=1, failed=1, duration_ms=12.3456)
        assert stats.to_dict() == {
            "processed": 2,
            "succeeded": 1,
            "failed": 1,
            "skipped": 0,
            "duration_ms": 12.35,
        }


class TestStageRunner:
    def test_all_succeed(self, make_runner, entries, queue_store, leases):
        handler = MagicMock()

        stats = make_runner().run(handler)

        assert stats.processed == 3
        assert stats.succeeded == 3
        assert stats.failed == 0
        assert stats.skipped == 0
        assert [c.args[0] for c in handler.call_args_list] == entries
        assert queue_store.list_pending(QueueName.SUMMARIZE) == []
        assert all(leases.holder_since(url) is None for url in URLS)

    def test_empty_queue(self, make_runner):
        handler = MagicMock()
        stats = make_runner().run(handler)
        assert stats.processed == 0
        handler.assert_not_called()

    def test_respects_batch_size(self, make_runner, entries, queue_store):
        stats = make_runner(batch_size=2).run(MagicMock())

        assert stats.processed == 2
        assert queue_store.list_pending(QueueName.SUMMARIZE) == entries[2:]

    def test_failing_job_does_not_stop_batch(self, make_runner, entries, queue_store):
        def handler(entry_key, job):
            if job["url"] == URLS[1]:
                raise ValueError("bad page")

        stats = make_runner().run(handler)

        assert stats.succeeded == 2
        assert stats.failed == 1
        job = queue_store.get_job(entries[1])
        assert job["attempts"] == 1
        assert job["error"] == "bad page"

    def test_exception_without_message_records_type(self, make_runner, entries, queue_store):
        def handler(entry_key, job):
            raise KeyError

        make_runner(batch_size=1).run(handler)

        assert queue_store.get_job(entries[0])["error"] == "KeyError"

    def test_exhausted_job_is_dead_lettered(self, make_runner, entries, retry, queue_store):
        runner = make_runner(batch_size=1, max_attempts=2)
        handler = MagicMock(side_effect=DeliveryError("HTTP 500", status_code=500))

        runner.run(handler)
        runner.run(handler)

        assert queue_store.get_job(entries[0]) is None
        dead = retry.get_dead_letter(QueueName.SUMMARIZE, URLS[0])
        assert dead.attempts == 2
        assert dead.last_error == "HTTP 500"

    def test_rate_limit_releases_without_spending_attempt(
        self, make_runner, entries, queue_store, leases
    ):
        handler = MagicMock(side_effect=RateLimitError("2.5"))

        stats = make_runner(batch_size=1).run(handler)

        assert stats.skipped == 1
        assert stats.failed == 0
        assert queue_store.get_job(entries[0])["attempts"] == 0
        assert leases.holder_since(URLS[0]) is None

    def test_claimed_subject_is_skipped(self, make_runner, entries, leases, queue_store):
        leases.claim(URLS[0])
        handler = MagicMock()

        stats = make_runner().run(handler)

        assert stats.processed == 3
        assert stats.skipped == 1
        assert stats.succeeded == 2
        assert queue_store.get_job(entries[0]) is not None
        assert leases.holder_since(URLS[0]) is not None

    def test_vanished_job_is_skipped_silently(self, make_runner, entries, queue_store, monkeypatch):
        real_list = queue_store.list_pending

        def list_then_complete_elsewhere(queue, limit):
            keys = real_list(queue, limit)
            queue_store.delete_job(keys[0])
            return keys

        monkeypatch.setattr(queue_store, "list_pending", list_then_complete_elsewhere)
        handler = MagicMock()

        stats = make_runner().run(handler)

        assert stats.processed == 2
        assert handler.call_count == 2

    def test_subject_of(self, make_runner, queue_store, leases):
        url = URLS[0]
        queue_store.enqueue(QueueName.NOTIFY, url, {"opportunity": {"link": url}})
        leases.claim(url)

        stats = make_runner(queue=QueueName.NOTIFY).run(
            MagicMock(), subject_of=lambda job: job["opportunity"]["link"]
        )

        assert stats.skipped == 1

    def test_delay_after_each_success(self, make_runner, entries):
        sleep = MagicMock()

        make_runner(delay_ms=200, sleep=sleep).run(MagicMock())

        assert sleep.call_count == 3
        sleep.assert_called_with(0.2)

    def test_no_delay_after_failure(self, make_runner, entries):
        sleep = MagicMock()

        make_runner(delay_ms=200, sleep=sleep).run(MagicMock(side_effect=RuntimeError("x")))

        sleep.assert_not_called()

    def test_store_failure_while_resolving_propagates(self, make_runner, entries, retry):
        retry.complete = MagicMock(side_effect=ConnectionError("store down"))

        with pytest.raises(ConnectionError):
            make_runner().run(MagicMock())


class TestUnreadableEntries:
    @pytest.fixture
    def corrupt_then_good(self, memory_store, queue_store, clock):
        """A summarize entry that is not JSON, followed by a valid one."""
        bad_key = keys.build_entry_key(
            QueueName.SUMMARIZE.prefix, int(clock() * 1000), URLS[0]
        )
        memory_store.put(bad_key, "{not json", 60)
        clock.advance(1)
        good_key = queue_store.enqueue(QueueName.SUMMARIZE, URLS[1], {"url": URLS[1]})
        return bad_key, good_key

    def test_payload_without_subject_does_not_block_batch(
        self, make_runner, queue_store, retry, clock
    ):
        queue_store.enqueue(QueueName.SUMMARIZE, URLS[0], {"no_url": True})
        clock.advance(1)
        good_key = queue_store.enqueue(QueueName.SUMMARIZE, URLS[1], {"url": URLS[1]})
        handler = MagicMock()

        stats = make_runner().run(handler)

        handler.assert_called_once_with(good_key, {"url": URLS[1], "attempts": 0})
        assert stats.processed == 2
        assert stats.succeeded == 1
        assert stats.failed == 1
        assert queue_store.list_pending(QueueName.SUMMARIZE) == []
        dead = retry.get_dead_letter(QueueName.SUMMARIZE, URLS[0])
        assert json.loads(dead.job["raw"]) == {"no_url": True, "attempts": 0}
        assert dead.last_error == "'url'"

    def test_corrupt_json_is_dead_lettered(
        self, make_runner, corrupt_then_good, queue_store, retry, leases
    ):
        bad_key, good_key = corrupt_then_good
        handler = MagicMock()

        stats = make_runner().run(handler)

        handler.assert_called_once_with(good_key, {"url": URLS[1], "attempts": 0})
        assert stats.failed == 1
        assert queue_store.get_raw(bad_key) is None
        dead = retry.get_dead_letter(QueueName.SUMMARIZE, URLS[0])
        assert dead.job == {"entry_key": bad_key, "raw": "{not json"}
        assert leases.holder_since(URLS[0]) is None

    def test_corrupt_entry_is_gone_on_next_run(self, make_runner, corrupt_then_good):
        make_runner().run(MagicMock())

        stats = make_runner().run(MagicMock())

        assert stats.processed == 0

    @pytest.mark.parametrize("raw", ["[1, 2]", '"text"', '{"url": null}', '{"url": ""}'])
    def test_payload_shapes_without_subject(self, make_runner, memory_store, retry, clock, raw):
        bad_key = keys.build_entry_key(
            QueueName.SUMMARIZE.prefix, int(clock() * 1000), URLS[0]
        )
        memory_store.put(bad_key, raw, 60)
        handler = MagicMock()

        stats = make_runner().run(handler)

        handler.assert_not_called()
        assert stats.failed == 1
        assert retry.get_dead_letter(QueueName.SUMMARIZE, URLS[0]).job["raw"] == raw

    def test_notify_entry_without_link(self, make_runner, queue_store, retry):
        url = URLS[0]
        queue_store.enqueue(QueueName.NOTIFY, url, {"opportunity": {"title": "No link"}})
        handler = MagicMock()

        stats = make_runner(queue=QueueName.NOTIFY).run(handler, subject_of=notify_subject)

        handler.assert_not_called()
        assert stats.failed == 1
        assert queue_store.list_pending(QueueName.NOTIFY) == []
        assert retry.get_dead_letter(QueueName.NOTIFY, url) is not None
        assert retry.get_dead_letter(QueueName.SUMMARIZE, url) is None
