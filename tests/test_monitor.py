"""Tests for the Deadline Monitor."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from helpers import Engine, make_commitment
from leadstreak.models.ledger import EntryKind
from leadstreak.models.notification import NotificationKind
from leadstreak.models.recovery import RecoveryState
from leadstreak.models.task import AccountabilityAction, ReminderPolicy, TaskStatus
from leadstreak.monitor.loop import MonitorEvent

DEADLINE = datetime(2026, 3, 1, 18, 0)


class TestReminders:
    def setup_method(self):
        self.engine = Engine()
        self.engine.store.add(make_commitment(
            deadline=DEADLINE,
            reminder_policy=ReminderPolicy.HOUR_1,
            created_at=DEADLINE - timedelta(hours=5),
        ))

    def test_reminder_fires_once_inside_window(self):
        monitor = self.engine.monitor

        assert monitor.evaluate_once(DEADLINE - timedelta(minutes=61)) == []

        events = monitor.evaluate_once(DEADLINE - timedelta(minutes=59))
        assert [e.kind for e in events] == [MonitorEvent.REMINDER]
        assert self.engine.store.require("task_1").reminder_sent

        assert monitor.evaluate_once(DEADLINE - timedelta(minutes=30)) == []
        assert self.engine.kinds().count(NotificationKind.REMINDER) == 1

    def test_reminder_message(self):
        self.engine.monitor.evaluate_once(DEADLINE - timedelta(minutes=10))
        notice = self.engine.notifications.recent(kind=NotificationKind.REMINDER)[-1]
        assert notice.message == 'REMINDER: Task "Send 5 DMs" is due soon!'
        assert notice.task_id == "task_1"

    def test_no_reminder_after_deadline(self):
        events = self.engine.monitor.evaluate_once(DEADLINE + timedelta(seconds=1))
        assert [e.kind for e in events] == [MonitorEvent.MISSED]
        assert NotificationKind.REMINDER not in self.engine.kinds()

    def test_policy_none_never_reminds(self):
        engine = Engine()
        engine.store.add(make_commitment(deadline=DEADLINE))
        assert engine.monitor.evaluate_once(DEADLINE - timedelta(minutes=1)) == []

    def test_fifteen_minute_policy(self):
        engine = Engine()
        engine.store.add(make_commitment(
            deadline=DEADLINE, reminder_policy=ReminderPolicy.MINUTES_15
        ))
        assert engine.monitor.evaluate_once(DEADLINE - timedelta(minutes=16)) == []
        assert len(engine.monitor.evaluate_once(DEADLINE - timedelta(minutes=14))) == 1


class TestMissDetection:
    def setup_method(self):
        self.engine = Engine(balance=Decimal("4.20"))
        self.engine.store.add(make_commitment(stake="0.5", deadline=DEADLINE))

    def test_not_missed_at_exact_deadline(self):
        assert self.engine.monitor.evaluate_once(DEADLINE) == []
        assert self.engine.store.require("task_1").status == TaskStatus.ACTIVE

    def test_missed_after_deadline(self):
        now = DEADLINE + timedelta(seconds=1)
        events = self.engine.monitor.evaluate_once(now)

        task = self.engine.store.require("task_1")
        assert task.status == TaskStatus.MISSED
        assert events[0].to_dict()["task_id"] == "task_1"

        # Stake stays forfeited; only the journal records it
        assert self.engine.ledger.balance == Decimal("4.20")
        forfeits = self.engine.ledger.journal.query_by_kind(EntryKind.FORFEIT)
        assert [e.task_id for e in forfeits] == ["task_1"]

        logs = self.engine.store.get_logs("task_1")
        assert logs[0].action == AccountabilityAction.MISSED
        assert logs[0].penalty_applied == Decimal("0.5")
        assert NotificationKind.TASK_MISSED in self.engine.kinds()

    def test_miss_opens_recovery(self):
        self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=1))
        case = self.engine.recovery.current
        assert case.task_id == "task_1"
        assert case.state == RecoveryState.MISSED

    def test_missed_is_detected_once(self):
        self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=1))
        assert self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=2)) == []
        assert self.engine.ledger.journal.count() == 1

    def test_latest_miss_holds_recovery_slot(self):
        self.engine.store.add(make_commitment("task_2", deadline=DEADLINE))
        self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=1))
        assert self.engine.recovery.current.task_id == "task_2"
        assert self.engine.store.require("task_1").status == TaskStatus.MISSED
        assert len(self.engine.recovery.unresolved_missed()) == 2

    def test_completed_task_is_ignored(self):
        self.engine.commitments.complete("task_1")
        assert self.engine.monitor.evaluate_once(DEADLINE + timedelta(days=1)) == []

    def test_aware_deadline_is_stored_as_utc(self):
        berlin = timezone(timedelta(hours=1))
        self.engine.store.add(make_commitment(
            "task_2", deadline=datetime(2026, 3, 1, 21, 0, tzinfo=berlin)
        ))
        assert self.engine.store.require("task_2").deadline == datetime(2026, 3, 1, 20, 0)

        events = self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=1))
        assert [e.task_id for e in events] == ["task_1"]
        assert self.engine.store.require("task_1").status == TaskStatus.MISSED
        assert self.engine.store.require("task_2").status == TaskStatus.ACTIVE

    def test_failing_record_does_not_block_others(self):
        self.engine.store.add(make_commitment("task_2", deadline=DEADLINE))
        check_reminder = self.engine.monitor._check_reminder

        def flaky(task, current_time):
            if task.id == "task_1":
                raise TypeError("corrupt record")
            return check_reminder(task, current_time)

        self.engine.monitor._check_reminder = flaky
        events = self.engine.monitor.evaluate_once(DEADLINE + timedelta(minutes=1))
        assert [e.task_id for e in events] == ["task_2"]
        assert self.engine.store.require("task_2").status == TaskStatus.MISSED
        assert self.engine.monitor.tick_count == 1

    def test_tick_bookkeeping(self):
        self.engine.monitor.evaluate_once(DEADLINE)
        self.engine.monitor.evaluate_once(DEADLINE + timedelta(seconds=5))
        assert self.engine.monitor.tick_count == 2
        assert self.engine.monitor.last_tick_at == DEADLINE + timedelta(seconds=5)


class TestMonitorLoop:
    def test_start_and_stop(self):
        engine = Engine()
        engine.store.add(make_commitment(deadline=datetime.utcnow() - timedelta(seconds=1)))

        async def run():
            task = engine.monitor.start()
            assert engine.monitor.start() is task
            await asyncio.sleep(0.05)
            assert engine.monitor.status == "running"
            await engine.monitor.stop()

        asyncio.run(run())
        assert engine.monitor.status == "stopped"
        assert engine.monitor.tick_count >= 1
        assert engine.store.require("task_1").status == TaskStatus.MISSED

    def test_failing_tick_does_not_stop_loop(self):
        engine = Engine()
        calls = []

        def broken_tick(current_time=None):
            calls.append(current_time)
            raise RuntimeError("store unavailable")

        engine.monitor.evaluate_once = broken_tick

        async def run():
            stop = asyncio.Event()
            loop_task = asyncio.ensure_future(engine.monitor.run_async(stop))
            await asyncio.sleep(0.05)
            stop.set()
            await loop_task

        asyncio.run(run())
        assert len(calls) >= 2
