"""Unit tests for payment orchestration."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from exceptions import PaymentNotFoundError, ReminderNotFoundError, ValidationError
from models.payment import PaymentCategory, PaymentStatus
from models.reminder import ReminderType
from services.lifecycle import derive_status
from services.payment_service import PaymentSortOption


class TestAddPayment:
    """Creating payments."""

    @pytest.mark.asyncio
    async def test_add_persists_and_schedules(self, service, payment_store, scheduler, clock, make_payment) -> None:
        result = await service.add_payment(make_payment(title="  Rent  "))

        stored = payment_store.get(result.payment.id)
        assert stored.title == "Rent"
        assert stored.status is PaymentStatus.UPCOMING
        assert stored.created_at == clock.now
        assert stored.is_synced is False
        assert result.warnings == []
        assert len(result.reminders) == 3
        assert len(scheduler.pending) == 3

    @pytest.mark.asyncio
    async def test_past_due_payment_is_stored_overdue(self, service, payment_store, clock, make_payment) -> None:
        result = await service.add_payment(make_payment(due_date=clock.now - timedelta(days=2)))

        assert payment_store.get(result.payment.id).status is PaymentStatus.OVERDUE
        assert result.reminders == []

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"title": "   "}, "title"),
            ({"title": "x" * 101}, "title"),
            ({"amount": Decimal("0")}, "amount"),
            ({"amount": Decimal("-5")}, "amount"),
            ({"amount": Decimal("1000000000")}, "amount"),
            ({"notes": "n" * 501}, "notes"),
            ({"due_date": None}, "due_date"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input_writes_nothing(self, service, payment_store, scheduler, make_payment, overrides, field) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.add_payment(make_payment(**overrides))

        assert exc_info.value.field == field
        assert payment_store.put_calls == 0
        assert scheduler.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates_without_reminders(self, service, payment_store, scheduler, reminder_store, make_payment) -> None:
        payment_store.fail_put = True

        with pytest.raises(RuntimeError):
            await service.add_payment(make_payment())

        assert scheduler.calls == []
        assert reminder_store.rows == {}

    @pytest.mark.asyncio
    async def test_scheduler_failure_keeps_the_payment(self, service, scheduler, make_payment) -> None:
        scheduler.fail_schedule = True

        result = await service.add_payment(make_payment())

        assert len(result.warnings) == 3
        assert service.get_payment(result.payment.id).title == "Rent"

    @pytest.mark.asyncio
    async def test_empty_notes_become_none(self, service, payment_store, make_payment) -> None:
        result = await service.add_payment(make_payment(notes=""))
        assert payment_store.get(result.payment.id).notes is None


class TestUpdatePayment:
    """Editing payments."""

    @pytest.mark.asyncio
    async def test_update_rebuilds_reminders(self, service, reminder_store, scheduler, clock, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        created_at = payment.created_at
        clock.advance(minutes=5)

        payment.due_date = clock.now + timedelta(days=10)
        payment.reminder_types = frozenset({ReminderType.ON_DUE_DATE})
        result = await service.update_payment(payment)

        assert result.payment.created_at == created_at
        assert result.payment.updated_at == clock.now
        reminders = reminder_store.list_for_payment(payment.id)
        assert [r.type for r in reminders] == [ReminderType.ON_DUE_DATE]
        assert reminders[0].scheduled_time == payment.due_date
        assert len(scheduler.pending) == 1

    @pytest.mark.asyncio
    async def test_disabling_reminders_cancels_them(self, service, reminder_store, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        payment.reminder_enabled = False
        await service.update_payment(payment)

        assert reminder_store.list_for_payment(payment.id) == []
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_update_unknown_payment(self, service, make_payment) -> None:
        with pytest.raises(PaymentNotFoundError):
            await service.update_payment(make_payment())

    @pytest.mark.asyncio
    async def test_update_cannot_set_paid(self, service, payment_store, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        result = await service.update_payment(replace(payment, status=PaymentStatus.PAID))

        assert result.payment.status is PaymentStatus.UPCOMING
        assert payment_store.get(payment.id).status is PaymentStatus.UPCOMING
        assert len(scheduler.pending) == 3

    @pytest.mark.asyncio
    async def test_update_keeps_paid_flag(self, service, payment_store, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        await service.mark_paid(payment.id)

        result = await service.update_payment(make_payment(id=payment.id, title="Rent (new flat)"))

        stored = payment_store.get(payment.id)
        assert result.payment.status is PaymentStatus.PAID
        assert stored.status is PaymentStatus.PAID
        assert stored.title == "Rent (new flat)"
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_update_checks_and_keeps_owner(self, service, payment_store, make_payment) -> None:
        payment = (await service.add_payment(make_payment(user_id="42"))).payment

        with pytest.raises(PaymentNotFoundError):
            await service.update_payment(make_payment(id=payment.id, user_id="7", title="Mine"), user_id="7")
        assert payment_store.get(payment.id).title == "Rent"

        result = await service.update_payment(make_payment(id=payment.id, user_id="7"), user_id="42")
        assert result.payment.user_id == "42"
        assert payment_store.get(payment.id).user_id == "42"

    @pytest.mark.asyncio
    async def test_invalid_update_leaves_stored_row(self, service, payment_store, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        calls = payment_store.put_calls

        payment.amount = Decimal("0")
        with pytest.raises(ValidationError):
            await service.update_payment(payment)

        assert payment_store.put_calls == calls
        assert payment_store.get(payment.id).amount == Decimal("800.00")


class TestPaidAndDelete:
    """Marking paid, unpaid and deleting."""

    @pytest.mark.asyncio
    async def test_mark_paid_cancels_reminders(self, service, reminder_store, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        result = await service.mark_paid(payment.id)

        assert result.payment.status is PaymentStatus.PAID
        assert reminder_store.list_for_payment(payment.id) == []
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_mark_unpaid_rederives_status(self, service, clock, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        await service.mark_paid(payment.id)

        clock.advance(days=4)
        result = await service.mark_unpaid(payment.id)

        assert result.payment.status is PaymentStatus.OVERDUE
        assert result.reminders == []

    @pytest.mark.asyncio
    async def test_mark_unpaid_before_due_restores_reminders(self, service, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        await service.mark_paid(payment.id)

        result = await service.mark_unpaid(payment.id)

        assert result.payment.status is PaymentStatus.UPCOMING
        assert len(scheduler.pending) == 3

    @pytest.mark.asyncio
    async def test_toggle_paid(self, service, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        assert (await service.toggle_paid(payment.id)).payment.is_paid
        assert not (await service.toggle_paid(payment.id)).payment.is_paid

    @pytest.mark.asyncio
    async def test_queued_toggles_each_see_the_previous_one(self, service, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        async with service.locks.get(payment.id):
            toggles = [asyncio.create_task(service.toggle_paid(payment.id)) for _ in range(2)]
            await asyncio.sleep(0)
        results = await asyncio.gather(*toggles)

        assert [r.payment.status for r in results] == [PaymentStatus.PAID, PaymentStatus.UPCOMING]
        assert service.get_payment(payment.id).status is PaymentStatus.UPCOMING

    @pytest.mark.asyncio
    async def test_delete_is_soft_and_tears_down(self, service, payment_store, scheduler, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment

        await service.delete_payment(payment.id)

        assert payment_store.get(payment.id) is None
        assert payment_store.get(payment.id, include_deleted=True).is_deleted is True
        assert scheduler.pending == {}
        with pytest.raises(PaymentNotFoundError):
            service.get_payment(payment.id)

    @pytest.mark.asyncio
    async def test_other_users_cannot_touch_a_payment(self, service, payment_store, make_payment) -> None:
        payment = (await service.add_payment(make_payment(user_id="42"))).payment

        with pytest.raises(PaymentNotFoundError):
            await service.mark_paid(payment.id, user_id="7")
        with pytest.raises(PaymentNotFoundError):
            await service.delete_payment(payment.id, user_id="7")

        assert payment_store.get(payment.id).status is PaymentStatus.UPCOMING

    @pytest.mark.asyncio
    async def test_missing_payment(self, service) -> None:
        with pytest.raises(PaymentNotFoundError):
            await service.mark_paid("nope")


class TestReads:
    """Recompute-on-read, filtering and summaries."""

    @pytest.mark.asyncio
    async def test_status_recomputed_on_read(self, service, payment_store, clock, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        clock.advance(days=4)

        assert payment_store.get(payment.id).status is PaymentStatus.UPCOMING
        assert service.get_payment(payment.id).status is PaymentStatus.OVERDUE
        assert [p.id for p in service.list_payments("42", status=PaymentStatus.OVERDUE)] == [payment.id]

    @pytest.mark.asyncio
    async def test_read_status_always_matches_derivation(self, service, clock, make_payment) -> None:
        for days in (-3, 0, 1, 5):
            await service.add_payment(make_payment(due_date=clock.now + timedelta(days=days)))
        paid = (await service.add_payment(make_payment(title="Paid"))).payment
        await service.mark_paid(paid.id)

        for step in range(4):
            clock.advance(days=step)
            for p in service.list_payments("42"):
                assert p.status is derive_status(p.due_date, p.is_paid, clock.now)

    @pytest.mark.asyncio
    async def test_filters_and_sort(self, service, clock, make_payment) -> None:
        await service.add_payment(make_payment(title="Netflix", amount="15.99",
                                               category=PaymentCategory.SUBSCRIPTION))
        await service.add_payment(make_payment(title="Rent", amount="800"))
        await service.add_payment(make_payment(title="Spotify", amount="9.99",
                                               category=PaymentCategory.SUBSCRIPTION,
                                               due_date=clock.now + timedelta(days=1)))
        await service.add_payment(make_payment(title="Other user", user_id="7"))

        subs = service.list_payments("42", category=PaymentCategory.SUBSCRIPTION)
        assert [p.title for p in subs] == ["Spotify", "Netflix"]

        by_amount = service.list_payments("42", sort=PaymentSortOption.AMOUNT, ascending=False)
        assert [p.title for p in by_amount] == ["Rent", "Netflix", "Spotify"]

        by_title = service.list_payments("42", sort=PaymentSortOption.TITLE)
        assert [p.title for p in by_title] == ["Netflix", "Rent", "Spotify"]

        assert [p.title for p in service.list_payments("42", query="FLIX")] == ["Netflix"]

    @pytest.mark.asyncio
    async def test_summary(self, service, clock, make_payment) -> None:
        await service.add_payment(make_payment(amount="100", due_date=clock.now + timedelta(hours=2)))
        await service.add_payment(make_payment(amount="50", due_date=clock.now - timedelta(days=1)))
        paid = (await service.add_payment(make_payment(amount="30"))).payment
        await service.mark_paid(paid.id)

        summary = service.summary("42")

        assert summary.counts == {
            PaymentStatus.UPCOMING: 1,
            PaymentStatus.PAID: 1,
            PaymentStatus.OVERDUE: 1,
        }
        assert summary.total_due == Decimal("150")
        assert summary.total_paid == Decimal("30")
        assert summary.due_today == 1
        assert [p.amount for p in service.payments_due_today("42")] == [Decimal("100")]


class TestBackgroundOperations:
    """Sweeps, migration and sync."""

    @pytest.mark.asyncio
    async def test_refresh_statuses_persists_flips(self, service, payment_store, clock, make_payment) -> None:
        first = (await service.add_payment(make_payment())).payment
        await service.add_payment(make_payment(user_id="7", due_date=clock.now + timedelta(days=30)))
        clock.advance(days=4)

        assert await service.refresh_statuses() == 1
        assert payment_store.get(first.id).status is PaymentStatus.OVERDUE
        assert await service.refresh_statuses() == 0

    @pytest.mark.asyncio
    async def test_migrate_guest_payments(self, service, payment_store, make_payment) -> None:
        await service.add_payment(make_payment(user_id="guest"))
        await service.add_payment(make_payment(user_id="guest", title="Gym"))

        assert await service.migrate_guest_payments("42") == 2
        assert payment_store.list_by_owner("guest") == []
        assert {p.title for p in payment_store.list_by_owner("42")} == {"Rent", "Gym"}

    @pytest.mark.asyncio
    async def test_sync_confirms_and_purges_deleted(self, service, payment_store, make_payment) -> None:
        kept = (await service.add_payment(make_payment())).payment
        gone = (await service.add_payment(make_payment(title="Old"))).payment
        await service.delete_payment(gone.id)

        assert await service.sync_payments() == 2

        assert payment_store.get(kept.id).is_synced is True
        assert payment_store.get(gone.id, include_deleted=True) is None
        assert await service.sync_payments() == 0

    @pytest.mark.asyncio
    async def test_snooze_reminder(self, service, scheduler, clock, make_payment) -> None:
        result = await service.add_payment(make_payment())
        reminder = result.reminders[0]

        snoozed = await service.snooze_reminder(reminder.id, user_id="42")

        assert snoozed.scheduled_time == clock.now + timedelta(hours=1)
        with pytest.raises(PaymentNotFoundError):
            await service.snooze_reminder(reminder.id, user_id="7")
        with pytest.raises(ReminderNotFoundError):
            await service.snooze_reminder("missing")

    @pytest.mark.asyncio
    async def test_snooze_racing_an_update_keeps_one_reminder_per_type(self, service, reminder_store, scheduler, clock, make_payment) -> None:
        payment = (await service.add_payment(make_payment())).payment
        stale_id = reminder_store.list_for_payment(payment.id)[0].id
        scheduler.delay = 0.01

        update = asyncio.create_task(
            service.update_payment(replace(payment, due_date=clock.now + timedelta(days=5)))
        )
        await asyncio.sleep(0)
        with pytest.raises(ReminderNotFoundError):
            await service.snooze_reminder(stale_id)
        await update

        types = [r.type for r in reminder_store.list_for_payment(payment.id) if r.is_active]
        assert len(types) == len(set(types)) == 3
        assert len(scheduler.pending) == 3

    @pytest.mark.asyncio
    async def test_snooze_refused_for_paid_payment(self, service, reminder_store, scheduler, make_payment) -> None:
        result = await service.add_payment(make_payment())
        reminder_store.fail_delete = True
        await service.mark_paid(result.payment.id)

        with pytest.raises(ReminderNotFoundError):
            await service.snooze_reminder(result.reminders[0].id)
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_reschedule_after_restart(self, service, scheduler, make_payment) -> None:
        await service.add_payment(make_payment())
        scheduler.pending.clear()

        assert await service.reschedule_reminders() == 3
        assert len(scheduler.pending) == 3
