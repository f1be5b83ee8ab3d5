import asyncio

import pytest

from app.domain.calendar.events import STATUS_COLORS
from app.domain.calendar.reconciler import CalendarReconciler, RecordState
from app.domain.calendar.schemas import BookingPayload, TimeOffPayload
from app.exceptions import RecordNotFound, RemoteRequestFailed, ValidationError
from conftest import FakeBookingApi, make_booking, make_time_off

WEEK = ("2026-02-09", "2026-02-16")
NEXT_WEEK = ("2026-02-16", "2026-02-23")


def new_payload(**overrides):
    data = {
        "start_datetime": "2026-02-14T18:00:00.000Z",
        "end_datetime": "2026-02-14T19:00:00.000Z",
        "services": [{"service_id": "svc-1", "user_id": "staff-1"}],
        "customer_id": "cust-1",
    }
    data.update(overrides)
    return BookingPayload(**data)


@pytest.fixture
def api():
    return FakeBookingApi(
        bookings=[
            make_booking("x", status="confirmed"),
            make_booking("abc", status="pending", start_at="2026-02-12T15:00:00Z", end_at="2026-02-12T16:00:00Z"),
            make_booking("y", status="completed", start_at="2026-02-13T15:00:00Z", end_at="2026-02-13T16:00:00Z"),
        ],
        time_offs=[
            make_time_off("t1"),
            make_time_off("t-later", start_date="2026-03-02T13:00:00Z", end_date="2026-03-02T17:00:00Z"),
        ],
        customers=[{"id": "cust-7", "first_name": "Maria", "last_name": "Diaz"}],
    )


@pytest.fixture
def reconciler(api, settings):
    return CalendarReconciler(api, settings)


def loaded(reconciler):
    asyncio.run(reconciler.load_range(*WEEK))
    return reconciler


def event_ids(reconciler):
    return [event.id for event in reconciler.events]


def test_load_range_replaces_visible_set(reconciler, api):
    events = asyncio.run(reconciler.load_range(*WEEK))

    assert [e.id for e in events] == ["booking-x", "booking-abc", "booking-y", "timeoff-t1"]
    assert reconciler.current_range == WEEK
    assert not reconciler.is_loading
    assert ("list_bookings", *WEEK) in api.calls


def test_load_range_resolves_customer_names_once(reconciler, api):
    api.bookings.append(make_booking("walk-in", customer=None, customer_id="cust-7"))

    asyncio.run(reconciler.load_range(*WEEK))
    asyncio.run(reconciler.load_range(*NEXT_WEEK))

    titles = {event.id: event.title for event in reconciler.events}
    assert titles["booking-walk-in"] == "Maria Diaz"
    assert api.count("list_customers") == 1


def test_load_range_skips_malformed_records(reconciler, api):
    api.bookings = [
        make_booking("ok"),
        {"id": "no-times"},
        make_booking("ok"),
        make_booking("backwards", start_at="2026-02-14T16:00:00Z", end_at="2026-02-14T15:00:00Z"),
    ]

    loaded(reconciler)

    assert [b.id for b in reconciler.bookings] == ["ok"]


def test_load_range_rejects_reversed_range(reconciler, api):
    with pytest.raises(ValidationError):
        asyncio.run(reconciler.load_range("2026-02-16", "2026-02-09"))

    assert api.calls == []


def test_newer_range_wins_over_late_response(reconciler, api):
    api.booking_ranges[WEEK] = [make_booking("from-a")]
    api.booking_ranges[NEXT_WEEK] = [make_booking("from-b", start_at="2026-02-17T15:00:00Z", end_at="2026-02-17T16:00:00Z")]

    async def scenario():
        gate = asyncio.Event()
        api.gates[("list_bookings", *WEEK)] = gate
        load_a = asyncio.ensure_future(reconciler.load_range(*WEEK))
        await asyncio.sleep(0)
        await reconciler.load_range(*NEXT_WEEK)
        gate.set()
        return await load_a

    events = asyncio.run(scenario())

    assert [b.id for b in reconciler.bookings] == ["from-b"]
    assert reconciler.current_range == NEXT_WEEK
    assert [e.id for e in events] == ["booking-from-b"]


def test_duplicate_load_joins_in_flight_fetch(reconciler, api):
    async def scenario():
        gate = asyncio.Event()
        api.gates["list_bookings"] = gate
        first = asyncio.ensure_future(reconciler.load_range(*WEEK))
        second = asyncio.ensure_future(reconciler.load_range(*WEEK))
        await asyncio.sleep(0)
        assert reconciler.is_loading
        gate.set()
        return await asyncio.gather(first, second)

    first, second = asyncio.run(scenario())

    assert api.count("list_bookings") == 1
    assert first == second
    assert not reconciler.is_loading


def test_load_after_reset_does_not_join_earlier_fetch(reconciler, api):
    api.bookings = [make_booking("before-logout")]

    async def scenario():
        gate = asyncio.Event()
        api.gates["list_bookings"] = gate
        first = asyncio.ensure_future(reconciler.load_range(*WEEK))
        while api.count("list_bookings") < 1:
            await asyncio.sleep(0)

        reconciler.reset()
        api.bookings = [make_booking("after-logout")]
        second = asyncio.ensure_future(reconciler.load_range(*WEEK))
        while api.count("list_bookings") < 2:
            await asyncio.sleep(0)

        gate.set()
        return await asyncio.gather(first, second)

    _, events = asyncio.run(scenario())

    assert api.count("list_bookings") == 2
    assert [b.id for b in reconciler.bookings] == ["after-logout"]
    assert [e.id for e in events if e.id.startswith("booking-")] == ["booking-after-logout"]
    assert not reconciler.is_loading


def test_failed_load_keeps_previous_set(reconciler, api):
    loaded(reconciler)
    api.failures["list_bookings"] = "Booking service is down"

    with pytest.raises(RemoteRequestFailed, match="Booking service is down"):
        asyncio.run(reconciler.load_range(*NEXT_WEEK))

    assert event_ids(reconciler) == ["booking-x", "booking-abc", "booking-y", "timeoff-t1"]
    assert reconciler.current_range == WEEK


def test_create_booking_appends_without_reload(reconciler, api):
    loaded(reconciler)

    event = asyncio.run(reconciler.create_booking(new_payload()))

    assert event.id.startswith("booking-")
    assert event_ids(reconciler) == ["booking-x", "booking-abc", "booking-y", event.id, "timeoff-t1"]
    assert event.backgroundColor == STATUS_COLORS["pending"]["background"]
    assert api.count("list_bookings") == 1
    assert reconciler.record_state(event.id) == RecordState.VISIBLE


def test_create_booking_validates_before_calling_service(reconciler, api):
    loaded(reconciler)

    with pytest.raises(ValidationError):
        asyncio.run(reconciler.create_booking(new_payload(services=[])))
    with pytest.raises(ValidationError):
        asyncio.run(reconciler.create_booking(new_payload(end_datetime="2026-02-14T17:00:00.000Z")))

    assert api.count("create_booking") == 0


def test_create_booking_failure_leaves_set_unchanged(reconciler, api):
    loaded(reconciler)
    api.failures["create_booking"] = "Staff member is not available"

    with pytest.raises(RemoteRequestFailed, match="Staff member is not available"):
        asyncio.run(reconciler.create_booking(new_payload()))

    assert event_ids(reconciler) == ["booking-x", "booking-abc", "booking-y", "timeoff-t1"]


def test_failure_without_server_message_uses_fallback(reconciler, api):
    loaded(reconciler)
    api.failures["create_booking"] = None

    with pytest.raises(RemoteRequestFailed, match="Failed to create booking"):
        asyncio.run(reconciler.create_booking(new_payload()))


def test_update_booking_reloads_current_range(reconciler, api):
    loaded(reconciler)

    asyncio.run(
        reconciler.update_booking(
            "x",
            new_payload(start_datetime="2026-02-15T15:00:00.000Z", end_datetime="2026-02-15T16:00:00.000Z"),
        )
    )

    assert api.count("list_bookings") == 2
    moved = next(b for b in reconciler.bookings if b.id == "x")
    assert moved.start_at == "2026-02-15T15:00:00.000Z"
    assert reconciler.record_state("booking-x") == RecordState.VISIBLE


def test_update_booking_failure_marks_reverted(reconciler, api):
    loaded(reconciler)
    api.failures["update_booking"] = "Conflict"

    with pytest.raises(RemoteRequestFailed):
        asyncio.run(reconciler.update_booking("x", new_payload()))

    assert reconciler.record_state("booking-x") == RecordState.VISIBLE_REVERTED
    assert api.count("list_bookings") == 1


def test_update_booking_survives_failed_reload(reconciler, api):
    loaded(reconciler)
    before = event_ids(reconciler)
    api.failures["list_bookings"] = "Booking service is down"

    events = asyncio.run(reconciler.update_booking("x", new_payload()))

    assert api.count("update_booking") == 1
    assert [e.id for e in events] == before
    assert reconciler.record_state("booking-x") == RecordState.VISIBLE
    assert reconciler.current_range == WEEK


def test_update_time_off_survives_failed_reload(reconciler, api):
    loaded(reconciler)
    api.failures["list_time_offs"] = "Booking service is down"
    payload = TimeOffPayload(
        start_datetime="2026-02-14T14:00:00.000Z",
        end_datetime="2026-02-14T18:00:00.000Z",
        user_id="staff-1",
    )

    asyncio.run(reconciler.update_time_off("t1", payload))

    assert api.count("update_time_off") == 1
    assert reconciler.record_state("timeoff-t1") == RecordState.VISIBLE


@pytest.mark.parametrize(
    "booking_id,new_status,endpoint",
    [
        ("x", "no_show", "mark_no_show"),
        ("x", "completed", "mark_completed"),
        ("x", "cancelled", "update_booking_status"),
        ("abc", "confirmed", "update_booking_status"),
        ("abc", "no_show", "update_booking_status"),
    ],
)
def test_change_status_recolors_in_place(reconciler, api, booking_id, new_status, endpoint):
    loaded(reconciler)

    event = asyncio.run(reconciler.change_status(booking_id, new_status))

    assert api.count(endpoint) == 1
    assert event.backgroundColor == STATUS_COLORS[new_status]["background"]
    assert event_ids(reconciler) == ["booking-x", "booking-abc", "booking-y", "timeoff-t1"]
    assert next(b for b in reconciler.bookings if b.id == booking_id).status == new_status
    assert api.count("list_bookings") == 1


def test_change_status_rejects_unknown_status_and_booking(reconciler, api):
    loaded(reconciler)

    with pytest.raises(ValidationError):
        asyncio.run(reconciler.change_status("x", "archived"))
    with pytest.raises(RecordNotFound):
        asyncio.run(reconciler.change_status("missing", "confirmed"))

    assert api.count("update_booking_status") == 0


def test_change_status_failure_keeps_old_status(reconciler, api):
    loaded(reconciler)
    api.failures["mark_no_show"] = "Too early to mark as no-show"

    with pytest.raises(RemoteRequestFailed, match="Too early"):
        asyncio.run(reconciler.change_status("x", "no_show"))

    assert next(b for b in reconciler.bookings if b.id == "x").status == "confirmed"
    assert reconciler.record_state("booking-x") == RecordState.VISIBLE_REVERTED


def test_record_state_is_pending_while_request_is_out(reconciler, api):
    loaded(reconciler)

    async def scenario():
        gate = asyncio.Event()
        api.gates["update_booking_status"] = gate
        change = asyncio.ensure_future(reconciler.change_status("abc", "confirmed"))
        await asyncio.sleep(0)
        during = reconciler.record_state("booking-abc")
        gate.set()
        await change
        return during

    assert asyncio.run(scenario()) == RecordState.PENDING_MUTATION
    assert reconciler.record_state("booking-abc") == RecordState.VISIBLE
    assert reconciler.record_state("booking-nope") == RecordState.ABSENT


def test_delete_booking_preserves_order_of_the_rest(reconciler, api):
    loaded(reconciler)

    asyncio.run(reconciler.delete_booking("abc"))

    assert event_ids(reconciler) == ["booking-x", "booking-y", "timeoff-t1"]
    assert reconciler.record_state("booking-abc") == RecordState.ABSENT
    assert api.count("list_bookings") == 1


def test_delete_booking_failure_leaves_set_unchanged(reconciler, api):
    loaded(reconciler)
    api.failures["delete_booking"] = "Cannot delete a completed booking"

    with pytest.raises(RemoteRequestFailed):
        asyncio.run(reconciler.delete_booking("abc"))

    assert event_ids(reconciler) == ["booking-x", "booking-abc", "booking-y", "timeoff-t1"]
    assert reconciler.record_state("booking-abc") == RecordState.VISIBLE_REVERTED


def test_time_off_create_update_delete(reconciler, api):
    loaded(reconciler)
    payload = TimeOffPayload(
        start_datetime="2026-02-13T14:00:00.000Z",
        end_datetime="2026-02-13T22:00:00.000Z",
        user_id="staff-1",
        reason="Training",
    )

    event = asyncio.run(reconciler.create_time_off(payload))
    assert event.type == "timeoff"
    assert event.title == "Time Off - Ann Lee"
    assert event_ids(reconciler)[-1] == event.id

    asyncio.run(reconciler.update_time_off("t1", payload))
    assert api.count("list_bookings") == 2

    asyncio.run(reconciler.delete_time_off("t1"))
    assert "timeoff-t1" not in event_ids(reconciler)


def test_status_filter_reprojects_without_reload(reconciler, api):
    loaded(reconciler)

    events = reconciler.set_status_filter(["Confirmed"])

    assert [e.id for e in events] == ["booking-x"]
    assert reconciler.status_filter == frozenset({"confirmed"})
    assert api.count("list_bookings") == 1

    with pytest.raises(ValidationError):
        reconciler.set_status_filter(["archived"])

    assert reconciler.set_status_filter(None) == reconciler.events
    assert len(reconciler.events) == 4


def test_subscribers_are_notified_until_unsubscribed(reconciler):
    seen = []
    unsubscribe = reconciler.subscribe(lambda events: seen.append([e.id for e in events]))

    loaded(reconciler)
    unsubscribe()
    asyncio.run(reconciler.delete_booking("abc"))

    assert seen == [["booking-x", "booking-abc", "booking-y", "timeoff-t1"]]


def test_reset_forgets_everything(reconciler):
    loaded(reconciler)
    reconciler.set_status_filter(["confirmed"])

    reconciler.reset()

    assert reconciler.events == []
    assert reconciler.current_range is None
    assert reconciler.status_filter == frozenset()
