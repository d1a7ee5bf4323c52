from datetime import date, datetime

import pytest
from conftest import utc

from be_my_guide.database.collections import TRIP_DAYS, TRIP_STEPS
from be_my_guide.errors import ErrorCode, NotFoundError, StoreError, ValidationError
from be_my_guide.models.trip_models import TripDayRequest, TripStepRequest, UpdateTripDayRequest
from be_my_guide.services.trip_day_service import TripDayService
from be_my_guide.utils.object_ids import new_object_id


@pytest.fixture
def day_service(store):
    return TripDayService(store)


@pytest.mark.asyncio
async def test_create_stores_day_as_utc_midnight(day_service, store):
    day = await day_service.create(TripDayRequest(title="Arrival", day=date(2024, 6, 1)))

    assert day.day == date(2024, 6, 1)
    assert day.steps == []
    assert store.get(TRIP_DAYS, day.id)["day"] == utc(2024, 6, 1)


@pytest.mark.asyncio
async def test_create_accepts_a_datetime_for_the_day(day_service):
    day = await day_service.create(TripDayRequest.model_validate({"day": "2024-06-01T18:45:00Z"}))

    assert day.day == date(2024, 6, 1)


@pytest.mark.asyncio
async def test_add_step_returns_steps_sorted_by_datetime(day_service, store):
    day = await day_service.create(TripDayRequest(day=date(2024, 6, 1)))

    for title, hour in (("Dinner", 20), ("Breakfast", 8), ("Museum", 11)):
        result = await day_service.add_step(day.id, TripStepRequest(title=title, datetime=datetime(2024, 6, 1, hour)))

    assert [step.title for step in result.steps] == ["Breakfast", "Museum", "Dinner"]
    assert len(store.get(TRIP_DAYS, day.id)["steps"]) == 3


@pytest.mark.asyncio
async def test_add_step_to_missing_day_deletes_the_step(day_service, store):
    with pytest.raises(NotFoundError) as exc_info:
        await day_service.add_step(new_object_id(), TripStepRequest(title="Orphan", datetime=datetime(2024, 6, 1)))

    assert exc_info.value.code == ErrorCode.DAY_NOT_FOUND
    assert store.count(TRIP_STEPS) == 0


@pytest.mark.asyncio
async def test_add_step_failing_link_deletes_the_step(day_service, store):
    day = await day_service.create(TripDayRequest(day=date(2024, 6, 1)))
    store.fail_on("find_by_id_and_update", TRIP_DAYS)

    with pytest.raises(StoreError):
        await day_service.add_step(day.id, TripStepRequest(title="Orphan", datetime=datetime(2024, 6, 1)))

    assert store.count(TRIP_STEPS) == 0
    assert store.get(TRIP_DAYS, day.id)["steps"] == []


@pytest.mark.asyncio
async def test_add_step_with_malformed_day_id_creates_nothing(day_service, store):
    with pytest.raises(ValidationError):
        await day_service.add_step("bad-id", TripStepRequest(title="Orphan", datetime=datetime(2024, 6, 1)))

    assert ("insert", TRIP_STEPS) not in store.calls


@pytest.mark.asyncio
async def test_update_never_touches_steps(day_service, store):
    day = await day_service.create(TripDayRequest(day=date(2024, 6, 1)))
    await day_service.add_step(day.id, TripStepRequest(title="Museum", datetime=datetime(2024, 6, 1, 11)))

    request = UpdateTripDayRequest.model_validate({"title": "Renamed", "day": "2024-06-03", "steps": []})
    updated = await day_service.update(day.id, request)

    assert updated.title == "Renamed"
    assert updated.day == date(2024, 6, 3)
    assert len(updated.steps) == 1
    assert store.get(TRIP_DAYS, day.id)["day"] == utc(2024, 6, 3)


@pytest.mark.asyncio
async def test_update_missing_day_raises_not_found(day_service):
    with pytest.raises(NotFoundError):
        await day_service.update(new_object_id(), UpdateTripDayRequest(title="Ghost"))


@pytest.mark.asyncio
async def test_delete_removes_day_and_its_steps(day_service, store):
    day = await day_service.create(TripDayRequest(day=date(2024, 6, 1)))
    await day_service.add_step(day.id, TripStepRequest(title="Museum", datetime=datetime(2024, 6, 1, 11)))
    await day_service.add_step(day.id, TripStepRequest(title="Dinner", datetime=datetime(2024, 6, 1, 20)))

    deleted = await day_service.delete(day.id)

    assert deleted.id == day.id
    assert store.count(TRIP_DAYS) == 0
    assert store.count(TRIP_STEPS) == 0


@pytest.mark.asyncio
async def test_delete_tolerates_dangling_step_references(day_service, store):
    step = store.seed(TRIP_STEPS, {"title": "Museum", "datetime": utc(2024, 6, 1, 11)})
    day = store.seed(TRIP_DAYS, {"day": utc(2024, 6, 1), "steps": [new_object_id(), step["id"]]})

    await day_service.delete(day["id"])

    assert store.count(TRIP_DAYS) == 0
    assert store.count(TRIP_STEPS) == 0


@pytest.mark.asyncio
async def test_delete_missing_day_raises_but_cascade_does_not(day_service):
    missing = new_object_id()

    with pytest.raises(NotFoundError):
        await day_service.delete(missing)
    assert await day_service.delete_cascade(missing) is None


@pytest.mark.asyncio
async def test_read_with_steps_orders_steps(day_service, store):
    steps = [
        store.seed(TRIP_STEPS, {"title": "Late", "datetime": utc(2024, 6, 1, 22)}),
        store.seed(TRIP_STEPS, {"title": "Early", "datetime": utc(2024, 6, 1, 7)}),
    ]
    day = store.seed(TRIP_DAYS, {"day": utc(2024, 6, 1), "steps": [s["id"] for s in steps]})

    result = await day_service.read_with_steps(day["id"])

    assert [step.title for step in result.steps] == ["Early", "Late"]
