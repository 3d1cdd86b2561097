"""
Unit tests for portal/services/item_request_service.py

Tests the lifecycle client against a fake backend:
  - multi-line create: one POST per line, success only when all succeed,
    no rollback on partial failure
  - approve/reject/fulfill/confirm request shapes
  - cache invalidation on success, cache untouched on failure
  - failure message mapping with per-action fallbacks
"""

import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from portal.services.item_request_service import (
    CACHE_ROOT,
    ItemRequestService,
    RequestLine,
    RequisitionActionError,
)
from portal.services.views import RequisitionView


def _service(backend, cache):
    return ItemRequestService(backend.client(), cache)


def _create_responder(request_data, fail_item_ids=(), message="Insufficient stock"):
    counter = iter(range(100, 200))

    def respond(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        item_id = body["item"]["id"]
        if item_id in fail_item_ids:
            return httpx.Response(400, json={"message": f"{message} for item {item_id}"})
        return httpx.Response(
            201,
            json=request_data(next(counter), item_id=item_id, requested=body["requestedQuantity"]),
        )

    return respond


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_sends_one_post_per_line(backend, cache, request_data):
    backend.respond("POST", "/item-requests", _create_responder(request_data))
    service = _service(backend, cache)

    created = await service.create(
        [RequestLine(item_id=1, quantity=5), RequestLine(item_id=2, quantity=3)],
        office_id=7,
        reason="Exam week",
    )

    bodies = [c[2] for c in backend.calls_to("POST", "/item-requests")]
    assert len(bodies) == 2
    assert sorted(bodies, key=lambda b: b["item"]["id"]) == [
        {"item": {"id": 1}, "requestedQuantity": 5, "parentOffice": {"id": 7}, "reason": "Exam week"},
        {"item": {"id": 2}, "requestedQuantity": 3, "parentOffice": {"id": 7}, "reason": "Exam week"},
    ]
    assert sorted(r.item.id for r in created) == [1, 2]


@pytest.mark.asyncio
async def test_create_omits_blank_reason(backend, cache, request_data):
    backend.respond("POST", "/item-requests", _create_responder(request_data))
    await _service(backend, cache).create([RequestLine(item_id=1, quantity=2)], office_id=7, reason="")

    assert "reason" not in backend.calls[0][2]


@pytest.mark.asyncio
async def test_create_partial_failure_reports_second_line_without_rollback(backend, cache, request_data):
    backend.respond("POST", "/item-requests", _create_responder(request_data, fail_item_ids={2}))
    cache.set(CACHE_ROOT + ("my-requests",), [])
    service = _service(backend, cache)

    with pytest.raises(RequisitionActionError) as exc_info:
        await service.create(
            [RequestLine(item_id=1, quantity=5), RequestLine(item_id=2, quantity=3)], office_id=7
        )

    err = exc_info.value
    assert err.action == "create"
    assert err.message == "Insufficient stock for item 2"
    assert err.status_code == 400
    assert err.failed_lines == [1]
    assert [r.item.id for r in err.committed] == [1]
    # both lines went out; nothing compensating was sent
    assert len(backend.calls) == 2
    assert all(c[0] == "POST" for c in backend.calls)
    # partial commit means the cached lists are stale
    assert CACHE_ROOT + ("my-requests",) not in cache


@pytest.mark.asyncio
async def test_create_reports_first_failing_line_in_line_order(backend, cache, request_data):
    backend.respond("POST", "/item-requests", _create_responder(request_data, fail_item_ids={2, 3}))

    with pytest.raises(RequisitionActionError) as exc_info:
        await _service(backend, cache).create(
            [RequestLine(1, 1), RequestLine(2, 1), RequestLine(3, 1)], office_id=7
        )
    assert exc_info.value.message.endswith("item 2")
    assert exc_info.value.failed_lines == [1, 2]


@pytest.mark.asyncio
async def test_create_total_failure_leaves_cache(backend, cache):
    backend.respond("POST", "/item-requests", httpx.ConnectError("refused"))
    cache.set(CACHE_ROOT + ("my-requests",), [])

    with pytest.raises(RequisitionActionError) as exc_info:
        await _service(backend, cache).create([RequestLine(1, 1)], office_id=7)

    assert exc_info.value.message == "Failed to create requisition"
    assert exc_info.value.committed == []
    assert CACHE_ROOT + ("my-requests",) in cache


@pytest.mark.asyncio
async def test_create_lines_are_in_flight_together(backend, cache, request_data):
    second_arrived = asyncio.Event()

    async def respond(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        item_id = body["item"]["id"]
        if item_id == 1:
            # only completes if line 2 was sent while line 1 is still open
            await asyncio.wait_for(second_arrived.wait(), timeout=1)
        else:
            second_arrived.set()
        return httpx.Response(201, json=request_data(100 + item_id, item_id=item_id))

    backend.respond("POST", "/item-requests", respond)

    created = await _service(backend, cache).create(
        [RequestLine(item_id=1, quantity=1), RequestLine(item_id=2, quantity=1)], office_id=7
    )
    assert sorted(r.item.id for r in created) == [1, 2]


@pytest.mark.asyncio
async def test_create_invalidates_before_parsing_committed_records(backend, cache):
    backend.on("POST", "/item-requests", status=201, json_body={"id": 1})
    cache.set(CACHE_ROOT + ("my-requests",), [])

    with pytest.raises(ValidationError):
        await _service(backend, cache).create([RequestLine(1, 1)], office_id=7)

    assert CACHE_ROOT + ("my-requests",) not in cache


# ---------------------------------------------------------------------------
# approve / reject / fulfill / confirm
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_approve_puts_quantity_and_invalidates_lists(backend, cache, request_data):
    backend.on("PUT", "/item-requests/42/approve", json_body=request_data(42, "APPROVED", requested=10, approved=8))
    backend.on("GET", "/item-requests/incoming", json_body=[request_data(42, "PENDING")])
    service = _service(backend, cache)

    await service.list_for_view(RequisitionView.INCOMING)
    await service.list_for_view(RequisitionView.INCOMING)
    assert len(backend.calls_to("GET", "/item-requests/incoming")) == 1

    record = await service.approve(42, 8)

    assert backend.calls_to("PUT", "/item-requests/42/approve") == [
        ("PUT", "/item-requests/42/approve", {"approvedQuantity": 8})
    ]
    assert record.status == "APPROVED"
    await service.list_for_view(RequisitionView.INCOMING)
    assert len(backend.calls_to("GET", "/item-requests/incoming")) == 2


@pytest.mark.asyncio
async def test_read_started_before_approve_does_not_repopulate_cache(backend, cache, request_data):
    started = asyncio.Event()
    release = asyncio.Event()
    reads = 0

    async def respond(request: httpx.Request) -> httpx.Response:
        nonlocal reads
        reads += 1
        if reads == 1:
            started.set()
            await release.wait()
            return httpx.Response(200, json=[request_data(42, "PENDING")])
        return httpx.Response(200, json=[request_data(42, "APPROVED", approved=8)])

    backend.respond("GET", "/item-requests/incoming", respond)
    backend.on("PUT", "/item-requests/42/approve", json_body=request_data(42, "APPROVED", approved=8))
    service = _service(backend, cache)

    slow_read = asyncio.create_task(service.list_for_view(RequisitionView.INCOMING))
    await started.wait()
    await service.approve(42, 8)
    release.set()
    await slow_read

    rows = await service.list_for_view(RequisitionView.INCOMING)
    assert len(backend.calls_to("GET", "/item-requests/incoming")) == 2
    assert [r.status for r in rows] == ["APPROVED"]


@pytest.mark.asyncio
async def test_reject_fulfill_confirm_bodies(backend, cache, request_data):
    backend.on("PUT", "/item-requests/5/reject", json_body=request_data(5, "REJECTED"))
    backend.on("PUT", "/item-requests/6/fulfill", json_body=request_data(6, "PARTIALLY_FULFILLED", approved=5, fulfilled=2))
    backend.on("PUT", "/item-requests/7/confirm", json_body=request_data(7, "CONFIRMED", approved=5, fulfilled=5))
    backend.on("PUT", "/item-requests/8/confirm", json_body=request_data(8, "CONFIRMED", approved=5, fulfilled=5))
    service = _service(backend, cache)

    await service.reject(5, "Out of budget")
    await service.fulfill(6, 2)
    await service.confirm(7, "Received in good condition")
    await service.confirm(8)

    assert [c[2] for c in backend.calls] == [
        {"remarks": "Out of budget"},
        {"quantity": 2},
        {"remarks": "Received in good condition"},
        {},
    ]


@pytest.mark.asyncio
async def test_failed_transition_keeps_cache_and_uses_server_message(backend, cache):
    backend.on("PUT", "/item-requests/6/fulfill", status=400, json_body={"message": "Cannot fulfill more than approved"})
    cache.set(CACHE_ROOT + ("approved",), ["cached"])

    with pytest.raises(RequisitionActionError) as exc_info:
        await _service(backend, cache).fulfill(6, 99)

    assert exc_info.value.message == "Cannot fulfill more than approved"
    assert exc_info.value.status_code == 400
    assert cache.get(CACHE_ROOT + ("approved",)) == ["cached"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action,call,fallback",
    [
        ("approve", lambda s: s.approve(1, 1), "Failed to approve requisition"),
        ("reject", lambda s: s.reject(1, "x"), "Failed to reject requisition"),
        ("fulfill", lambda s: s.fulfill(1, 1), "Failed to fulfill requisition"),
        ("confirm", lambda s: s.confirm(1), "Failed to confirm requisition"),
    ],
)
async def test_transition_fallback_messages(backend, cache, action, call, fallback):
    backend.on("PUT", f"/item-requests/1/{action}", status=500)

    with pytest.raises(RequisitionActionError) as exc_info:
        await call(_service(backend, cache))
    assert exc_info.value.action == action
    assert exc_info.value.message == fallback


# ---------------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reads_hit_expected_paths(backend, cache, request_data):
    backend.on("GET", "/item-requests", json_body=[request_data(1)])
    backend.on("GET", "/item-requests/1", json_body=request_data(1))
    backend.on("GET", "/item-requests/office/7", json_body=[request_data(1)])
    service = _service(backend, cache)

    assert [r.id for r in await service.list_all()] == [1]
    assert (await service.get(1)).item.name == "A4 Paper"
    assert len(await service.list_by_office(7)) == 1
    assert [c[1] for c in backend.calls] == ["/item-requests", "/item-requests/1", "/item-requests/office/7"]


@pytest.mark.asyncio
async def test_read_failure_maps_to_load_error(backend, cache):
    backend.on("GET", "/item-requests/history", status=500)

    with pytest.raises(RequisitionActionError) as exc_info:
        await _service(backend, cache).list_for_view(RequisitionView.HISTORY)
    assert exc_info.value.action == "load"
    assert exc_info.value.message == "Failed to load requisitions"
