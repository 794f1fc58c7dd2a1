import asyncio

import pytest
from pydantic import ValidationError

from conftest import FakeBroker, FakeMessage
from consulting_agents.errors import BrokerConnectionError
from consulting_agents.events.envelope import TestingResult
from consulting_agents.events.types import EventType
from consulting_agents.runtime import RETRY_HEADER, AgentRuntime, AgentState, HandlerOutcome
from consulting_agents.scheduling import ScheduledTrigger

pytestmark = pytest.mark.anyio

DLQ = "agent_communication.dead_letter"


def make_runtime(broker, handlers, **kwargs):
    kwargs.setdefault("dead_letter_queue", DLQ)
    return AgentRuntime("test-agent", broker, handlers, **kwargs)


async def test_start_declares_queues_and_consumes(broker):
    rt = make_runtime(broker, {})
    await rt.start()
    assert rt.state is AgentState.CONSUMING
    assert broker.declared == ["agent_communication", DLQ]
    assert broker.callback == rt.handle_message
    await rt.shutdown()


async def test_ack_policy_does_not_declare_dead_letter_queue(broker):
    rt = make_runtime(broker, {}, failure_policy="ack")
    await rt.start()
    assert broker.declared == ["agent_communication"]
    await rt.shutdown()


async def test_unreachable_broker_crashes_startup():
    broker = FakeBroker(fail_connect=BrokerConnectionError("connection refused"))
    rt = make_runtime(broker, {})
    with pytest.raises(BrokerConnectionError):
        await rt.start()
    assert rt.state is AgentState.CRASHED
    assert broker.callback is None


async def test_unknown_failure_policy_rejected(broker):
    with pytest.raises(ValueError):
        make_runtime(broker, {}, failure_policy="explode")


async def test_dispatches_data_to_matching_handler_and_acks(broker):
    seen = []

    async def on_passed(data):
        seen.append(data)

    rt = make_runtime(broker, {EventType.TESTING_RESULT_PASSED: on_passed})
    msg = FakeMessage.of("testing_result_passed", {"taskId": "task-1"})
    await rt.handle_message(msg)

    assert seen == [{"taskId": "task-1"}]
    assert msg.acked and not msg.nacked
    assert broker.raw == []


async def test_unknown_type_is_acked_without_calling_anything(broker):
    called = []

    async def handler(data):
        called.append(data)

    rt = make_runtime(broker, {EventType.TESTING_RESULT_PASSED: handler})
    msg = FakeMessage.of("new_project_request", {"projectId": "p-1"})
    await rt.handle_message(msg)

    assert called == []
    assert msg.acked
    assert broker.raw == []


@pytest.mark.parametrize("body", [b"{not json", b"[]", b'{"data": {}}'])
async def test_undecodable_message_is_acked_and_dropped(broker, body):
    rt = make_runtime(broker, {})
    msg = FakeMessage(body)
    await rt.handle_message(msg)
    assert msg.acked
    assert broker.raw == []


async def test_failed_handler_is_republished_with_attempt_counter(broker):
    async def boom(data):
        raise RuntimeError("vendor down")

    rt = make_runtime(broker, {"support_ticket_created": boom}, max_retries=3)
    msg = FakeMessage.of("support_ticket_created", {"ticketId": "t-1", "issue": "x"})
    await rt.handle_message(msg)

    assert msg.acked
    assert len(broker.raw) == 1
    assert broker.raw[0]["queue"] == "agent_communication"
    assert broker.raw[0]["headers"] == {RETRY_HEADER: 1}
    assert broker.raw[0]["body"] == msg.body


async def test_exhausted_retries_go_to_dead_letter_queue(broker):
    async def boom(data):
        raise RuntimeError("still down")

    rt = make_runtime(broker, {"support_ticket_created": boom}, max_retries=3)
    msg = FakeMessage.of("support_ticket_created", {"ticketId": "t-1"}, headers={RETRY_HEADER: 3})
    await rt.handle_message(msg)

    assert msg.acked
    [dead] = broker.raw
    assert dead["queue"] == DLQ
    assert dead["headers"][RETRY_HEADER] == 3
    assert dead["headers"]["x-dead-letter-reason"] == "retry"
    assert dead["headers"]["x-failed-agent"] == "test-agent"


async def test_invalid_payload_is_dead_lettered_immediately(broker):
    async def strict(data):
        TestingResult.model_validate(data)

    rt = make_runtime(broker, {"testing_result_failed": strict})
    msg = FakeMessage.of("testing_result_failed", {"passed": False})
    await rt.handle_message(msg)

    assert msg.acked
    [dead] = broker.raw
    assert dead["queue"] == DLQ
    assert dead["headers"]["x-dead-letter-reason"] == "dead_letter"


async def test_handler_may_request_dead_letter(broker):
    async def reject(data):
        return HandlerOutcome.DEAD_LETTER

    rt = make_runtime(broker, {"documentation_update": reject})
    msg = FakeMessage.of("documentation_update", {})
    await rt.handle_message(msg)
    assert [r["queue"] for r in broker.raw] == [DLQ]


async def test_timed_out_handler_is_retried(broker):
    async def slow(data):
        await asyncio.sleep(5)

    rt = make_runtime(broker, {"documentation_update": slow}, handler_timeout=0.05)
    msg = FakeMessage.of("documentation_update", {})
    await rt.handle_message(msg)

    assert msg.acked
    assert broker.raw[0]["headers"] == {RETRY_HEADER: 1}


async def test_ack_policy_drops_failed_messages(broker):
    async def boom(data):
        raise RuntimeError("nope")

    rt = make_runtime(broker, {"documentation_update": boom}, failure_policy="ack")
    msg = FakeMessage.of("documentation_update", {})
    await rt.handle_message(msg)

    assert msg.acked
    assert broker.raw == []


async def test_failed_republish_requeues_original(broker):
    async def boom(data):
        raise RuntimeError("nope")

    async def broken_publish_raw(body, *, queue_name, headers=None):
        raise ConnectionError("channel closed")

    broker.publish_raw = broken_publish_raw
    rt = make_runtime(broker, {"documentation_update": boom})
    msg = FakeMessage.of("documentation_update", {})
    await rt.handle_message(msg)

    assert msg.nacked and msg.requeued
    assert not msg.acked


async def test_messages_are_handled_one_at_a_time(broker):
    order = []

    async def handler(data):
        order.append(("start", data["n"]))
        await asyncio.sleep(0.01)
        order.append(("end", data["n"]))

    rt = make_runtime(broker, {"internal_comm_message": handler})
    await asyncio.gather(
        rt.handle_message(FakeMessage.of("internal_comm_message", {"n": 1})),
        rt.handle_message(FakeMessage.of("internal_comm_message", {"n": 2})),
    )
    assert order == [("start", 1), ("end", 1), ("start", 2), ("end", 2)]


async def test_shutdown_stops_consuming_and_closes(broker):
    rt = make_runtime(broker, {})
    await rt.start()
    await rt.shutdown()

    assert rt.state is AgentState.STOPPED
    assert broker.cancelled and broker.closed

    late = FakeMessage.of("testing_result_passed", {"taskId": "t"})
    await rt.handle_message(late)
    assert late.nacked and late.requeued


async def test_shutdown_waits_for_in_flight_handler(broker):
    release = asyncio.Event()
    finished = []

    async def handler(data):
        await release.wait()
        finished.append(True)

    rt = make_runtime(broker, {"internal_comm_message": handler})
    await rt.start()
    inflight = asyncio.create_task(rt.handle_message(FakeMessage.of("internal_comm_message", {})))
    await asyncio.sleep(0)

    stopping = asyncio.create_task(rt.shutdown())
    await asyncio.sleep(0.01)
    assert not broker.closed

    release.set()
    await asyncio.gather(inflight, stopping)
    assert finished == [True]
    assert broker.closed


async def test_run_returns_after_stop(broker):
    rt = make_runtime(broker, {})
    task = asyncio.create_task(rt.run())
    while rt.state is not AgentState.CONSUMING:
        await asyncio.sleep(0)
    rt.stop()
    await asyncio.wait_for(task, timeout=1)
    assert rt.state is AgentState.STOPPED


async def test_triggers_follow_the_runtime_lifecycle(broker):
    async def noop():
        pass

    trigger = ScheduledTrigger("hourly", 3600, noop)
    rt = make_runtime(broker, {}, triggers=[trigger])
    await rt.start()
    assert trigger._task is not None
    await rt.shutdown()
    assert trigger._task is None


def test_validation_error_is_permanent():
    from consulting_agents.runtime import PERMANENT_ERRORS

    assert issubclass(ValidationError, PERMANENT_ERRORS)
