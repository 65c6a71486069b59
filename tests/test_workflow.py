import asyncio
import io
import threading

import pytest
from PIL import Image

from app.gradphoto.errors import ErrorKind, USER_MESSAGES
from app.gradphoto.models import GeneratedImage, SourceImage
from app.gradphoto.progress import LOADING_MESSAGES
from app.gradphoto.workflow import Event, WorkflowState, transition
from tests.conftest import FakeGenerator, make_image


def run(coro):
    return asyncio.run(coro)


def test_transition_is_total():
    for state in WorkflowState:
        for event in Event:
            assert isinstance(transition(state, event), WorkflowState)


@pytest.mark.parametrize("state, event, expected", [
    (WorkflowState.INITIAL, Event.GENERATE, WorkflowState.LOADING),
    (WorkflowState.LOADING, Event.SUCCEEDED, WorkflowState.RESULT),
    (WorkflowState.LOADING, Event.FAILED, WorkflowState.ERROR),
    (WorkflowState.ERROR, Event.RETRY, WorkflowState.LOADING),
    (WorkflowState.LOADING, Event.GENERATE, WorkflowState.LOADING),
    (WorkflowState.RESULT, Event.RETRY, WorkflowState.RESULT),
    (WorkflowState.RESULT, Event.SUCCEEDED, WorkflowState.RESULT),
    (WorkflowState.LOADING, Event.RESET, WorkflowState.INITIAL),
    (WorkflowState.ERROR, Event.FILE_SELECTED, WorkflowState.INITIAL),
])
def test_transition(state, event, expected):
    assert transition(state, event) == expected


def test_generate_without_photo_is_noop(make_workflow):
    generator = FakeGenerator()
    wf = make_workflow(generator)
    assert run(wf.generate()) is False
    assert wf.state == WorkflowState.INITIAL
    assert generator.calls == 0


def test_successful_generation_with_caption(make_workflow, source):
    generator = FakeGenerator()
    wf = make_workflow(generator)
    wf.select_file(source)
    wf.set_caption("Class of 2025\nCongratulations")

    assert run(wf.generate()) is True
    assert wf.state == WorkflowState.RESULT
    assert wf.final_image.mime_type == "image/png"
    assert Image.open(io.BytesIO(wf.final_image.data)).size == (128, 96)
    assert not wf.ticker.active
    # caption is burned in locally, not requested from the model
    assert "write the following text" not in generator.prompts[0]


def test_model_caption_forwards_caption_to_prompt(make_workflow, source):
    generator = FakeGenerator()
    wf = make_workflow(generator, model_caption=True)
    wf.select_file(source)
    run(wf.generate())
    assert '"Class of 2025"' in generator.prompts[0]


def test_empty_caption_keeps_generated_image(make_workflow, source):
    generated = GeneratedImage(make_image(50, 50, fmt="JPEG"), "image/jpeg")
    calls = []

    def compositor(data, caption):
        calls.append(caption)
        return data

    wf = make_workflow(FakeGenerator(generated), compositor=compositor)
    wf.select_file(source)
    wf.set_caption("   ")

    assert run(wf.generate()) is True
    assert wf.final_image.data == generated.data
    assert wf.final_image.mime_type == "image/jpeg"
    assert calls == []


def test_no_image_returned_ends_in_error(make_workflow, source):
    wf = make_workflow(FakeGenerator("none"))
    wf.select_file(source)

    assert run(wf.generate()) is False
    assert wf.state == WorkflowState.ERROR
    assert wf.error.kind == ErrorKind.NO_IMAGE_RETURNED
    assert wf.error.message == USER_MESSAGES[ErrorKind.NO_IMAGE_RETURNED]
    assert wf.source is source
    assert wf.final_image is None
    assert not wf.ticker.active


def test_network_failure_ends_in_error(make_workflow, source):
    wf = make_workflow(FakeGenerator("network"))
    wf.select_file(source)
    run(wf.generate())
    assert wf.state == WorkflowState.ERROR
    assert wf.error.kind == ErrorKind.GENERATION_FAILED


def test_compositor_failure_ends_in_error(make_workflow, source):
    wf = make_workflow(FakeGenerator("garbage"))
    wf.select_file(source)
    run(wf.generate())
    assert wf.state == WorkflowState.ERROR
    assert wf.error.kind == ErrorKind.DECODE_FAILURE
    assert wf.final_image is None


def test_unexpected_compositor_exception_ends_in_error(make_workflow, source):
    def broken(data, caption):
        raise RuntimeError("font cache exploded")

    wf = make_workflow(FakeGenerator(), compositor=broken)
    wf.select_file(source)
    run(wf.generate())
    assert wf.state == WorkflowState.ERROR
    assert wf.error.kind == ErrorKind.GENERATION_FAILED


def test_retry_reuses_source_and_caption(make_workflow, source):
    generator = FakeGenerator("network", "image")
    wf = make_workflow(generator)
    wf.select_file(source)
    wf.set_caption("Line1\nLine2")
    run(wf.generate())
    assert wf.state == WorkflowState.ERROR

    assert run(wf.retry()) is True
    assert wf.state == WorkflowState.RESULT
    assert wf.error is None
    assert generator.calls == 2
    assert generator.payloads[0] == generator.payloads[1]
    assert wf.caption == "Line1\nLine2"


def test_retry_outside_error_is_noop(make_workflow, source):
    generator = FakeGenerator()
    wf = make_workflow(generator)
    wf.select_file(source)
    assert run(wf.retry()) is False
    assert wf.state == WorkflowState.INITIAL
    assert generator.calls == 0


def test_caption_locked_after_generation(make_workflow, source):
    wf = make_workflow(FakeGenerator())
    wf.select_file(source)
    run(wf.generate())
    assert wf.set_caption("too late") is False
    assert wf.caption == "Class of 2025"


def test_select_file_clears_result(make_workflow, source):
    wf = make_workflow(FakeGenerator())
    wf.select_file(source)
    run(wf.generate())
    other = SourceImage(make_image(), "image/png", "other.png")
    assert wf.select_file(other) == WorkflowState.INITIAL
    assert wf.final_image is None
    assert wf.source is other


@pytest.mark.parametrize("outcome, expected", [
    (None, WorkflowState.INITIAL),
    ("image", WorkflowState.RESULT),
    ("none", WorkflowState.ERROR),
])
def test_reset_from_any_state(make_workflow, source, outcome, expected):
    wf = make_workflow(FakeGenerator(outcome or "image"))
    wf.select_file(source)
    wf.set_caption("custom")
    if outcome:
        run(wf.generate())
    assert wf.state == expected

    assert wf.reset() == WorkflowState.INITIAL
    assert wf.caption == "Class of 2025"
    assert wf.source is None
    assert wf.final_image is None
    assert wf.error is None


def test_generate_reentry_while_loading_has_no_effect(make_workflow, source):
    gate = threading.Event()
    generator = FakeGenerator(gate=gate)
    wf = make_workflow(generator)
    wf.select_file(source)

    async def scenario():
        first = asyncio.create_task(wf.generate())
        await asyncio.sleep(0)
        assert wf.state == WorkflowState.LOADING
        assert wf.status().progress_message == LOADING_MESSAGES[0]
        assert wf.ticker.active

        assert await wf.generate() is False
        gate.set()
        return await first

    assert run(scenario()) is True
    assert generator.calls == 1
    assert wf.state == WorkflowState.RESULT
    assert wf.status().progress_message is None


def test_stale_result_after_reset_is_dropped(make_workflow, source):
    gate = threading.Event()
    wf = make_workflow(FakeGenerator(gate=gate))
    wf.select_file(source)

    async def scenario():
        task = asyncio.create_task(wf.generate())
        await asyncio.sleep(0)
        wf.reset()
        assert not wf.ticker.active
        gate.set()
        return await task

    assert run(scenario()) is False
    assert wf.state == WorkflowState.INITIAL
    assert wf.final_image is None


def test_stale_failure_after_new_file_is_dropped(make_workflow, source):
    gate = threading.Event()
    wf = make_workflow(FakeGenerator("network", gate=gate))
    wf.select_file(source)
    other = SourceImage(make_image(), "image/png", "other.png")

    async def scenario():
        task = asyncio.create_task(wf.generate())
        await asyncio.sleep(0)
        wf.select_file(other)
        gate.set()
        return await task

    assert run(scenario()) is False
    assert wf.state == WorkflowState.INITIAL
    assert wf.error is None
    assert wf.source is other


def test_close_cancels_progress_timer(make_workflow, source):
    gate = threading.Event()
    wf = make_workflow(FakeGenerator(gate=gate))
    wf.select_file(source)

    async def scenario():
        task = asyncio.create_task(wf.generate())
        await asyncio.sleep(0)
        wf.close()
        assert not wf.ticker.active
        gate.set()
        await task

    run(scenario())


def test_cancelled_generation_settles_in_error(make_workflow, source):
    gate = threading.Event()
    generator = FakeGenerator(gate=gate)
    wf = make_workflow(generator)
    wf.select_file(source)

    async def scenario():
        task = asyncio.create_task(wf.generate())
        await asyncio.sleep(0)
        assert wf.ticker.active
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        gate.set()

    run(scenario())
    assert wf.state == WorkflowState.ERROR
    assert wf.error.kind == ErrorKind.GENERATION_FAILED
    assert not wf.ticker.active

    # the session is usable again
    assert run(wf.retry()) is True
    assert wf.state == WorkflowState.RESULT
    assert generator.calls == 2


def test_retry_restarts_progress_messages(make_workflow, source):
    first_gate = threading.Event()
    generator = FakeGenerator("network", "image", gate=first_gate)
    wf = make_workflow(generator)
    wf.select_file(source)

    async def scenario():
        task = asyncio.create_task(wf.generate())
        await asyncio.sleep(0.15)
        assert wf.ticker.index >= 1
        assert wf.status().progress_message != LOADING_MESSAGES[0]
        first_gate.set()
        await task
        assert wf.state == WorkflowState.ERROR

        second_gate = threading.Event()
        generator.gate = second_gate
        retry = asyncio.create_task(wf.retry())
        await asyncio.sleep(0)
        assert wf.state == WorkflowState.LOADING
        assert wf.status().progress_message == LOADING_MESSAGES[0]
        second_gate.set()
        return await retry

    assert run(scenario()) is True
    assert wf.state == WorkflowState.RESULT
