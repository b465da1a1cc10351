"""Tests for the enhancement orchestrator state machine."""

import asyncio

import httpx
import pytest

from conftest import (
    BlockingImageClient,
    FailingWriteStore,
    ScriptedImageClient,
    server_error,
)
from vibecode.core import PromptStore, UIStateProjector
from vibecode.models.enums import EnhancementStatus
from vibecode.providers import GeminiImageClient
from vibecode.utils.errors import (
    RemoteInvocationError,
    SubmissionRejectedError,
    ValidationError,
)


def record_statuses(orchestrator):
    statuses = []
    orchestrator.subscribe(lambda state: statuses.append(state.status))
    return statuses


class TestSubmission:

    @pytest.mark.asyncio
    async def test_valid_submission_persists_before_invoking(
        self, make_orchestrator, identity_channel, document_store, config,
        source_image, generated_image, sample_prompt,
    ):
        identity = await identity_channel.sign_in()
        path = config.document_path(identity.id)
        seen_at_invocation = []

        class CheckingClient(ScriptedImageClient):
            async def generate_image(self, prompt, image):
                seen_at_invocation.append(document_store.get(path))
                return await super().generate_image(prompt, image)

        orchestrator = make_orchestrator(CheckingClient([generated_image]))
        statuses = record_statuses(orchestrator)

        state = await orchestrator.submit(sample_prompt, source_image)

        assert statuses == [
            EnhancementStatus.PERSISTING,
            EnhancementStatus.INVOKING,
            EnhancementStatus.SUCCEEDED,
        ]
        assert seen_at_invocation[0]["text"] == sample_prompt
        assert state.status == EnhancementStatus.SUCCEEDED
        assert state.result == generated_image
        assert state.attempt == 1

    @pytest.mark.asyncio
    async def test_empty_prompt_stays_idle_without_io(
        self, make_orchestrator, identity_channel, document_store, source_image,
    ):
        await identity_channel.sign_in()
        client = ScriptedImageClient([])
        orchestrator = make_orchestrator(client)

        state = await orchestrator.submit("", source_image)

        assert state.status == EnhancementStatus.IDLE
        assert state.message == orchestrator.MISSING_INPUT_MESSAGE
        assert client.calls == []
        assert document_store.paths() == []

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected_like_empty(
        self, make_orchestrator, identity_channel, source_image,
    ):
        await identity_channel.sign_in()
        orchestrator = make_orchestrator(ScriptedImageClient([]))

        with pytest.raises(ValidationError):
            orchestrator.start("   \n", source_image)
        assert orchestrator.status == EnhancementStatus.IDLE

    @pytest.mark.asyncio
    async def test_missing_image_or_identity_blocks_submission(
        self, make_orchestrator, identity_channel, source_image, sample_prompt,
    ):
        client = ScriptedImageClient([])
        orchestrator = make_orchestrator(client)

        with pytest.raises(ValidationError):
            orchestrator.start(sample_prompt, source_image)

        await identity_channel.sign_in()
        with pytest.raises(ValidationError):
            orchestrator.start(sample_prompt, None)

        assert orchestrator.status == EnhancementStatus.IDLE
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_submission_while_invoking_is_rejected(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        client = BlockingImageClient(result=generated_image)
        orchestrator = make_orchestrator(client)

        first = asyncio.create_task(orchestrator.submit(sample_prompt, source_image))
        await client.started.wait()
        in_flight = orchestrator.request

        assert orchestrator.status == EnhancementStatus.INVOKING
        with pytest.raises(SubmissionRejectedError):
            orchestrator.start("something else", source_image)

        rejected = await orchestrator.submit("something else", source_image)
        assert rejected.status == EnhancementStatus.INVOKING
        assert orchestrator.request is in_flight
        assert in_flight.prompt == sample_prompt

        client.release.set()
        final = await first

        assert final.status == EnhancementStatus.SUCCEEDED
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_submission_while_retry_pending_is_rejected(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        rejections = []

        client = ScriptedImageClient([server_error(), generated_image])
        orchestrator = make_orchestrator(client)

        async def sleep_and_resubmit(seconds):
            assert orchestrator.status == EnhancementStatus.RETRY_PENDING
            with pytest.raises(SubmissionRejectedError):
                orchestrator.start("another vibe", source_image)
            rejections.append(seconds)

        orchestrator._sleep = sleep_and_resubmit

        state = await orchestrator.submit(sample_prompt, source_image)

        assert rejections == [1.0]
        assert state.status == EnhancementStatus.SUCCEEDED
        assert [call[0] for call in client.calls] == [sample_prompt, sample_prompt]

    @pytest.mark.asyncio
    async def test_new_submission_clears_previous_result_when_it_begins(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        orchestrator = make_orchestrator(ScriptedImageClient([generated_image, generated_image]))

        await orchestrator.submit(sample_prompt, source_image)
        assert orchestrator.result == generated_image

        orchestrator.start(sample_prompt, source_image)
        assert orchestrator.status == EnhancementStatus.PERSISTING
        assert orchestrator.result is None


class TestRetry:

    @pytest.mark.asyncio
    async def test_three_failures_then_success(
        self, make_orchestrator, identity_channel, sleep, source_image, generated_image,
    ):
        await identity_channel.sign_in()
        client = ScriptedImageClient([server_error(), server_error(), server_error(), generated_image])
        orchestrator = make_orchestrator(client)
        statuses = record_statuses(orchestrator)

        state = await orchestrator.submit("neon glow", source_image)

        assert state.status == EnhancementStatus.SUCCEEDED
        assert state.result == generated_image
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert len(client.calls) == 4
        assert statuses.count(EnhancementStatus.RETRY_PENDING) == 3
        assert statuses[-1] == EnhancementStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_fourth_failure_is_terminal(
        self, make_orchestrator, identity_channel, sleep, source_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        client = ScriptedImageClient([server_error() for _ in range(5)])
        orchestrator = make_orchestrator(client)

        state = await orchestrator.submit(sample_prompt, source_image)

        assert state.status == EnhancementStatus.FAILED
        assert state.message == orchestrator.FAILURE_MESSAGE
        assert state.result is None
        assert len(client.calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_retry_pending_state_carries_delay(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        orchestrator = make_orchestrator(ScriptedImageClient([server_error(), generated_image]))
        pending = []
        orchestrator.subscribe(
            lambda state: pending.append(state)
            if state.status == EnhancementStatus.RETRY_PENDING else None
        )

        await orchestrator.submit(sample_prompt, source_image)

        assert len(pending) == 1
        assert pending[0].retry_delay_seconds == 1.0
        assert pending[0].attempt == 1

    @pytest.mark.asyncio
    async def test_response_without_inline_data_is_retried_then_terminal(
        self, make_orchestrator, identity_channel, sleep, source_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "no image today"}]}}]},
            )

        async with GeminiImageClient(
            api_key="test-key", transport=httpx.MockTransport(handler)
        ) as client:
            orchestrator = make_orchestrator(client)
            state = await orchestrator.submit(sample_prompt, source_image)

        assert state.status == EnhancementStatus.FAILED
        assert len(requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_corrupt_inline_data_is_retried_then_terminal(
        self, make_orchestrator, identity_channel, sleep, source_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [
                    {"inlineData": {"mimeType": "image/png", "data": "!!not base64!!"}}
                ]}}]},
            )

        async with GeminiImageClient(
            api_key="test-key", transport=httpx.MockTransport(handler)
        ) as client:
            orchestrator = make_orchestrator(client)
            state = await orchestrator.submit(sample_prompt, source_image)

        assert state.status == EnhancementStatus.FAILED
        assert state.result is None
        assert len(requests) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_state(
        self, make_orchestrator, identity_channel, source_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        orchestrator = make_orchestrator(ScriptedImageClient([RuntimeError("boom")]))

        state = await orchestrator.submit(sample_prompt, source_image)

        assert state.status == EnhancementStatus.FAILED
        assert state.message == orchestrator.UNEXPECTED_ERROR_MESSAGE


class TestPersistenceFailure:

    @pytest.mark.asyncio
    async def test_failed_prompt_save_does_not_block_invocation(
        self, make_orchestrator, identity_channel, config, source_image, generated_image,
    ):
        await identity_channel.sign_in()
        client = ScriptedImageClient([generated_image])
        orchestrator = make_orchestrator(client, store=PromptStore(FailingWriteStore(), config))

        state = await orchestrator.submit("neon glow", source_image)

        assert state.status == EnhancementStatus.SUCCEEDED
        assert state.persistence_warning == orchestrator.PERSISTENCE_WARNING
        assert len(client.calls) == 1

        ui = UIStateProjector.from_state(state, has_identity=True, has_image=True, has_prompt=True)
        assert orchestrator.PERSISTENCE_WARNING in ui.status_text

    @pytest.mark.asyncio
    async def test_prompt_is_saved_once_across_retries(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        orchestrator = make_orchestrator(ScriptedImageClient([server_error(), server_error(), generated_image]))
        saves = []
        original_persist = orchestrator.prompt_store.persist

        async def counting_persist(owner_id, text):
            saves.append(text)
            return await original_persist(owner_id, text)

        orchestrator.prompt_store.persist = counting_persist

        await orchestrator.submit(sample_prompt, source_image)

        assert saves == [sample_prompt]


class TestStaleIdentity:

    @pytest.mark.asyncio
    async def test_success_after_sign_out_is_discarded(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        client = BlockingImageClient(result=generated_image)
        orchestrator = make_orchestrator(client)

        run = asyncio.create_task(orchestrator.submit(sample_prompt, source_image))
        await client.started.wait()

        await identity_channel.sign_out()
        client.release.set()
        state = await run

        assert state.status == EnhancementStatus.IDLE
        assert state.result is None
        assert orchestrator.result is None

    @pytest.mark.asyncio
    async def test_failure_after_sign_out_is_discarded(
        self, make_orchestrator, identity_channel, sleep, source_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        client = BlockingImageClient(error=RemoteInvocationError("gone", 503))
        orchestrator = make_orchestrator(client)

        run = asyncio.create_task(orchestrator.submit(sample_prompt, source_image))
        await client.started.wait()

        await identity_channel.sign_out()
        client.release.set()
        state = await run

        assert state.status == EnhancementStatus.IDLE
        assert state.message is None
        assert sleep.delays == []
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_sign_out_during_retry_wait_stops_the_run(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in()
        client = ScriptedImageClient([server_error(), generated_image])
        orchestrator = make_orchestrator(client)

        async def sign_out_while_waiting(seconds):
            await identity_channel.sign_out()

        orchestrator._sleep = sign_out_while_waiting

        state = await orchestrator.submit(sample_prompt, source_image)

        assert state.status == EnhancementStatus.IDLE
        assert len(client.calls) == 1
        assert orchestrator.result is None

    @pytest.mark.asyncio
    async def test_new_identity_can_submit_while_stale_run_finishes(
        self, make_orchestrator, identity_channel, source_image, generated_image, sample_prompt,
    ):
        await identity_channel.sign_in("good-token")
        client = BlockingImageClient(result=generated_image)
        orchestrator = make_orchestrator(client)

        stale_run = asyncio.create_task(orchestrator.submit(sample_prompt, source_image))
        await client.started.wait()

        await identity_channel.sign_in("other-token")
        assert orchestrator.status == EnhancementStatus.IDLE

        fresh = orchestrator.start("fresh vibe", source_image)
        assert fresh.owner_id == "user-2"

        client.release.set()
        await stale_run

        assert orchestrator.request is fresh
        assert orchestrator.result is None
