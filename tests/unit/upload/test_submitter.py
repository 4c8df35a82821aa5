"""Tests for TransactionSubmitter and tag building."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import httpx
import pytest
from jose.utils import base64url_decode

from arlink.cancellation import CancellationToken
from arlink.config import ArlinkConfig
from arlink.errors import (
    ArlinkCancelledError,
    ArlinkInvalidInputError,
    ArlinkTransientError,
    ArlinkUploadFailedError,
)
from arlink.models import ProcessedArtifact, Tag
from arlink.observability import RecordingMetricsHook
from arlink.progress import ProgressRecorder
from arlink.upload import TransactionSubmitter, build_tags

DATA = b"RIFF\x24\x00\x00\x00WEBPVP8 " + bytes(range(256)) * 4


@pytest.fixture
def artifact(tmp_path) -> ProcessedArtifact:
    path = tmp_path / "photo-0123.webp"
    path.write_bytes(DATA)
    return ProcessedArtifact(
        path=str(path),
        original_path="/pictures/photo.png",
        original_size=len(DATA) * 2,
        size_bytes=len(DATA),
        width=32,
        height=32,
        format="WEBP",
        reduction_percent=50.0,
    )


@pytest.fixture
def submitter(transport, estimator, config, logger) -> TransactionSubmitter:
    return TransactionSubmitter(transport, estimator, config, logger)


# =========================================================================
# Happy path
# =========================================================================

class TestSubmitSuccess:
    async def test_returns_pending_handle(self, submitter, wallet, artifact, gateway):
        handle = await submitter.submit(wallet, artifact)
        assert handle.pending
        assert handle.location_uri == f"https://arweave.net/{handle.id}"
        assert handle.cost.native_amount == "0.000001000000"
        assert handle.cost.fiat_amount == "0.0000"
        assert len(gateway.posts) == 1

    async def test_posted_payload(self, submitter, wallet, artifact, gateway):
        handle = await submitter.submit(wallet, artifact)
        (payload,) = gateway.posted_payloads()
        assert payload["id"] == handle.id
        assert payload["owner"] == wallet.owner
        assert payload["last_tx"] == gateway.anchor
        assert payload["reward"] == "1000000"
        assert base64url_decode(payload["data"].encode("ascii")) == DATA
        assert str(payload["data_size"]) == str(len(DATA))
        assert len(payload["tags"]) == 1

    async def test_prices_the_artifact_bytes(self, submitter, wallet, artifact, gateway):
        await submitter.submit(wallet, artifact)
        assert gateway.requests_to(f"/price/{len(DATA)}")

    async def test_extra_tags_are_appended(self, submitter, wallet, artifact, gateway):
        await submitter.submit(wallet, artifact, tags=[Tag("Title", "Cat")])
        tags = gateway.posted_payloads()[0]["tags"]
        assert len(tags) == 2

    async def test_accepts_202(self, submitter, wallet, artifact, gateway):
        gateway.post_results = [202]
        handle = await submitter.submit(wallet, artifact)
        assert handle.pending

    async def test_reports_progress_in_order(self, submitter, wallet, artifact):
        recorder = ProgressRecorder()
        await submitter.submit(wallet, artifact, progress=recorder)
        assert recorder.messages == [
            "Calculating upload cost...",
            "Preparing transaction...",
            "Signing transaction...",
            "Uploading to Arweave...",
            "Upload complete!",
        ]


# =========================================================================
# Retries
# =========================================================================

class TestSubmitRetries:
    async def test_recovers_after_transient_failures(self, submitter, wallet, artifact, gateway):
        gateway.post_results = [503, 503, 200]
        recorder = ProgressRecorder()
        handle = await submitter.submit(wallet, artifact, progress=recorder)

        assert len(gateway.posts) == 3
        assert recorder.messages.count("Upload failed, retrying in 0.0s...") == 2
        ids = [p["id"] for p in gateway.posted_payloads()]
        assert ids[-1] == handle.id

    async def test_network_error_is_retried(self, submitter, wallet, artifact, gateway):
        gateway.post_results = [httpx.ReadTimeout("slow"), 200]
        await submitter.submit(wallet, artifact)
        assert len(gateway.posts) == 2

    async def test_proxy_error_is_retried(self, submitter, wallet, artifact, gateway):
        gateway.post_results = [httpx.ProxyError("proxy refused"), 200]
        handle = await submitter.submit(wallet, artifact)
        assert len(gateway.posts) == 2
        assert gateway.posted_payloads()[-1]["id"] == handle.id

    async def test_proxy_error_exhaustion_raises_upload_failed(
        self, submitter, wallet, artifact, gateway,
    ):
        gateway.post_results = [httpx.ProxyError("proxy refused")]
        with pytest.raises(ArlinkUploadFailedError) as exc_info:
            await submitter.submit(wallet, artifact)
        assert len(gateway.posts) == 4
        assert exc_info.value.context == {"attempts": 4, "last_error_code": "TRANSIENT"}
        assert isinstance(exc_info.value.cause.cause, httpx.ProxyError)

    @pytest.mark.parametrize("anchor", ["", "not base64!", "<html>busy</html>", "abcde"])
    async def test_malformed_anchor_is_retried_without_posting(
        self, submitter, wallet, artifact, gateway, anchor,
    ):
        gateway.anchor = anchor
        with pytest.raises(ArlinkUploadFailedError) as exc_info:
            await submitter.submit(wallet, artifact)
        assert exc_info.value.context["last_error_code"] == "TRANSIENT"
        assert exc_info.value.cause.context == {"url": "/tx_anchor", "method": "GET"}
        assert len(gateway.requests_to("/tx_anchor")) == 4
        assert gateway.posts == []

    async def test_exhaustion_raises_upload_failed(self, submitter, wallet, artifact, gateway):
        gateway.post_results = [500]
        with pytest.raises(ArlinkUploadFailedError) as exc_info:
            await submitter.submit(wallet, artifact)

        err = exc_info.value
        assert len(gateway.posts) == 4
        assert err.context == {"attempts": 4, "last_error_code": "TRANSIENT"}
        assert isinstance(err.cause, ArlinkTransientError)
        assert err.cause.context["status_code"] == 500

    async def test_zero_retries_means_one_attempt(
        self, transport, estimator, config, logger, wallet, artifact, gateway,
    ):
        cfg = dataclasses.replace(config, retry_count=0)
        sub = TransactionSubmitter(transport, estimator, cfg, logger)
        gateway.post_results = [500]
        with pytest.raises(ArlinkUploadFailedError):
            await sub.submit(wallet, artifact)
        assert len(gateway.posts) == 1

    async def test_price_failure_is_retried_without_posting(
        self, submitter, wallet, artifact, gateway,
    ):
        gateway.fail_paths.add("/price/")
        with pytest.raises(ArlinkUploadFailedError):
            await submitter.submit(wallet, artifact)
        assert len(gateway.requests_to("/price/")) == 4
        assert gateway.posts == []

    async def test_metrics(self, transport, estimator, config, logger, wallet, artifact, gateway):
        metrics = RecordingMetricsHook()
        cfg = dataclasses.replace(config, metrics=metrics)
        sub = TransactionSubmitter(transport, estimator, cfg, logger)
        gateway.post_results = [503, 200]
        await sub.submit(wallet, artifact)
        assert metrics.names().count("arlink.submit_attempts_total") == 2
        assert ("arlink.retries_total", {"reason": "TRANSIENT"}) in metrics.counters
        assert "arlink.upload_success_total" in metrics.names()


# =========================================================================
# Non-retryable outcomes
# =========================================================================

class TestSubmitFailures:
    async def test_missing_artifact_is_invalid_input(self, submitter, wallet, artifact, gateway):
        missing = dataclasses.replace(artifact, path=artifact.path + ".gone")
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            await submitter.submit(wallet, missing)
        assert exc_info.value.context["reason"] == "not_found"
        assert gateway.requests == []

    async def test_empty_artifact_is_invalid_input(self, submitter, wallet, artifact, tmp_path):
        empty = tmp_path / "empty.webp"
        empty.write_bytes(b"")
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            await submitter.submit(wallet, dataclasses.replace(artifact, path=str(empty)))
        assert exc_info.value.context["reason"] == "empty"

    async def test_cancelled_before_start(self, submitter, wallet, artifact, gateway):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ArlinkCancelledError):
            await submitter.submit(wallet, artifact, cancellation=token)
        assert gateway.requests == []

    async def test_cancel_while_signing_never_posts(self, submitter, wallet, artifact, gateway):
        token = CancellationToken()

        def progress(message, increment):
            if message == "Signing transaction...":
                token.cancel()

        with pytest.raises(ArlinkCancelledError) as exc_info:
            await submitter.submit(wallet, artifact, cancellation=token, progress=progress)
        assert exc_info.value.context["step"] == "posting"
        assert gateway.posts == []

    async def test_cancel_during_retry_delay(
        self, transport, estimator, config, logger, wallet, artifact, gateway,
    ):
        cfg = dataclasses.replace(config, retry_delay=30.0, retry_max_delay=60.0)
        sub = TransactionSubmitter(transport, estimator, cfg, logger)
        gateway.post_results = [503]
        token = CancellationToken()

        def progress(message, increment):
            if message.startswith("Upload failed, retrying in 30.0s"):
                token.cancel()

        with pytest.raises(ArlinkCancelledError) as exc_info:
            await sub.submit(wallet, artifact, cancellation=token, progress=progress)
        assert exc_info.value.context["step"] == "retry_delay"
        assert len(gateway.posts) == 1


# =========================================================================
# Tags
# =========================================================================

class TestBuildTags:
    def test_default_is_content_type_only(self):
        assert build_tags(ArlinkConfig()) == [Tag("Content-Type", "image/webp")]

    def test_extra_tags_always_appended(self):
        tags = build_tags(ArlinkConfig(), [Tag("A", "1")])
        assert tags == [Tag("Content-Type", "image/webp"), Tag("A", "1")]

    def test_metadata_tags(self):
        cfg = ArlinkConfig(
            enable_metadata_tags=True,
            app_name="arlink-test",
            custom_tags=["Project:demo", "no-colon", "Url:https://x.y", ":empty"],
        )
        now = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert build_tags(cfg, now=now) == [
            Tag("Content-Type", "image/webp"),
            Tag("App-Name", "arlink-test"),
            Tag("Content-Type-Original", "image"),
            Tag("Type", "image"),
            Tag("Created-Date", "2025-01-02T03:04:05+00:00"),
            Tag("Project", "demo"),
            Tag("Url", "https://x.y"),
        ]

    def test_custom_tags_ignored_without_metadata(self):
        cfg = ArlinkConfig(custom_tags=["Project:demo"])
        assert build_tags(cfg) == [Tag("Content-Type", "image/webp")]
