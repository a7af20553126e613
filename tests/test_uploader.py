"""
Tests for micloud.upload.uploader module.

Tests block transfer including:
- Existing blocks reuse their commit token without a network call
- Transfer request shape (node path, query tokens, raw bytes)
- Ordered results and sequential transfers
- Abort on non-completed status and transport failures
"""

from __future__ import annotations

import pytest
import requests
import requests_mock

from conftest import BLOCK_URL, NODE_URL, pattern_bytes
from micloud.exceptions import BlockUploadError
from micloud.upload.negotiator import BlockExists, BlockNeedsUpload, BlocksNeeded
from micloud.upload.uploader import BLOCK_COMPLETED, upload_block, upload_blocks

CHUNK = 64


def _negotiated(*blocks) -> BlocksNeeded:
    return BlocksNeeded(
        node_url=NODE_URL,
        node_urls=(NODE_URL,),
        file_meta="fm-token",
        secure_key="secure-key",
        content_cache_key="cache-key",
        upload_id="upload-1",
        blocks=tuple(blocks),
    )


def _completed(request, context):
    return {"stat": BLOCK_COMPLETED, "commit_meta": "cm-" + request.qs["block_meta"][0]}


@pytest.fixture
def source(make_file):
    """A 150-byte file split into 64-byte blocks (64, 64, 22)."""
    path = make_file("data.bin", 150)
    with path.open("rb") as fh:
        yield fh


class TestUploadBlock:
    """Tests for a single block."""

    def test_existing_block_makes_no_call(self, drive, source):
        """Test that an existing block returns its token without transfer."""
        with requests_mock.Mocker() as m:
            token, transferred = upload_block(
                drive, source, 0, 150, NODE_URL, "fm-token", BlockExists("cm-x"), CHUNK
            )

        assert token == "cm-x"
        assert transferred is False
        assert m.call_count == 0

    def test_transfer_request_shape(self, drive, source):
        """Test the node path, query tokens and body of a transfer."""
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, json=_completed)
            token, transferred = upload_block(
                drive, source, 2, 150, NODE_URL, "fm-token", BlockNeedsUpload("bm-2"), CHUNK
            )

        assert token == "cm-bm-2"
        assert transferred is True
        request = m.request_history[0]
        assert request.qs == {"chunk_pos": ["0"], "file_meta": ["fm-token"], "block_meta": ["bm-2"]}
        assert request.headers["Content-Type"] == "application/octet-stream"
        assert request.body == pattern_bytes(150)[128:150]

    def test_non_completed_status_raises(self, drive, source):
        """Test that any stat other than BLOCK_COMPLETED is a failure."""
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, json={"stat": "BLOCK_FAILED", "description": "bad checksum"})
            with pytest.raises(BlockUploadError, match="not completed") as excinfo:
                upload_block(
                    drive, source, 1, 150, NODE_URL, "fm-token", BlockNeedsUpload("bm-1"), CHUNK
                )

        assert excinfo.value.index == 1
        assert excinfo.value.description == "bad checksum"
        assert excinfo.value.stage == "upload"

    def test_completed_without_commit_meta_raises(self, drive, source):
        """Test that a completed status must carry a commit token."""
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, json={"stat": BLOCK_COMPLETED})
            with pytest.raises(BlockUploadError, match="without commit_meta"):
                upload_block(
                    drive, source, 0, 150, NODE_URL, "fm-token", BlockNeedsUpload("bm-0"), CHUNK
                )

    def test_http_error_raises(self, drive, source):
        """Test that an HTTP 500 from the node is a block failure."""
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, status_code=500)
            with pytest.raises(BlockUploadError, match="block 0 transfer failed"):
                upload_block(
                    drive, source, 0, 150, NODE_URL, "fm-token", BlockNeedsUpload("bm-0"), CHUNK
                )
        assert m.call_count == 1

    def test_timeout_raises(self, drive, source):
        """Test that a connection timeout is a block failure with its cause chained."""
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, exc=requests.exceptions.ConnectTimeout)
            with pytest.raises(BlockUploadError) as excinfo:
                upload_block(
                    drive, source, 0, 150, NODE_URL, "fm-token", BlockNeedsUpload("bm-0"), CHUNK
                )
        assert excinfo.value.__cause__ is not None


class TestUploadBlocks:
    """Tests for the ordered block loop."""

    def test_all_existing_makes_zero_calls(self, drive, source):
        """Test that fully deduplicated blocks cost no transfer."""
        negotiated = _negotiated(BlockExists("a"), BlockExists("b"), BlockExists("c"))
        with requests_mock.Mocker() as m:
            results = upload_blocks(drive, source, 150, negotiated, CHUNK)

        assert results == [("a", False), ("b", False), ("c", False)]
        assert m.call_count == 0

    def test_mixed_blocks_keep_order(self, drive, source):
        """Test that tokens come back in block order across both kinds."""
        negotiated = _negotiated(
            BlockNeedsUpload("bm-0"), BlockExists("existing-1"), BlockNeedsUpload("bm-2")
        )
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, json=_completed)
            results = upload_blocks(drive, source, 150, negotiated, CHUNK)

        assert results == [("cm-bm-0", True), ("existing-1", False), ("cm-bm-2", True)]
        assert [r.qs["block_meta"][0] for r in m.request_history] == ["bm-0", "bm-2"]
        data = pattern_bytes(150)
        assert m.request_history[0].body == data[0:64]
        assert m.request_history[1].body == data[128:150]

    def test_failure_stops_later_blocks(self, drive, source):
        """Test that the first failing block aborts the loop."""
        negotiated = _negotiated(
            BlockNeedsUpload("bm-0"), BlockNeedsUpload("bm-1"), BlockNeedsUpload("bm-2")
        )
        with requests_mock.Mocker() as m:
            m.post(
                BLOCK_URL,
                [
                    {"json": {"stat": BLOCK_COMPLETED, "commit_meta": "cm-0"}},
                    {"json": {"stat": "BLOCK_FAILED"}},
                    {"json": {"stat": BLOCK_COMPLETED, "commit_meta": "cm-2"}},
                ],
            )
            with pytest.raises(BlockUploadError) as excinfo:
                upload_blocks(drive, source, 150, negotiated, CHUNK)

        assert excinfo.value.index == 1
        assert m.call_count == 2

    def test_progress_callback(self, drive, source):
        """Test that progress is reported once per block."""
        negotiated = _negotiated(BlockExists("a"), BlockNeedsUpload("bm-1"), BlockExists("c"))
        calls = []
        with requests_mock.Mocker() as m:
            m.post(BLOCK_URL, json=_completed)
            upload_blocks(
                drive, source, 150, negotiated, CHUNK,
                progress=lambda done, total: calls.append((done, total)),
            )

        assert calls == [(1, 3), (2, 3), (3, 3)]
