"""Tests for chunk naming, slicing and uploading."""

import json
import math
import os

import pytest

from dialogue_stt.domain.chunking import (
    chunk_count,
    chunk_object_name,
    correlation_id,
    iter_chunks,
    select_chunks,
)
from dialogue_stt.exceptions import StorageUploadError
from dialogue_stt.handlers import ChunkUploader

MIB = 1024 * 1024


class TestChunkRules:
    """Tests for the pure chunking helpers."""

    @pytest.mark.parametrize("size,chunk_size", [(0, 4), (1, 4), (4, 4), (5, 4), (10 * MIB, 4 * MIB), (999, 7)])
    def test_reassembly_reproduces_blob(self, size: int, chunk_size: int):
        """Concatenating chunks in index order gives back the original bytes."""
        data = os.urandom(size)
        chunks = list(iter_chunks(data, chunk_size))

        assert [index for index, _ in chunks] == list(range(math.ceil(size / chunk_size)))
        assert b"".join(payload for _, payload in chunks) == data
        assert all(len(payload) <= chunk_size for _, payload in chunks)

    def test_chunk_count_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            chunk_count(10, 0)

    def test_object_name_is_zero_padded(self):
        assert chunk_object_name("recordings/abc", 7) == "recordings/abc/chunk-00007.webm"

    def test_select_chunks_filters_and_sorts(self):
        names = [
            "recordings/abc/manifest.json",
            "recordings/abc/chunk-00010.webm",
            "recordings/abc/chunk-00002.webm",
            "recordings/abc/merged.m4a",
            "recordings/abc/chunk-1.webm",
            "recordings/abc/chunk-00000.webm",
        ]

        assert select_chunks(names) == [
            "recordings/abc/chunk-00000.webm",
            "recordings/abc/chunk-00002.webm",
            "recordings/abc/chunk-00010.webm",
        ]

    def test_correlation_id_is_last_segment(self):
        assert correlation_id("recordings/req_123") == "req_123"
        assert correlation_id("req_123/") == "req_123"


class TestChunkUploader:
    """Tests for ChunkUploader.upload_in_chunks."""

    def test_ten_mib_in_four_mib_chunks(self, storage):
        """A 10 MiB blob becomes three chunks and a manifest written last."""
        data = os.urandom(10 * MIB)
        progress = []

        result = ChunkUploader(storage, "audio-uploads").upload_in_chunks(
            data, prefix="recordings/session-1", chunk_size=4 * MIB, on_progress=progress.append
        )

        assert result.upload_id == "recordings/session-1"
        assert result.manifest_path == "recordings/session-1/manifest.json"
        assert result.manifest.chunk_count == 3
        assert storage.upload_order == [
            "recordings/session-1/chunk-00000.webm",
            "recordings/session-1/chunk-00001.webm",
            "recordings/session-1/chunk-00002.webm",
            "recordings/session-1/manifest.json",
        ]
        assert [(p.completed_chunks, p.total_chunks) for p in progress] == [(1, 3), (2, 3), (3, 3)]

        reassembled = b"".join(
            storage.objects[("audio-uploads", f"recordings/session-1/chunk-{i:05d}.webm")]
            for i in range(3)
        )
        assert reassembled == data

    def test_manifest_document(self, storage):
        ChunkUploader(storage, "audio-uploads").upload_in_chunks(
            b"x" * 10, prefix="recordings/m", chunk_size=3
        )

        manifest = json.loads(storage.objects[("audio-uploads", "recordings/m/manifest.json")])
        assert manifest["version"] == 1
        assert manifest["bucket"] == "audio-uploads"
        assert manifest["prefix"] == "recordings/m"
        assert manifest["mimeType"] == "audio/webm"
        assert manifest["size"] == 10
        assert manifest["chunkSize"] == 3
        assert manifest["chunkCount"] == math.ceil(manifest["size"] / manifest["chunkSize"])
        assert "createdAt" in manifest

    def test_generates_prefix(self, storage):
        result = ChunkUploader(storage, "audio-uploads").upload_in_chunks(b"abc")

        assert result.upload_id.startswith("recordings/")
        assert len(result.upload_id) > len("recordings/")

    def test_empty_blob_writes_only_manifest(self, storage):
        result = ChunkUploader(storage, "audio-uploads").upload_in_chunks(b"", prefix="recordings/empty")

        assert result.manifest.chunk_count == 0
        assert storage.upload_order == ["recordings/empty/manifest.json"]

    def test_failed_chunk_aborts_before_manifest(self, storage):
        storage.fail_uploads_for.add("recordings/f/chunk-00001.webm")

        with pytest.raises(StorageUploadError):
            ChunkUploader(storage, "audio-uploads").upload_in_chunks(
                b"0123456789", prefix="recordings/f", chunk_size=4
            )

        assert storage.upload_order == ["recordings/f/chunk-00000.webm"]

    def test_invalid_chunk_size(self, storage):
        with pytest.raises(ValueError):
            ChunkUploader(storage, "audio-uploads").upload_in_chunks(b"abc", chunk_size=0)
