"""
Unit tests for request-scoped artifact management.
"""

import asyncio
import os

import pytest

from docconvert.utils.error_handling import ConversionEnvironmentError, ErrorCode
from docconvert.utils.temp_file_manager import (
    CLEANUP_WARNING,
    ArtifactHandle,
    ArtifactState,
    allocate,
    artifact_scope,
    ensure_directory,
    new_token,
    stage_payload,
)


class TestAllocation:
    """Namespace allocation."""

    def test_tokens_never_collide(self):
        tokens = {new_token() for _ in range(10000)}
        assert len(tokens) == 10000

    def test_no_token_is_a_prefix_of_another(self, temp_dir):
        handles = [allocate(temp_dir) for _ in range(10000)]
        ids = sorted(handle.id for handle in handles)
        # Sorted order puts a prefix immediately before its extensions
        for current, following in zip(ids, ids[1:]):
            assert not following.startswith(current)

    def test_handle_layout(self, temp_dir):
        handle = allocate(temp_dir)
        assert handle.directory == temp_dir
        assert handle.base_path == temp_dir / handle.id
        assert handle.path_for("-html.html") == temp_dir / f"{handle.id}-html.html"
        assert handle.state is ArtifactState.ALLOCATED
        assert handle.paths == []

    def test_allocate_creates_missing_directory(self, tmp_path):
        directory = tmp_path / "nested" / "artifacts"
        handle = allocate(directory)
        assert directory.is_dir()
        assert handle.directory == directory

    def test_existing_directory_is_accepted(self, temp_dir):
        assert ensure_directory(temp_dir) == temp_dir
        assert ensure_directory(temp_dir) == temp_dir

    def test_directory_blocked_by_file_is_environment_error(self, tmp_path):
        blocker = tmp_path / "occupied"
        blocker.write_text("not a directory")
        with pytest.raises(ConversionEnvironmentError) as exc_info:
            allocate(blocker)
        assert exc_info.value.error_code is ErrorCode.TEMP_STORAGE_ERROR
        assert exc_info.value.status_code == 500


class TestLifecycle:
    """State transitions of an artifact handle."""

    def test_happy_path(self, temp_dir):
        handle = allocate(temp_dir)
        handle.transition(ArtifactState.PRODUCED)
        handle.transition(ArtifactState.NORMALIZED)
        handle.cleanup()
        assert handle.state is ArtifactState.CLEANED

    def test_failure_path(self, temp_dir):
        handle = allocate(temp_dir)
        handle.transition(ArtifactState.FAILED)
        handle.cleanup()
        assert handle.cleaned

    @pytest.mark.parametrize("start, target", [
        (ArtifactState.ALLOCATED, ArtifactState.NORMALIZED),
        (ArtifactState.NORMALIZED, ArtifactState.FAILED),
        (ArtifactState.FAILED, ArtifactState.PRODUCED),
    ])
    def test_invalid_transitions_are_rejected(self, temp_dir, start, target):
        handle = ArtifactHandle(temp_dir, new_token())
        handle.state = start
        with pytest.raises(RuntimeError):
            handle.transition(target)

    def test_register_after_cleanup_is_rejected(self, temp_dir):
        handle = allocate(temp_dir)
        handle.cleanup()
        with pytest.raises(RuntimeError):
            handle.register(handle.path_for(".pdf"))


class TestCleanup:
    """Cleanup of registered and leftover artifacts."""

    def test_removes_registered_and_prefixed_files(self, temp_dir, list_artifacts):
        handle = allocate(temp_dir)
        stage_payload(b"%PDF-", handle, "pdf")
        # Written by a process that died before the path was registered
        handle.path_for("-html.html").write_text("<html></html>")
        handle.path_for("001.png").write_bytes(b"png")
        unrelated = temp_dir / "someone-else.txt"
        unrelated.write_text("keep me")

        removed = handle.cleanup()

        assert removed == 3
        assert list_artifacts(temp_dir) == ["someone-else.txt"]

    def test_cleanup_twice_is_a_noop(self, temp_dir):
        handle = allocate(temp_dir)
        stage_payload(b"data", handle, "rtf")
        assert handle.cleanup() == 1
        assert handle.cleanup() == 0
        assert handle.cleaned

    def test_cleanup_with_nothing_written(self, temp_dir):
        handle = allocate(temp_dir)
        assert handle.cleanup() == 0

    def test_cleanup_tolerates_vanished_directory(self, tmp_path):
        directory = tmp_path / "gone"
        handle = allocate(directory)
        os.rmdir(directory)
        assert handle.cleanup() == 0
        assert handle.cleaned

    def test_failed_removal_is_logged_not_raised(self, temp_dir, monkeypatch, caplog):
        handle = allocate(temp_dir)
        path = stage_payload(b"data", handle, "doc")

        def refuse(target):
            raise PermissionError(13, "Permission denied", str(target))

        monkeypatch.setattr(os, "remove", refuse)
        assert handle.cleanup() == 0
        assert handle.cleaned
        assert path.exists()
        assert [r.levelname for r in caplog.records if CLEANUP_WARNING in r.getMessage()] == ["WARNING"]


class TestArtifactScope:
    """Cleanup bound to the scope of a conversion."""

    @pytest.mark.asyncio
    async def test_cleans_after_success(self, temp_dir, list_artifacts):
        async with artifact_scope(temp_dir) as handle:
            stage_payload(b"payload", handle, "pdf")
            handle.transition(ArtifactState.PRODUCED)
            handle.transition(ArtifactState.NORMALIZED)
            assert list_artifacts(temp_dir)
        assert handle.cleaned
        assert list_artifacts(temp_dir) == []

    @pytest.mark.asyncio
    async def test_cleans_after_error(self, temp_dir, list_artifacts):
        with pytest.raises(ValueError):
            async with artifact_scope(temp_dir) as handle:
                stage_payload(b"payload", handle, "pdf")
                raise ValueError("converter blew up")
        assert handle.cleaned
        assert list_artifacts(temp_dir) == []

    @pytest.mark.asyncio
    async def test_cleans_after_cancellation(self, temp_dir, list_artifacts):
        started = asyncio.Event()
        handles = []

        async def conversion():
            async with artifact_scope(temp_dir) as handle:
                handles.append(handle)
                stage_payload(b"payload", handle, "pdf")
                handle.path_for("-html.html").write_text("<html>partial")
                started.set()
                await asyncio.sleep(30)

        task = asyncio.create_task(conversion())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert handles[0].cleaned
        assert not [name for name in list_artifacts(temp_dir) if name.startswith(handles[0].id)]

    @pytest.mark.asyncio
    async def test_concurrent_scopes_do_not_interfere(self, temp_dir, list_artifacts):
        async def conversion(index):
            async with artifact_scope(temp_dir) as handle:
                path = stage_payload(str(index).encode(), handle, "txt")
                await asyncio.sleep(0)
                assert path.read_bytes() == str(index).encode()
                return handle.id

        ids = await asyncio.gather(*(conversion(i) for i in range(50)))
        assert len(set(ids)) == 50
        assert list_artifacts(temp_dir) == []
