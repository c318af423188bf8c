import logging
import threading
from typing import Protocol

from xc_drive.types.upload_plan import UploadPlan
from xc_drive.types.upload_result import UploadResult
from xc_drive.types.upload_settings import UploadSettings
from xc_drive.types.upload_target import UploadTarget
from xc_drive.upload.engine import ChunkTransferEngine
from xc_drive.upload.finalizer import finalize_upload
from xc_drive.upload.fingerprint import compute_fingerprint
from xc_drive.upload.planner import plan_upload, validate_stream
from xc_drive.upload.progress import ProgressCallback, ProgressReporter
from xc_drive.upload.resume import negotiate_resume
from xc_drive.upload.stream import FileStream

logger = logging.getLogger(__name__)


class ChunkedUploadBackend(Protocol):
    """Wire operations of a provider that supports resumable chunked uploads."""

    def begin_upload(self, folder_id: str | None) -> UploadTarget: ...

    def upload_direct(
        self, target: UploadTarget, stream: FileStream
    ) -> str | None: ...

    def list_uploaded_chunks(
        self, target: UploadTarget, fingerprint: str
    ) -> list[int]: ...

    def upload_chunk(
        self,
        target: UploadTarget,
        data: bytes,
        *,
        index: int,
        total_chunks: int,
        fingerprint: str,
        filename: str,
    ) -> None: ...

    def merge_chunks(
        self,
        target: UploadTarget,
        *,
        fingerprint: str,
        filename: str,
        total_chunks: int,
    ) -> str | None: ...


class UploadPipeline:
    """Plan, fingerprint, negotiate, transfer and merge one upload."""

    def __init__(
        self,
        backend: ChunkedUploadBackend,
        settings: UploadSettings | None = None,
    ):
        self.backend = backend
        self.settings = settings or UploadSettings()

    def upload(
        self,
        stream: FileStream,
        folder_id: str | None = None,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UploadResult:
        validate_stream(stream)
        plan = plan_upload(
            stream.size,
            single_shot_threshold=self.settings.single_shot_threshold,
            chunk_size=self.settings.chunk_size,
        )
        reporter = ProgressReporter(progress)

        target = self.backend.begin_upload(folder_id)

        if not plan.chunked:
            logger.debug(f"Uploading {stream.name!r} ({stream.size} bytes) directly")
            file_id = self.backend.upload_direct(target, stream)
            reporter.report(100.0)
            logger.info(f"Uploaded {stream.name!r}")
            return UploadResult(
                filename=stream.name,
                size=stream.size,
                chunked=False,
                file_id=file_id,
            )

        if self.settings.max_workers > 1 and not stream.supports_ranged_reads():
            spooled, _ = stream.spool()
            with spooled:
                return self._upload_chunked(
                    spooled, plan, target, reporter, cancel_event
                )
        return self._upload_chunked(stream, plan, target, reporter, cancel_event)

    def _upload_chunked(
        self,
        stream: FileStream,
        plan: UploadPlan,
        target: UploadTarget,
        reporter: ProgressReporter,
        cancel_event: threading.Event | None,
    ) -> UploadResult:
        filename = stream.name
        fingerprint = compute_fingerprint(
            stream, prefix_size=self.settings.fingerprint_prefix_size
        )

        uploaded = negotiate_resume(
            lambda: self.backend.list_uploaded_chunks(target, fingerprint),
            plan.total_chunks,
        )

        def send_chunk(index: int, data: bytes) -> None:
            self.backend.upload_chunk(
                target,
                data,
                index=index,
                total_chunks=plan.total_chunks,
                fingerprint=fingerprint,
                filename=filename,
            )

        engine = ChunkTransferEngine(
            send_chunk,
            max_attempts=self.settings.max_chunk_attempts,
            retry_wait_min=self.settings.retry_wait_min,
            retry_wait_max=self.settings.retry_wait_max,
            max_workers=self.settings.max_workers,
            cancel_event=cancel_event,
        )
        summary = engine.run(stream, plan, uploaded, reporter)

        file_id = finalize_upload(
            self.backend,
            target,
            fingerprint=fingerprint,
            filename=filename,
            total_chunks=plan.total_chunks,
        )
        logger.info(
            f"Uploaded {filename!r} in {plan.total_chunks} chunks "
            + f"({len(summary.skipped)} resumed)"
        )
        return UploadResult(
            filename=filename,
            size=plan.total_size,
            chunked=True,
            total_chunks=plan.total_chunks,
            fingerprint=fingerprint,
            sent_chunks=summary.sent,
            skipped_chunks=summary.skipped,
            file_id=file_id,
        )
