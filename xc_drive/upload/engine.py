import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from pydantic import BaseModel, Field
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from xc_drive.exceptions import (
    ApiError,
    ChunkUploadError,
    NetworkError,
    ResponseDecodeError,
    UploadCancelledError,
)
from xc_drive.types.upload_plan import UploadPlan
from xc_drive.upload.progress import ProgressCallback, ProgressReporter
from xc_drive.upload.stream import FileStream

logger = logging.getLogger(__name__)

SendChunk = Callable[[int, bytes], None]


class TransferSummary(BaseModel):
    sent: list[int] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    bytes_read: int = 0


class ChunkTransferEngine:
    """Walks the planned chunks, skipping those the remote side already has.

    ``send_chunk(index, data)`` performs the actual request. It must raise
    :class:`NetworkError` for transient failures (retried with exponential
    backoff) and :class:`ChunkUploadError` for a rejection (not retried).

    The baseline is strictly sequential over a forward-only stream. With
    ``max_workers > 1`` and a stream that supports ranged reads, missing chunks
    are sent concurrently; progress is still reported from the calling thread.
    """

    def __init__(
        self,
        send_chunk: SendChunk,
        *,
        max_attempts: int = 3,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 30.0,
        max_workers: int = 1,
        cancel_event: threading.Event | None = None,
    ):
        self.send_chunk = send_chunk
        self.max_attempts = max_attempts
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max
        self.max_workers = max_workers
        self.cancel_event = cancel_event
        self._completed = 0

    def run(
        self,
        stream: FileStream,
        plan: UploadPlan,
        uploaded: set[int],
        progress: ProgressReporter | ProgressCallback | None = None,
    ) -> TransferSummary:
        reporter = (
            progress
            if isinstance(progress, ProgressReporter)
            else ProgressReporter(progress)
        )
        self._completed = 0

        if self.max_workers > 1:
            if stream.supports_ranged_reads():
                return self._run_parallel(stream, plan, uploaded, reporter)
            logger.debug(
                f"Stream {stream.name!r} has no ranged reads, sending sequentially"
            )
        return self._run_sequential(stream, plan, uploaded, reporter)

    def _run_sequential(
        self,
        stream: FileStream,
        plan: UploadPlan,
        uploaded: set[int],
        reporter: ProgressReporter,
    ) -> TransferSummary:
        summary = TransferSummary()

        for index in range(plan.total_chunks):
            self._check_cancelled(plan)
            length = plan.chunk_length(index)

            if index in uploaded:
                stream.skip(length)
                summary.skipped.append(index)
                logger.debug(f"Chunk {index + 1}/{plan.total_chunks} already uploaded")
            else:
                data = stream.read_exact(length)
                self._send(index, data, plan)
                summary.sent.append(index)
                logger.debug(f"Chunk {index + 1}/{plan.total_chunks} sent")

            summary.bytes_read += length
            self._completed += 1
            reporter.report_fraction(self._completed, plan.total_chunks)

        return summary

    def _run_parallel(
        self,
        stream: FileStream,
        plan: UploadPlan,
        uploaded: set[int],
        reporter: ProgressReporter,
    ) -> TransferSummary:
        summary = TransferSummary()
        # Skipped ranges are never read, so check the whole length up front
        stream.verify_length()

        for index in sorted(uploaded):
            summary.skipped.append(index)
            summary.bytes_read += plan.chunk_length(index)
            self._completed += 1
            reporter.report_fraction(self._completed, plan.total_chunks)

        pending = [i for i in range(plan.total_chunks) if i not in uploaded]
        logger.debug(
            f"Sending {len(pending)} chunks with {self.max_workers} workers"
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._send_range, stream, plan, index): index
                for index in pending
            }
            try:
                for future in as_completed(futures):
                    future.result()
                    summary.sent.append(futures[future])
                    summary.bytes_read += plan.chunk_length(futures[future])
                    self._completed += 1
                    reporter.report_fraction(self._completed, plan.total_chunks)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        summary.sent.sort()
        return summary

    def _send_range(self, stream: FileStream, plan: UploadPlan, index: int) -> None:
        self._check_cancelled(plan)
        data = stream.read_range(plan.chunk_offset(index), plan.chunk_length(index))
        self._send(index, data, plan)

    def _send(self, index: int, data: bytes, plan: UploadPlan) -> None:
        send = retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max
            ),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(self.send_chunk)

        try:
            send(index, data)
        except NetworkError as e:
            logger.error(
                f"Chunk {index + 1}/{plan.total_chunks} failed "
                + f"after {self.max_attempts} attempts: {e}"
            )
            raise ChunkUploadError(index, e) from e
        except (ApiError, ResponseDecodeError) as e:
            logger.error(f"Chunk {index + 1}/{plan.total_chunks} rejected: {e}")
            raise ChunkUploadError(index, e) from e
        except ChunkUploadError as e:
            logger.error(f"Chunk {index + 1}/{plan.total_chunks} rejected: {e}")
            raise

    def _check_cancelled(self, plan: UploadPlan) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise UploadCancelledError(self._completed, plan.total_chunks)
