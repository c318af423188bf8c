from .engine import ChunkTransferEngine, TransferSummary
from .finalizer import finalize_upload
from .fingerprint import compute_fingerprint
from .pipeline import ChunkedUploadBackend, UploadPipeline
from .planner import plan_upload, validate_stream
from .progress import ProgressReporter, TqdmProgress
from .resume import negotiate_resume
from .stream import FileStream

__all__ = [
    "ChunkTransferEngine",
    "ChunkedUploadBackend",
    "FileStream",
    "ProgressReporter",
    "TqdmProgress",
    "TransferSummary",
    "UploadPipeline",
    "compute_fingerprint",
    "finalize_upload",
    "negotiate_resume",
    "plan_upload",
    "validate_stream",
]
