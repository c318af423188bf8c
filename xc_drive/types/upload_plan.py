from pydantic import BaseModel, ConfigDict, Field


class UploadPlan(BaseModel):
    """How a file of a given size is sent: in one request or in chunks.

    A direct plan is modelled as a single chunk spanning the whole file.
    """

    model_config = ConfigDict(frozen=True)

    total_size: int = Field(..., gt=0, description="File size in bytes")
    chunk_size: int = Field(..., gt=0, description="Bytes per chunk")
    total_chunks: int = Field(..., gt=0, description="Number of chunks")
    chunked: bool = Field(..., description="False for a single-shot upload")

    def chunk_offset(self, index: int) -> int:
        self._check_index(index)
        return index * self.chunk_size

    def chunk_length(self, index: int) -> int:
        self._check_index(index)
        if index == self.total_chunks - 1:
            return self.total_size - index * self.chunk_size
        return self.chunk_size

    def chunk_lengths(self) -> list[int]:
        return [self.chunk_length(i) for i in range(self.total_chunks)]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.total_chunks:
            raise IndexError(
                f"Chunk index {index} out of range [0, {self.total_chunks})"
            )
