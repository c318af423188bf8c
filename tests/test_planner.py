import math

import pytest

from xc_drive import DEFAULT_CHUNK_SIZE, DEFAULT_SINGLE_SHOT_THRESHOLD, GiB, MiB
from xc_drive.exceptions import InvalidInputError
from xc_drive.upload.planner import plan_upload, validate_stream
from xc_drive.upload.stream import FileStream


def test_defaults_match_provider_limits():
    assert DEFAULT_SINGLE_SHOT_THRESHOLD == 1 * GiB
    assert DEFAULT_CHUNK_SIZE == 100 * MiB


def test_250_mib_file_yields_three_chunks():
    plan = plan_upload(250 * MiB, single_shot_threshold=100 * MiB, chunk_size=100 * MiB)

    assert plan.chunked
    assert plan.total_chunks == 3
    assert plan.chunk_lengths() == [100 * MiB, 100 * MiB, 50 * MiB]
    assert plan.chunk_offset(2) == 200 * MiB


def test_ten_mib_file_is_direct():
    plan = plan_upload(10 * MiB)

    assert not plan.chunked
    assert plan.total_chunks == 1
    assert plan.chunk_lengths() == [10 * MiB]


def test_size_at_threshold_is_direct():
    assert not plan_upload(1 * GiB).chunked
    assert plan_upload(1 * GiB + 1).chunked


def test_exact_multiple_has_full_last_chunk():
    plan = plan_upload(300, single_shot_threshold=0, chunk_size=100)

    assert plan.total_chunks == 3
    assert plan.chunk_lengths() == [100, 100, 100]


@pytest.mark.parametrize("size", [1, 99, 100, 101, 199, 200, 201, 12345, 99999])
def test_chunk_lengths_sum_to_size(size):
    plan = plan_upload(size, single_shot_threshold=0, chunk_size=100)

    assert plan.total_chunks == math.ceil(size / 100)
    assert sum(plan.chunk_lengths()) == size
    assert all(0 < length <= 100 for length in plan.chunk_lengths())


@pytest.mark.parametrize("size", [0, -1])
def test_non_positive_size_is_rejected(size):
    with pytest.raises(InvalidInputError):
        plan_upload(size)


def test_chunk_index_out_of_range():
    plan = plan_upload(250, single_shot_threshold=0, chunk_size=100)

    with pytest.raises(IndexError):
        plan.chunk_length(3)


def test_validate_stream_rejects_empty_filename():
    with pytest.raises(InvalidInputError):
        validate_stream(FileStream.from_bytes(b"data", name=""))


def test_validate_stream_rejects_empty_content():
    with pytest.raises(InvalidInputError):
        validate_stream(FileStream.from_bytes(b"", name="empty.bin"))
