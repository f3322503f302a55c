from __future__ import annotations

import io
import json
import zipfile

import pytest

from artifact_pipeline import (
    ARCHIVE_MIME_TYPE,
    GENERIC_ERROR_MESSAGE,
    ArchiveDecodeError,
    HandleRegistry,
    ResponseArtifactPipeline,
    display_name,
    image_mime_type,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_archive(entries, directories=(), compression=zipfile.ZIP_DEFLATED) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression) as zf:
        for name in directories:
            zf.writestr(zipfile.ZipInfo(name), b"")
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()


def test_five_entry_archive_yields_three_images_and_one_archive() -> None:
    raw = make_archive([
        ("lens_line.png", PNG_BYTES),
        ("params.json", b"{}"),
        ("lens_polar.JPG", b"jpeg-1"),
        ("log.txt", b"done"),
        ("plots/lens_field.jpeg", b"jpeg-2"),
    ])
    pipeline = ResponseArtifactPipeline()
    artifacts = pipeline.on_success(raw)

    assert [image.name for image in artifacts.images] == [
        "lens_line.png", "lens_polar.JPG", "plots/lens_field.jpeg",
    ]
    assert [image.handle.mime_type for image in artifacts.images] == ["image/png", "image/jpeg", "image/jpeg"]
    assert len(pipeline.registry) == 4
    assert pipeline.resolve(artifacts.images[0].handle) == PNG_BYTES
    assert pipeline.resolve(artifacts.archive_handle) == raw
    assert artifacts.archive_handle.mime_type == ARCHIVE_MIME_TYPE


@pytest.mark.parametrize("count", [0, 1, 7])
def test_image_handle_count_matches_image_entries(count) -> None:
    entries = [(f"lens_{i}.png", PNG_BYTES) for i in range(count)] + [("readme.txt", b"x")]
    pipeline = ResponseArtifactPipeline(max_workers=2)
    artifacts = pipeline.on_success(make_archive(entries))

    assert len(artifacts.images) == count
    assert len(set(h.handle_id for h in artifacts.handles)) == count + 1
    assert len(pipeline.registry) == count + 1


def test_directory_entries_are_skipped() -> None:
    raw = make_archive([("plots/lens_a.png", PNG_BYTES)], directories=["plots/", "plots/empty/"])
    pipeline = ResponseArtifactPipeline()
    artifacts = pipeline.on_success(raw)
    assert [image.name for image in artifacts.images] == ["plots/lens_a.png"]
    assert len(pipeline.registry) == 2


def test_invalid_archive_raises_and_registers_nothing() -> None:
    pipeline = ResponseArtifactPipeline()
    with pytest.raises(ArchiveDecodeError):
        pipeline.on_success(b"definitely not a zip")
    assert len(pipeline.registry) == 0


def test_corrupt_entry_fails_whole_call() -> None:
    raw = bytearray(make_archive(
        [("lens_a.png", PNG_BYTES), ("lens_b.png", b"B" * 64)], compression=zipfile.ZIP_STORED
    ))
    # flip a byte inside the stored data of the second entry
    offset = raw.find(b"lens_b.png") + len("lens_b.png")
    raw[offset + 2] ^= 0xFF
    pipeline = ResponseArtifactPipeline()
    with pytest.raises(ArchiveDecodeError):
        pipeline.on_success(bytes(raw))
    assert len(pipeline.registry) == 0


def corrupt_lzma_archive() -> bytes:
    raw = bytearray(make_archive(
        [("lens_a.png", PNG_BYTES), ("lens_b.png", PNG_BYTES)], compression=zipfile.ZIP_LZMA
    ))
    # overwrite the lzma properties header of the first entry
    offset = raw.find(b"lens_a.png") + len("lens_a.png")
    for i in range(offset, offset + 16):
        raw[i] ^= 0xFF
    return bytes(raw)


def test_corrupt_lzma_entry_fails_whole_call() -> None:
    pipeline = ResponseArtifactPipeline()
    with pytest.raises(ArchiveDecodeError, match="Failed to decode archive entry"):
        pipeline.on_success(corrupt_lzma_archive())
    assert len(pipeline.registry) == 0


def test_on_failure_reads_detail_error() -> None:
    body = json.dumps({"detail": {"error": "bad radius"}}).encode()
    assert ResponseArtifactPipeline().on_failure(body, RuntimeError("HTTP 400")) == "bad radius"


def test_on_failure_falls_back_to_detail_message() -> None:
    body = json.dumps({"detail": {"message": "x"}}).encode()
    assert ResponseArtifactPipeline().on_failure(body, RuntimeError("HTTP 400")) == "x"


def test_on_failure_accepts_plain_and_validation_details() -> None:
    pipeline = ResponseArtifactPipeline()
    assert pipeline.on_failure(b'{"detail": "Not Found"}', None) == "Not Found"
    body = json.dumps({"detail": [
        {"loc": ["body", "radiusRatio"], "msg": "field required"},
        {"loc": ["body", "plot_type"], "msg": "bad value"},
    ]}).encode()
    assert pipeline.on_failure(body, None) == "field required; bad value"


@pytest.mark.parametrize("body", [b"\xff\xfe\x00garbage", b"<html>502</html>"])
def test_on_failure_uses_transport_message_for_undecodable_body(body) -> None:
    assert ResponseArtifactPipeline().on_failure(body, ConnectionError("Network Error")) == "Network Error"


@pytest.mark.parametrize("body", [b'{"detail": {}}', b'{"detail": null}', b'{"status": "failed"}', b"[1, 2]"])
def test_on_failure_parsed_body_without_message_is_generic(body) -> None:
    error = RuntimeError("Request failed with status code 500")
    assert ResponseArtifactPipeline().on_failure(body, error) == GENERIC_ERROR_MESSAGE


def test_on_failure_generic_fallback() -> None:
    pipeline = ResponseArtifactPipeline()
    assert pipeline.on_failure(None, None) == GENERIC_ERROR_MESSAGE
    assert pipeline.on_failure(b"", Exception()) == GENERIC_ERROR_MESSAGE
    assert pipeline.on_failure(b"not json", None) == GENERIC_ERROR_MESSAGE


def test_revoke_is_idempotent() -> None:
    pipeline = ResponseArtifactPipeline()
    artifacts = pipeline.on_success(make_archive([("lens_a.png", PNG_BYTES), ("lens_b.png", PNG_BYTES)]))
    assert len(pipeline.registry) == 3

    assert pipeline.revoke(artifacts) == 3
    assert len(pipeline.registry) == 0
    assert pipeline.revoke(artifacts) == 0
    assert len(pipeline.registry) == 0
    assert pipeline.revoke(None) == 0

    with pytest.raises(KeyError):
        pipeline.resolve(artifacts.archive_handle)


def test_revoke_single_handle_leaves_others() -> None:
    pipeline = ResponseArtifactPipeline()
    first = pipeline.on_success(make_archive([("lens_a.png", PNG_BYTES)]))
    second = pipeline.on_success(make_archive([("lens_b.png", PNG_BYTES)]))

    pipeline.revoke(first.images[0].handle)
    assert first.images[0].handle not in pipeline.registry
    assert first.archive_handle in pipeline.registry
    assert all(h in pipeline.registry for h in second.handles)

    assert pipeline.revoke_all() == 3
    assert len(pipeline.registry) == 0


def test_registry_issues_unique_handles() -> None:
    registry = HandleRegistry()
    a = registry.register(b"a", "image/png")
    b = registry.register(b"a", "image/png")
    assert a != b
    assert registry.resolve(a) == registry.resolve(b) == b"a"
    assert registry.revoke(a)
    assert not registry.revoke(a)


def test_submit_requires_transport() -> None:
    from lens_model import SimulationParameters

    with pytest.raises(RuntimeError):
        ResponseArtifactPipeline().submit(SimulationParameters())


def test_name_helpers() -> None:
    assert image_mime_type("lens_a.PNG") == "image/png"
    assert image_mime_type("lens_a.png.txt") is None
    assert display_name("lens_polar.png") == "polar"
    assert display_name("out/lens_line_plot.jpeg") == "line_plot"
    assert display_name("field.jpg") == "field"
