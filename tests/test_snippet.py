"""Tests for single-shot (snippet) mode."""

from __future__ import annotations

import asyncio
import io

import pytest

from core.domain.models import FilePayload
from core.errors import InputError, TransportError
from core.services.snippet import default_filename, spool_to_tempfile, upload_file, upload_stream


class TestSpool:
    def test_spooled_file_has_one_line_per_input_line(self, tmp_path):
        path = asyncio.run(spool_to_tempfile(io.StringIO("a\nb\nc"), directory=str(tmp_path)))

        assert path.name.startswith("slackcat-")
        assert path.read_text(encoding="utf-8") == "a\nb\nc\n"

    def test_empty_input_gives_empty_file(self, tmp_path):
        path = asyncio.run(spool_to_tempfile(io.StringIO(""), directory=str(tmp_path)))

        assert path.read_text(encoding="utf-8") == ""

    def test_tee(self, tmp_path):
        echo = io.StringIO()
        asyncio.run(spool_to_tempfile(io.StringIO("a\n"), tee=True, echo=echo, directory=str(tmp_path)))

        assert echo.getvalue() == "a\n"


class TestUploadStream:
    def test_default_filename_and_payload(self, sender):
        """["a","b","c"] without a filename -> one payload "a\\nb\\nc\\n" named by timestamp."""
        asyncio.run(upload_stream(sender, io.StringIO("a\nb\nc\n")))

        (payload, content), = sender.files
        assert content == "a\nb\nc\n"
        assert payload.filename.isdigit()
        assert not payload.path.exists()

    def test_metadata_is_forwarded(self, sender):
        asyncio.run(
            upload_stream(
                sender,
                io.StringIO("x\n"),
                filename="out.py",
                filetype="python",
                comment="see this",
            )
        )

        payload, _ = sender.files[0]
        assert (payload.filename, payload.filetype, payload.comment) == ("out.py", "python", "see this")

    def test_delivery_failure_is_fatal(self, make_sender):
        sender = make_sender(fail_files=True)

        with pytest.raises(TransportError, match="invalid_auth"):
            asyncio.run(upload_stream(sender, io.StringIO("x\n")))

    def test_missing_file_is_input_error(self, sender, tmp_path):
        payload = FilePayload(path=tmp_path / "missing.log", filename="missing.log")

        with pytest.raises(InputError):
            asyncio.run(upload_file(sender, payload))

        assert sender.files == []


def test_default_filename_is_unix_timestamp():
    assert default_filename().isdigit()
    assert len(default_filename()) >= 10
