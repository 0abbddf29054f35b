"""Tests for the mpupload command line."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from mpupload import main as cli
from mpupload.common.config import Settings
from mpupload.infra.storage.client import StorageError
from tests.services.mock_storage import MockStorageClient


@pytest.fixture()
def storage():
    storage = MockStorageClient()
    with patch.object(cli, "build_storage_client", return_value=storage):
        yield storage


class TestUpload:
    def test_success_exits_zero(self, storage, capsys):
        code = cli.main(["bucket", "obj/key", "us-east-1", "5", "5", "5"])

        assert code == 0
        assert "Uploaded s3://bucket/obj/key in 3 parts" in capsys.readouterr().out
        assert storage.names() == [
            "init",
            "upload_part",
            "upload_part",
            "upload_part",
            "complete",
        ]
        assert [c["size"] for c in storage.calls_to("upload_part")] == [5, 5, 5]

    def test_part_failure_exits_one_and_names_destination(self, storage, capsys):
        storage.fail_parts[2] = StorageError("EntityTooSmall")

        code = cli.main(["bucket", "obj/key", "us-east-1", "5", "5"])

        assert code == 1
        err = capsys.readouterr().err
        assert "Bucket: bucket, key: obj/key" in err
        assert "EntityTooSmall" in err
        assert storage.names()[-1] == "abort"

    def test_failure_is_reported_once(self, storage, capsys):
        storage.fail_parts[1] = StorageError("EntityTooSmall")

        code = cli.main(["bucket", "obj/key", "us-east-1", "5"])

        assert code == 1
        assert capsys.readouterr().err.count("EntityTooSmall") == 1

    def test_begin_failure_exits_one_without_abort(self, storage, capsys):
        storage.fail_init = StorageError("NoSuchBucket")

        code = cli.main(["bucket", "obj/key", "us-east-1", "5"])

        assert code == 1
        assert "NoSuchBucket" in capsys.readouterr().err
        assert storage.names() == ["init"]

    def test_reads_parts_from_source_file(self, storage, tmp_path):
        source = tmp_path / "payload.bin"
        source.write_bytes(b"0123456789abc")

        code = cli.main(
            ["bucket", "k", "us-east-1", "4", "6", "--source", str(source)]
        )

        assert code == 0
        assert storage.objects["bucket/k"]["content"] == b"0123456789"

    def test_passes_content_type(self, storage):
        cli.main(["bucket", "k", "us-east-1", "1", "--content-type", "text/plain"])

        assert storage.calls_to("init")[0]["content_type"] == "text/plain"

    def test_writes_metrics_textfile(self, storage, tmp_path):
        path = tmp_path / "metrics.prom"

        cli.main(["bucket", "k", "us-east-1", "3", "--metrics-textfile", str(path)])

        assert "multipart_uploads_total" in path.read_text(encoding="utf-8")


class TestArguments:
    @pytest.mark.parametrize("size", ["0", "-3", "abc", "1.5"])
    def test_rejects_invalid_sizes(self, storage, size):
        with pytest.raises(SystemExit) as exc:
            cli.main(["bucket", "k", "us-east-1", "5", size])

        assert exc.value.code == 2
        assert storage.calls == []

    def test_requires_at_least_one_size(self, storage):
        with pytest.raises(SystemExit) as exc:
            cli.main(["bucket", "k", "us-east-1"])

        assert exc.value.code == 2
        assert storage.calls == []

    def test_rejects_source_smaller_than_parts(self, storage, tmp_path):
        source = tmp_path / "small.bin"
        source.write_bytes(b"abc")

        with pytest.raises(SystemExit) as exc:
            cli.main(["bucket", "k", "us-east-1", "2", "2", "--source", str(source)])

        assert exc.value.code == 2
        assert storage.calls == []

    def test_rejects_missing_source(self, storage, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli.main(
                ["b", "k", "us-east-1", "2", "--source", str(tmp_path / "nope.bin")]
            )

        assert exc.value.code == 2
        assert storage.calls == []

    def test_rejects_directory_as_source(self, storage, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli.main(["b", "k", "us-east-1", "2", "--source", str(tmp_path)])

        assert exc.value.code == 2
        assert storage.calls == []


class TestSettings:
    def test_region_and_endpoint_override_environment(self, monkeypatch):
        monkeypatch.setenv("S3_REGION", "eu-west-1")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://env:9000")
        args = cli.build_parser().parse_args(
            ["b", "k", "ap-south-1", "1", "--endpoint-url", "http://cli:9000"]
        )

        settings = cli.resolve_settings(args, Settings.from_environment())

        assert settings.S3_REGION == "ap-south-1"
        assert settings.S3_ENDPOINT_URL == "http://cli:9000"

    def test_environment_used_when_option_absent(self, monkeypatch):
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://env:9000")
        monkeypatch.setenv("LOG_FORMAT", "json")
        args = cli.build_parser().parse_args(["b", "k", "us-east-1", "1"])

        settings = cli.resolve_settings(args, Settings.from_environment())

        assert settings.S3_ENDPOINT_URL == "http://env:9000"
        assert settings.LOG_FORMAT == "json"

    def test_storage_client_built_for_cli_region(self):
        with patch.object(
            cli, "build_storage_client", return_value=MockStorageClient()
        ) as build:
            cli.main(["b", "k", "sa-east-1", "1"])

        assert build.call_args.args[0].S3_REGION == "sa-east-1"

    def test_client_creation_failure_exits_one(self, capsys):
        with patch.object(
            cli, "build_storage_client", side_effect=StorageError("bad region")
        ):
            code = cli.main(["b", "k", "mars-1", "1"])

        assert code == 1
        err = capsys.readouterr().err
        assert "'b'" in err and "'k'" in err and "bad region" in err
