"""Tests for RestoreRequest parsing and the launcher helpers."""
from __future__ import annotations

import json
from datetime import datetime

import pytest

from asset_restore.errors import InvalidRequest
from asset_restore.request import RestoreRequest, manifest_key_for, split_project_path

LAUNCHER_PARAMS = {
    "restorePath": "Proj/Clips/",
    "assetBucketList": ["assets-a", " assets-b ", ""],
    "manifestLocalPath": "/tmp/manifest.csv",
    "manifestBucket": "manifests",
    "manifestKey": "batch-manifests/42_jane_doe_2024-01-02_03-04-05.csv",
    "roleArn": "arn:aws:iam::123456789012:role/batch-restore",
    "retrievalType": "Standard",
    "basePath": "/srv/Media/Assets/",
    "fileOwnerUid": 1000,
    "fileOwnerGid": 1000,
    "projectId": 42,
    "user": "jane.doe@example.com",
    "smtpServer": "smtp.example.com",
}


class TestFromJson:

    def test_launcher_blob(self):
        request = RestoreRequest.from_json(json.dumps(LAUNCHER_PARAMS))

        assert request.restore_path == "Proj/Clips/"
        assert request.asset_bucket_list == ["assets-a", "assets-b"]
        assert request.retrieval_type == "standard"
        assert request.base_path == "/srv/Media/Assets/"
        assert request.ownership == (1000, 1000)
        assert request.project_id == 42

    def test_defaults(self):
        blob = {k: LAUNCHER_PARAMS[k] for k in
                ("restorePath", "manifestBucket", "manifestKey", "basePath")}

        request = RestoreRequest.from_json(json.dumps(blob))

        assert request.retrieval_type == "bulk"
        assert request.manifest_local_path == "/tmp/manifest.csv"
        assert request.asset_bucket_list == []
        assert request.ownership is None

    def test_not_json(self):
        with pytest.raises(InvalidRequest, match="not valid JSON"):
            RestoreRequest.from_json("{nope")

    def test_not_an_object(self):
        with pytest.raises(InvalidRequest, match="JSON object"):
            RestoreRequest.from_json("[1, 2]")

    def test_missing_required_field(self):
        blob = dict(LAUNCHER_PARAMS)
        del blob["manifestKey"]
        with pytest.raises(InvalidRequest):
            RestoreRequest.from_json(json.dumps(blob))

    def test_negative_owner(self):
        blob = dict(LAUNCHER_PARAMS, fileOwnerUid=-5)
        with pytest.raises(InvalidRequest):
            RestoreRequest.from_json(json.dumps(blob))

    def test_request_is_immutable(self):
        request = RestoreRequest.from_json(json.dumps(LAUNCHER_PARAMS))
        with pytest.raises(Exception):
            request.restore_path = "other/"


class TestSources:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RESTORE_PARAMS", json.dumps(LAUNCHER_PARAMS))
        assert RestoreRequest.from_env().manifest_bucket == "manifests"

    def test_from_env_missing(self):
        with pytest.raises(InvalidRequest, match="RESTORE_PARAMS"):
            RestoreRequest.from_env()

    def test_from_file(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps(LAUNCHER_PARAMS))
        assert RestoreRequest.from_file(path).user == "jane.doe@example.com"

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(InvalidRequest, match="not found"):
            RestoreRequest.from_file(tmp_path / "nope.json")


def test_partial_ownership():
    blob = dict(LAUNCHER_PARAMS)
    del blob["fileOwnerUid"]
    request = RestoreRequest.from_json(json.dumps(blob))
    assert request.ownership == (-1, 1000)


class TestProjectPath:

    def test_split_at_assets(self):
        assert split_project_path("/srv/Media/Assets/Proj/Clips") == (
            "Proj/Clips/", "/srv/Media/Assets/")

    def test_split_without_marker(self):
        assert split_project_path("Proj/Clips") == ("Proj/Clips/", "Proj/Clips")

    def test_manifest_key(self):
        when = datetime(2024, 1, 2, 3, 4, 5)
        assert manifest_key_for(42, "jane.doe@example.com", when) == \
            "batch-manifests/42_jane_doe_2024-01-02_03-04-05.csv"

    def test_from_project_path(self):
        request = RestoreRequest.from_project_path(
            "/srv/Media/Assets/Proj/Clips",
            project_id=7,
            user="a.b.c@example.com",
            asset_buckets=["assets-a"],
            manifest_bucket="manifests",
            role_arn="arn:aws:iam::1:role/r",
            now=datetime(2024, 5, 6, 7, 8, 9),
        )

        assert request.restore_path == "Proj/Clips/"
        assert request.base_path == "/srv/Media/Assets/"
        assert request.manifest_key == "batch-manifests/7_a_b.c_2024-05-06_07-08-09.csv"
        assert request.retrieval_type == "bulk"
