from dataclasses import replace
from pathlib import Path

from botocore.exceptions import NoCredentialsError
from conftest import FakeS3, client_error

from s3_publish.logs import ProgressLog
from s3_publish.options import Invocation, PublishOptions, key_prefix_translation
from s3_publish.publish import bucket_url, execute_publish, push_to_s3


def _params(**kw) -> PublishOptions:
    return PublishOptions(bucket_name="docs.example.com", region="us-west-2", **kw)


def test_bucket_url():
    assert bucket_url("docs.example.com", "us-west-2") == "http://docs.example.com.s3-website.us-west-2.amazonaws.com/"


def test_push_without_sync_never_lists_or_deletes(inv, fake_s3: FakeS3):
    fake_s3.objects["stale.html"] = b"old"

    result = push_to_s3(fake_s3, inv, _params())

    assert result.file_count == 3
    assert result.deleted == 0
    assert result.warnings == []
    assert result.bucket_url == "http://docs.example.com.s3-website.us-west-2.amazonaws.com/"
    assert fake_s3.list_calls == []
    assert fake_s3.delete_calls == []
    assert "stale.html" in fake_s3.objects


def test_sync_removes_objects_without_local_file(inv, fake_s3: FakeS3):
    fake_s3.objects.update({"stale.html": b"old", "index.html": b"previous"})

    result = push_to_s3(fake_s3, inv, _params(sync=True))

    assert result.file_count == 3
    assert result.deleted == 1
    assert sorted(fake_s3.objects) == ["about.html", "css/main.css", "index.html"]


def test_second_identical_sync_run_deletes_nothing(inv, fake_s3: FakeS3):
    fake_s3.objects["stale.html"] = b"old"
    first = push_to_s3(fake_s3, inv, _params(sync=True))
    second = push_to_s3(fake_s3, inv, _params(sync=True))

    assert first.deleted == 1
    assert second.deleted == 0
    assert second.file_count == first.file_count
    assert second.warnings == []


def test_failed_upload_does_not_protect_existing_object(inv, fake_s3: FakeS3):
    fake_s3.objects["about.html"] = b"old about"
    fake_s3.put_errors["about.html"] = client_error("InternalError", "oops")

    result = push_to_s3(fake_s3, inv, _params(sync=True))

    assert result.file_count == 2
    assert result.deleted == 1
    assert "about.html" not in fake_s3.objects


def test_warnings_are_ordered_by_phase(site: Path, inv, fake_s3: FakeS3):
    (site / ".index.html.s3params").write_text("nope")
    fake_s3.list_error = client_error("InternalError", "list broke", "ListObjectsV2")

    result = push_to_s3(fake_s3, inv, _params(sync=True, params_ext=".s3params"))

    assert len(result.warnings) == 2
    assert result.warnings[0].startswith("Failed to read and parse S3 params file")
    assert result.warnings[1] == "Failed to list objects in 's3://docs.example.com': InternalError: list broke"
    assert result.deleted == 0
    assert fake_s3.delete_calls == []


def test_execute_publish_requires_sha(site: Path, fake_s3: FakeS3):
    inv = Invocation(base_dir=str(site), sha=None)
    result = execute_publish(_params(), inv, s3=fake_s3)
    assert result.code == 99
    assert result.message == "SHA is not defined. I need that"
    assert fake_s3.puts == []


def test_execute_publish_links_to_index(inv, fake_s3: FakeS3):
    params = _params(path_to_index="index.html", link_label="Docs", path_translation=key_prefix_translation("{sha}"))

    result = execute_publish(params, inv, s3=fake_s3)

    url = "http://docs.example.com.s3-website.us-west-2.amazonaws.com/abc1234def/index.html"
    assert result.code == 0
    assert result.external_urls == [{"label": "Docs", "url": url}]
    assert "URL: " + url in inv.progress_log.lines
    assert f"3 files uploaded to {url}" in inv.progress_log.lines


def test_execute_publish_without_index_has_no_link(inv, fake_s3: FakeS3):
    result = execute_publish(_params(), inv, s3=fake_s3)
    assert result.code == 0
    assert result.external_urls == []


def test_execute_publish_fails_when_nothing_uploaded(inv, fake_s3: FakeS3):
    for key in ("about.html", "css/main.css", "index.html"):
        fake_s3.put_errors[key] = NoCredentialsError()

    result = execute_publish(_params(sync=True), inv, s3=fake_s3)

    assert result.code == 1
    assert len(fake_s3.puts) == 1


def test_execute_publish_succeeds_with_partial_warnings(inv, fake_s3: FakeS3):
    fake_s3.put_errors["about.html"] = client_error("InternalError", "oops")
    result = execute_publish(_params(), inv, s3=fake_s3)
    assert result.code == 0


def test_execute_publish_reports_unexpected_errors(site: Path):
    class Broken:
        def put_object(self, **kwargs):
            raise AssertionError("unreachable")

    def bad_translation(path, inv):
        raise RuntimeError("bad key template")

    inv = Invocation(base_dir=str(site), sha="abc", progress_log=ProgressLog())
    result = execute_publish(_params(path_translation=bad_translation), inv, s3=Broken())
    assert result.code == 98
    assert result.message == "bad key template"


def test_credential_give_up_leaves_remote_objects_alone(inv, fake_s3: FakeS3):
    fake_s3.objects.update({"css/main.css": b"old css", "index.html": b"old index", "stale.html": b"old"})
    fake_s3.put_errors["about.html"] = client_error("ExpiredToken", "The provided token has expired")

    result = push_to_s3(fake_s3, inv, _params(sync=True))

    assert result.file_count == 0
    assert result.deleted == 0
    assert fake_s3.list_calls == []
    assert fake_s3.delete_calls == []
    assert sorted(fake_s3.objects) == ["css/main.css", "index.html", "stale.html"]
    assert result.warnings[-1] == (
        "Not deleting objects in 's3://docs.example.com': uploads stopped after a credential failure"
    )


def test_sync_ignores_files_outside_base_dir(site: Path, inv, fake_s3: FakeS3):
    (site.parent / "shared.txt").write_text("secret")

    result = push_to_s3(fake_s3, inv, _params(files_to_publish=("../*.txt", "*.html")))

    assert result.file_count == 2
    assert sorted(p["Key"] for p in fake_s3.puts) == ["about.html", "index.html"]


def test_execute_publish_reports_index_link_errors(inv, fake_s3: FakeS3):
    def translation(path, inv):
        if path == "missing/index.html":
            raise KeyError(path)
        return path

    params = _params(path_translation=translation, path_to_index="missing/index.html")

    result = execute_publish(params, inv, s3=fake_s3)

    assert result.code == 98
    assert len(fake_s3.puts) == 3


def test_callback_picks_bucket_from_branch(inv, fake_s3: FakeS3):
    seen = []

    def per_branch(params, inv):
        seen.append(inv.branch)
        return replace(params, bucket_name=f"{inv.branch}.docs.example.com")

    result = execute_publish(_params(callback=per_branch, path_to_index="index.html"), inv, s3=fake_s3)

    assert seen == ["main"]
    assert result.code == 0
    assert {p["Bucket"] for p in fake_s3.puts} == {"main.docs.example.com"}
    assert result.external_urls[0]["url"] == "http://main.docs.example.com.s3-website.us-west-2.amazonaws.com/index.html"


def test_callback_can_set_key_translation(inv, fake_s3: FakeS3):
    def under_sha(params, inv):
        return replace(params, path_translation=key_prefix_translation("builds/{sha}"))

    result = execute_publish(_params(callback=under_sha), inv, s3=fake_s3)

    assert result.code == 0
    assert sorted(p["Key"] for p in fake_s3.puts) == [
        "builds/abc1234def/about.html",
        "builds/abc1234def/css/main.css",
        "builds/abc1234def/index.html",
    ]


def test_callback_failure_is_a_publish_error(inv, fake_s3: FakeS3):
    def bad_ext(params, inv):
        return replace(params, params_ext="s3params")

    result = execute_publish(_params(callback=bad_ext), inv, s3=fake_s3)

    assert result.code == 98
    assert "params_ext must start with '.'" in result.message
    assert fake_s3.puts == []


def test_callback_is_not_applied_without_sha(site: Path, fake_s3: FakeS3):
    def explode(params, inv):
        raise AssertionError("callback ran")

    inv = Invocation(base_dir=str(site), sha=None)
    assert execute_publish(_params(callback=explode), inv, s3=fake_s3).code == 99
