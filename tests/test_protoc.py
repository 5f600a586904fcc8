import io
import os
import urllib.error
import zipfile

import pytest

from driftci.errors import FetchError
from driftci.model import Job, StepContext
from driftci.step_workflows import protoc
from driftci.step_workflows.protoc import Fetcher, detect_platform, fetch_protoc, release_url

BASE = "https://github.com/protocolbuffers/protobuf/releases/download"


def _zip(members):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buf.getvalue()


PROTOC_ZIP = _zip({
    "bin/protoc": "#!/bin/sh\necho libprotoc 21.4\n",
    "include/google/protobuf/any.proto": "syntax = \"proto3\";\n",
})


class FakeOpener:
    def __init__(self, payload=PROTOC_ZIP, error=None):
        self.payload = payload
        self.error = error
        self.urls = []

    def __call__(self, url, timeout=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return io.BytesIO(self.payload)


def test_release_url():
    assert release_url("21.4", "linux-x86_64", base=BASE) == (
        f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip"
    )
    assert release_url("3.19.4", "win64", base=BASE + "/") == f"{BASE}/v3.19.4/protoc-3.19.4-win64.zip"


@pytest.mark.parametrize(
    "system,machine,expected",
    [
        ("Linux", "x86_64", "linux-x86_64"),
        ("Linux", "aarch64", "linux-aarch_64"),
        ("Darwin", "arm64", "osx-aarch_64"),
        ("Darwin", "x86_64", "osx-x86_64"),
        ("Windows", "AMD64", "win64"),
    ],
)
def test_detect_platform(system, machine, expected):
    assert detect_platform(system, machine) == expected


def test_detect_platform_unsupported():
    with pytest.raises(FetchError, match="unsupported platform"):
        detect_platform("SunOS", "sparc")


class TestFetcher:
    def test_fetch_unpacks_and_marks_executable(self, tmp_path):
        opener = FakeOpener()

        binary = Fetcher(opener=opener).fetch(f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip", tmp_path / "protoc")

        assert binary == tmp_path / "protoc" / "bin" / "protoc"
        assert os.access(binary, os.X_OK)
        assert (tmp_path / "protoc" / "include" / "google" / "protobuf" / "any.proto").is_file()
        assert opener.urls == [f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip"]

    def test_network_error(self, tmp_path):
        opener = FakeOpener(error=urllib.error.URLError("no route to host"))

        with pytest.raises(FetchError, match="network error"):
            Fetcher(opener=opener).fetch(f"{BASE}/v21.4/protoc.zip", tmp_path)

    def test_http_error(self, tmp_path):
        url = f"{BASE}/v0.0.0/protoc-0.0.0-linux-x86_64.zip"
        opener = FakeOpener(error=urllib.error.HTTPError(url, 404, "Not Found", hdrs=None, fp=None))

        with pytest.raises(FetchError) as excinfo:
            Fetcher(opener=opener).fetch(url, tmp_path)

        assert "HTTP 404" in excinfo.value.message
        assert excinfo.value.details["url"] == url

    def test_corrupt_archive(self, tmp_path):
        with pytest.raises(FetchError, match="bad archive"):
            Fetcher(opener=FakeOpener(payload=b"not a zip")).fetch(f"{BASE}/x.zip", tmp_path)

    def test_archive_without_binary(self, tmp_path):
        opener = FakeOpener(payload=_zip({"readme.txt": "hi"}))

        with pytest.raises(FetchError, match="not found in archive"):
            Fetcher(opener=opener).fetch(f"{BASE}/x.zip", tmp_path)

    def test_rejects_members_outside_destination(self, tmp_path):
        opener = FakeOpener(payload=_zip({"../escape": "boom", "bin/protoc": "x"}))

        with pytest.raises(FetchError, match="escapes destination"):
            Fetcher(opener=opener).fetch(f"{BASE}/x.zip", tmp_path / "dest")

        assert not (tmp_path / "escape").exists()

    def test_download_cache(self, tmp_path):
        opener = FakeOpener()
        fetcher = Fetcher(opener=opener, cache_dir=tmp_path / "cache")
        url = f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip"

        fetcher.fetch(url, tmp_path / "one")
        fetcher.fetch(url, tmp_path / "two")

        assert len(opener.urls) == 1
        assert (tmp_path / "two" / "bin" / "protoc").is_file()

    def test_shared_cache_leaves_other_partial_downloads_alone(self, tmp_path):
        cache = tmp_path / "cache"
        cache.mkdir()
        foreign = cache / "protoc-21.4-linux-x86_64.zip.part"
        foreign.write_text("other run")
        url = f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip"

        binary = Fetcher(opener=FakeOpener(), cache_dir=cache).fetch(url, tmp_path / "dest")

        assert binary.is_file()
        assert foreign.read_text() == "other run"
        assert sorted(p.name for p in cache.iterdir()) == [
            "protoc-21.4-linux-x86_64.zip",
            "protoc-21.4-linux-x86_64.zip.part",
        ]

    def test_failed_download_removes_its_partial_file(self, tmp_path):
        cache = tmp_path / "cache"
        opener = FakeOpener(error=urllib.error.URLError("connection reset"))

        with pytest.raises(FetchError):
            Fetcher(opener=opener, cache_dir=cache).fetch(f"{BASE}/v21.4/protoc.zip", tmp_path / "dest")

        assert list(cache.iterdir()) == []


class TestFetchStep:
    def test_step_binds_binary(self, tmp_path, monkeypatch):
        fetched = []

        def fake_fetch(self, url, dest, *, executable="bin/protoc"):
            fetched.append((url, dest))
            binary = dest / executable
            binary.parent.mkdir(parents=True)
            binary.write_text("")
            return binary

        monkeypatch.setattr(protoc.Fetcher, "fetch", fake_fetch)
        step = fetch_protoc("21.4", base_url=BASE, platform="linux-x86_64")
        ctx = StepContext(job=Job(name="gen", steps=(step,)), workdir=tmp_path)

        result = protoc.run_step(step, ctx)

        expected = tmp_path / ".driftci" / "tools" / "protoc-21.4" / "bin" / "protoc"
        assert result.bindings == {"PROTOC": str(expected)}
        assert result.path == (str(expected.parent),)
        assert fetched[0][0] == f"{BASE}/v21.4/protoc-21.4-linux-x86_64.zip"

    def test_custom_binding_and_dest(self, tmp_path, monkeypatch):
        def fake_fetch(self, url, dest, *, executable="bin/protoc"):
            return dest / executable

        monkeypatch.setattr(protoc.Fetcher, "fetch", fake_fetch)
        step = fetch_protoc("3.19.4", dest="vendor/protoc", platform="win64", binding="PROTOC_BIN")
        ctx = StepContext(job=Job(name="gen", steps=(step,)), workdir=tmp_path)

        result = protoc.run_step(step, ctx)

        assert result.bindings == {"PROTOC_BIN": str(tmp_path / "vendor" / "protoc" / "bin" / "protoc.exe")}
