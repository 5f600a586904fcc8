# step_workflows/protoc.py
"""
Schema compiler fetcher.

Downloads a versioned protoc release archive, unpacks it into a job-local
directory and hands the binary location to later steps as a binding.
"""
from __future__ import annotations

import os
import platform as _platform
import shutil
import stat
import tempfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path
from typing import Callable

from .. import settings
from ..errors import FetchError
from ..model import Step, StepContext, StepResult

DEFAULT_ARTIFACT = "protoc"


def release_url(
    version: str,
    platform: str,
    *,
    base: str | None = None,
    artifact: str = DEFAULT_ARTIFACT,
) -> str:
    """{base}/v{version}/{artifact}-{version}-{platform}.zip"""
    base = (base or settings.PROTOC_BASE_URL).rstrip("/")
    return f"{base}/v{version}/{artifact}-{version}-{platform}.zip"


def detect_platform(system: str | None = None, machine: str | None = None) -> str:
    """Map the host to protoc's release naming."""
    system = (system or _platform.system()).lower()
    machine = (machine or _platform.machine()).lower()

    if system == "windows":
        return "win64"
    arch = "aarch_64" if machine in ("arm64", "aarch64") else "x86_64"
    if system == "darwin":
        return f"osx-{arch}"
    if system == "linux":
        return f"linux-{arch}"
    raise FetchError(job="", step=None, message=f"unsupported platform: {system}/{machine}")


def executable_name(platform: str) -> str:
    return "bin/protoc.exe" if platform.startswith("win") else "bin/protoc"


# ---------------------------------------------------------------------
# Fetch step helper
# ---------------------------------------------------------------------

def fetch_protoc(
    version: str | None = None,
    *,
    dest: str | None = None,
    base_url: str | None = None,
    platform: str | None = None,
    binding: str = "PROTOC",
    name: str = "Install protoc",
) -> Step:
    """Create a step that fetches protoc and binds its path for later steps."""
    return Step(
        name=name,
        kind="fetch",
        data={
            "version": version or settings.PROTOC_VERSION,
            "dest": dest,
            "base_url": base_url,
            "platform": platform,
            "binding": binding,
        },
    )


# ---------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------

class Fetcher:
    """Download + unpack a zip release. Every failure is a FetchError."""

    def __init__(
        self,
        *,
        timeout: int | None = None,
        cache_dir: str | Path | None = None,
        opener: Callable = urllib.request.urlopen,
    ):
        self.timeout = settings.DOWNLOAD_TIMEOUT if timeout is None else timeout
        cache_dir = settings.DOWNLOAD_CACHE if cache_dir is None else cache_dir
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir else None
        self._open = opener

    def _download(self, url: str, target: Path) -> None:
        # unique partial file: several runs may share one cache directory
        tmp: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=target.parent, prefix=target.name + ".", suffix=".part", delete=False
            ) as fh:
                tmp = Path(fh.name)
                with self._open(url, timeout=self.timeout) as resp:
                    shutil.copyfileobj(resp, fh)
            tmp.replace(target)
        except urllib.error.HTTPError as e:
            raise FetchError(job="", step=None, message=f"download failed: HTTP {e.code} {e.reason}", details={"url": url}) from e
        except urllib.error.URLError as e:
            raise FetchError(job="", step=None, message=f"network error: {e.reason}", details={"url": url}) from e
        except OSError as e:
            raise FetchError(job="", step=None, message=f"download failed: {e}", details={"url": url}) from e
        finally:
            if tmp is not None and tmp.exists():
                tmp.unlink(missing_ok=True)

    def _archive_for(self, url: str, scratch: Path) -> Path:
        filename = url.rstrip("/").rsplit("/", 1)[-1]
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            cached = self.cache_dir / filename
            if not cached.exists():
                self._download(url, cached)
            return cached
        archive = scratch / filename
        self._download(url, archive)
        return archive

    @staticmethod
    def _unpack(archive: Path, dest: Path) -> None:
        dest_resolved = dest.resolve()
        try:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    target = (dest_resolved / member).resolve()
                    if target != dest_resolved and dest_resolved not in target.parents:
                        raise FetchError(
                            job="",
                            step=None,
                            message="archive member escapes destination",
                            details={"member": member},
                        )
                zf.extractall(dest_resolved)
        except zipfile.BadZipFile as e:
            raise FetchError(job="", step=None, message=f"bad archive: {e}", details={"archive": str(archive)}) from e

    def fetch(self, url: str, dest: str | Path, *, executable: str = "bin/protoc") -> Path:
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="driftci-fetch-") as scratch:
            archive = self._archive_for(url, Path(scratch))
            self._unpack(archive, dest)

        binary = dest / executable
        if not binary.is_file():
            raise FetchError(
                job="",
                step=None,
                message=f"{executable} not found in archive",
                details={"url": url, "dest": str(dest)},
            )
        # zipfile drops unix permissions
        binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return binary


# ---------------------------------------------------------------------
# Fetch step execution
# ---------------------------------------------------------------------

def run_step(step: Step, ctx: StepContext) -> StepResult:
    version = step.data.get("version") or settings.PROTOC_VERSION
    plat = step.data.get("platform") or detect_platform()
    url = release_url(version, plat, base=step.data.get("base_url"))

    dest = step.data.get("dest")
    dest_path = Path(os.path.expanduser(dest)) if dest else ctx.workdir / ".driftci" / "tools" / f"protoc-{version}"
    if not dest_path.is_absolute():
        dest_path = ctx.workdir / dest_path

    binary = Fetcher().fetch(url, dest_path, executable=executable_name(plat))
    binding = step.data.get("binding") or "PROTOC"
    return StepResult(
        bindings={binding: str(binary)},
        path=(str(binary.parent),),
        details={"url": url, "version": version},
    )
