from __future__ import annotations
import os

WORK_ROOT = os.environ.get("DRIFTCI_WORK_ROOT", ".driftci/work")
PRIMARY_BRANCH = os.environ.get("DRIFTCI_PRIMARY_BRANCH", "main")

PROTOC_VERSION = os.environ.get("DRIFTCI_PROTOC_VERSION", "21.4")
PROTOC_BASE_URL = os.environ.get(
    "DRIFTCI_PROTOC_BASE_URL",
    "https://github.com/protocolbuffers/protobuf/releases/download",
)
DOWNLOAD_TIMEOUT = int(os.environ.get("DRIFTCI_DOWNLOAD_TIMEOUT", "60"))
DOWNLOAD_CACHE = os.environ.get("DRIFTCI_DOWNLOAD_CACHE") or None

GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")

# Stripped from every job environment unless the job lists them in Job.secrets
SECRET_ENV = tuple(
    s for s in os.environ.get("DRIFTCI_SECRET_ENV", "GITHUB_TOKEN").split(",") if s
)
