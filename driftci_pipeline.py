# driftci_pipeline.py
# Pipeline for a tendermint-style Rust workspace: native, wasm and tools
# builds, plus regeneration of the protobuf sources and a full rebuild.
from __future__ import annotations

from driftci.pipelines import rust_workspace_pipeline


def pipeline():
    return rust_workspace_pipeline(
        protoc_version="21.4",
        compiler_dir="tools/proto-compiler",
        generated=["proto/src/prost"],
        drift="warn",
    )
