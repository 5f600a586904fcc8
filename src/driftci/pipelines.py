# pipelines.py
"""
Reference pipeline for a Rust workspace with native + wasm targets and
protobuf code generated from an external schema source.

    cleanup-runs              cancel superseded runs (not for pushes to main or release tags)
    tendermint                cargo build-all
    build-light-client-wasm   cargo build-wasm-<component> for each component
    tools                     cargo build-tools
    generated-protos-compile  fetch protoc -> regenerate -> cargo build-all
"""
from __future__ import annotations

from typing import Optional, Sequence

from . import settings
from .dsl import job, unless_primary_or_release, wf
from .model import Pipeline
from .step_workflows.cargo import BUILD_ALL, cargo, verify
from .step_workflows.cleanup import cleanup_runs
from .step_workflows.protoc import fetch_protoc
from .step_workflows.regenerate import regenerate

WASM_TARGET = "wasm32-unknown-unknown"


def rust_workspace_pipeline(
    *,
    primary_branch: str | None = None,
    toolchain: str = "stable",
    native_job: str = "tendermint",
    wasm_components: Sequence[str] = ("tendermint", "light-client"),
    protoc_version: str | None = None,
    compiler_dir: str = "tools/proto-compiler",
    generated: Sequence[str] = ("proto/src/prost",),
    drift: str = "warn",
    paths_ignore: Sequence[str] = ("docs/**",),
    push_refs: Optional[Sequence[str]] = None,
) -> Pipeline:
    primary = primary_branch or settings.PRIMARY_BRANCH

    return wf(
        job(
            "cleanup-runs",
            cleanup_runs(),
            when=unless_primary_or_release(primary),
            secrets=("GITHUB_TOKEN",),
            required=False,
        ),

        job(
            native_job,
            cargo(BUILD_ALL),
            toolchain=toolchain,
        ),

        job(
            "build-light-client-wasm",
            *[cargo(f"build-wasm-{c}") for c in wasm_components],
            toolchain=toolchain,
            target=WASM_TARGET,
        ),

        job(
            "tools",
            cargo("build-tools"),
            toolchain=toolchain,
        ),

        job(
            "generated-protos-compile",
            fetch_protoc(protoc_version),
            regenerate("cargo run", cwd=compiler_dir, generated=generated, drift=drift),
            verify(BUILD_ALL),
            toolchain=toolchain,
        ),

        name="Build",
        paths_ignore=paths_ignore,
        push_refs=push_refs,
    )
