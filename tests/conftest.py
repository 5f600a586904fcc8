from types import SimpleNamespace

import pytest

from driftci.model import StepContext, StepResult
from driftci.step_workflows import RUNNERS
from driftci.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def fake_runners(monkeypatch):
    """
    Replace the external-tool runners (rustup, protoc download, cargo) with
    recorders. Tests set `fail` to make a given step kind or name fail.
    """
    calls = []
    fail = set()

    def make(kind, bindings=None):
        def runner(step, ctx: StepContext):
            calls.append((ctx.job.name, step.name, dict(ctx.bindings)))
            if kind in fail or step.name in fail or (ctx.job.name, step.name) in fail:
                raise RuntimeError(f"{step.name} forced to fail")
            return StepResult(bindings=bindings or {})
        return runner

    monkeypatch.setitem(RUNNERS, "toolchain", make("toolchain"))
    monkeypatch.setitem(RUNNERS, "fetch", make("fetch", {"PROTOC": "/opt/protoc/bin/protoc"}))
    monkeypatch.setitem(RUNNERS, "regenerate", make("regenerate"))
    monkeypatch.setitem(RUNNERS, "cargo", make("cargo"))
    monkeypatch.setitem(RUNNERS, "verify", make("verify"))
    monkeypatch.setitem(RUNNERS, "cleanup-runs", make("cleanup-runs"))

    return SimpleNamespace(calls=calls, fail=fail)
