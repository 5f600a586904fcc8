from .dsl import job, sh, wf, unless_primary_or_release
from .model import Job, Pipeline, RefFilter, Step, Toolchain, Trigger, TriggerEvent
from .runner import pipeline_ok, run_event, run_pipeline
from .step_workflows.cargo import BUILD_ALL, cargo, verify
from .step_workflows.cleanup import cleanup_runs
from .step_workflows.protoc import fetch_protoc
from .step_workflows.regenerate import regenerate
from .step_workflows.toolchain import provision
from .triggers import plan, should_run, should_trigger

__all__ = [
    "job", "sh", "wf", "unless_primary_or_release",
    "Job", "Pipeline", "RefFilter", "Step", "Toolchain", "Trigger", "TriggerEvent",
    "run_pipeline", "run_event", "pipeline_ok",
    "BUILD_ALL", "cargo", "verify", "cleanup_runs", "fetch_protoc", "regenerate", "provision",
    "plan", "should_run", "should_trigger",
]
