"""Tests for trigger evaluation (pure predicates, no processes)."""
import pytest

from driftci.dsl import unless_primary_or_release
from driftci.model import RefFilter, Trigger, TriggerEvent
from driftci.triggers import (
    is_release_tag,
    parse_ref,
    paths_ignored,
    should_run,
    should_trigger,
)

HOUSEKEEPING = unless_primary_or_release("main")


class TestParseRef:
    @pytest.mark.parametrize(
        "ref,kind,name",
        [
            ("refs/heads/main", "branch", "main"),
            ("main", "branch", "main"),
            ("refs/heads/feature/x", "branch", "feature/x"),
            ("feature/x", "branch", "feature/x"),
            ("refs/tags/v1.2.3", "tag", "v1.2.3"),
            ("v1.2.3", "tag", "v1.2.3"),
            ("refs/tags/nightly", "tag", "nightly"),
            ("refs/pull/42/merge", "pull", "42"),
            ("v1.2", "branch", "v1.2"),
        ],
    )
    def test_classification(self, ref, kind, name):
        parsed = parse_ref(ref)
        assert (parsed.kind, parsed.name) == (kind, name)

    def test_release_tags(self):
        assert is_release_tag("v1.2.3")
        assert is_release_tag("refs/tags/v10.0.12")
        assert not is_release_tag("refs/tags/nightly")
        assert not is_release_tag("v1.2")
        assert not is_release_tag("refs/heads/v1.2.3-rc")


class TestPathsIgnored:
    def test_docs_only_change_is_ignored(self):
        assert paths_ignored(["docs/readme.md"], ["docs/**"])
        assert paths_ignored(["docs/a/b.md", "docs/c.md"], ["docs/**"])

    def test_mixed_change_is_not_ignored(self):
        assert not paths_ignored(["docs/readme.md", "src/lib.rs"], ["docs/**"])

    def test_empty_change_set_is_not_ignored(self):
        assert not paths_ignored([], ["docs/**"])

    def test_no_patterns(self):
        assert not paths_ignored(["docs/readme.md"], [])


class TestShouldTrigger:
    def test_docs_only_pull_request_does_not_trigger(self):
        event = TriggerEvent("pull_request", "refs/pull/1/merge", ("docs/readme.md",))
        assert not should_trigger(event, Trigger())

    def test_code_change_triggers(self):
        event = TriggerEvent("push", "refs/heads/main", ("src/lib.rs", "docs/readme.md"))
        assert should_trigger(event, Trigger())

    def test_push_allow_list(self):
        trigger = Trigger(push_refs=("main", "v*.*.*"))
        assert should_trigger(TriggerEvent("push", "refs/heads/main"), trigger)
        assert should_trigger(TriggerEvent("push", "refs/tags/v1.2.3"), trigger)
        assert not should_trigger(TriggerEvent("push", "refs/heads/feature/x"), trigger)

    def test_allow_list_does_not_apply_to_pull_requests(self):
        trigger = Trigger(push_refs=("main",))
        assert should_trigger(TriggerEvent("pull_request", "refs/pull/3/merge"), trigger)

    def test_event_type_filter(self):
        trigger = Trigger(events=("push",))
        assert not should_trigger(TriggerEvent("pull_request", "refs/pull/3/merge"), trigger)


class TestHousekeepingPredicate:
    @pytest.mark.parametrize("ref", ["main", "refs/heads/main", "v1.2.3", "refs/tags/v1.2.3"])
    def test_not_scheduled_for_pushes_to_primary_branch_or_release(self, ref):
        assert not should_run(TriggerEvent("push", ref), HOUSEKEEPING)

    @pytest.mark.parametrize(
        "ref",
        ["feature/x", "refs/heads/feature/x", "mainline", "v1.2", "refs/tags/nightly", "refs/tags/v1.2.3-rc1"],
    )
    def test_scheduled_for_other_pushes(self, ref):
        assert should_run(TriggerEvent("push", ref), HOUSEKEEPING)

    @pytest.mark.parametrize("ref", ["refs/pull/7/merge", "main", "refs/heads/main", "v1.2.3"])
    def test_scheduled_for_every_pull_request(self, ref):
        assert should_run(TriggerEvent("pull_request", ref), HOUSEKEEPING)

    def test_other_primary_branch(self):
        predicate = unless_primary_or_release("trunk")
        assert not should_run(TriggerEvent("push", "refs/heads/trunk"), predicate)
        assert should_run(TriggerEvent("push", "refs/heads/main"), predicate)


def test_ref_allow_list_on_job():
    only_main = RefFilter(refs=("main",))
    assert should_run(TriggerEvent("push", "refs/heads/main"), only_main)
    assert not should_run(TriggerEvent("push", "refs/heads/dev"), only_main)


def test_unknown_event_type_rejected():
    with pytest.raises(ValueError):
        TriggerEvent("release", "refs/tags/v1.0.0")
