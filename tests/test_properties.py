"""Property-based tests for planning and aggregation invariants."""

from pathlib import Path

from hypothesis import given
from hypothesis import strategies as st

from reposync.models import (
    LocalEntry,
    RepositoryDescriptor,
    SyncAction,
    SyncOutcome,
    SyncTask,
)
from reposync.planner import plan_sync
from reposync.summary import SyncSummary, summarize

ROOT = Path("/srv/repos")

names = st.sampled_from(
    ["team_a", "team_b", "team_c", "team_d", "other", "misc", "team_", "x"]
)
descriptors = st.lists(
    st.builds(
        RepositoryDescriptor,
        name=names,
        clone_url=st.just("https://github.com/acme/r.git"),
    )
)
locals_ = st.lists(names, unique=True).map(
    lambda ns: [LocalEntry(name=n, path=ROOT / n) for n in ns]
)
prefixes = st.sampled_from(["", "team_", "x", "nomatch"])


@given(remote=descriptors, local=locals_, prefix=prefixes)
def test_one_task_per_qualifying_unique_name(
    remote: list[RepositoryDescriptor], local: list[LocalEntry], prefix: str
) -> None:
    """
    Property: the plan holds exactly one task per distinct remote name that
    passes the prefix filter, and PULL is chosen iff a local entry exists.
    """
    plan = plan_sync(remote, local, ROOT, prefix)

    qualifying = {r.name for r in remote if r.name.startswith(prefix)}
    local_names = {e.name for e in local}

    assert len(plan.tasks) == len(qualifying)
    assert {t.name for t in plan.tasks} == qualifying
    for task in plan.tasks:
        assert (task.action is SyncAction.PULL) == (task.name in local_names)
        assert task.target_path == ROOT / task.name


@given(remote=descriptors, local=locals_, prefix=prefixes, strip=st.booleans())
def test_each_task_owns_its_directory(
    remote: list[RepositoryDescriptor],
    local: list[LocalEntry],
    prefix: str,
    strip: bool,
) -> None:
    """Property: no two planned tasks share a target directory."""
    plan = plan_sync(remote, local, ROOT, prefix, strip_prefix=strip)

    paths = [t.target_path for t in plan.tasks]
    assert len(set(paths)) == len(paths)


outcomes = st.lists(
    st.tuples(
        st.sampled_from(list(SyncAction)),
        st.booleans(),  # failed
        st.booleans(),  # changed
    ),
    max_size=30,
).map(
    lambda specs: [
        SyncOutcome.failure(_task(i, action), "boom")
        if failed
        else SyncOutcome.success(_task(i, action), changed)
        for i, (action, failed, changed) in enumerate(specs)
    ]
)


def _task(i: int, action: SyncAction) -> SyncTask:
    desc = RepositoryDescriptor(name=f"r{i:03d}", clone_url="u")
    return SyncTask(repository=desc, action=action, target_path=ROOT / desc.name)


@given(items=outcomes, data=st.data())
def test_fold_is_order_insensitive(items: list[SyncOutcome], data: st.DataObject) -> None:
    """
    Property: the summary does not depend on completion order, and
    pulled + cloned + failed always equals the number of outcomes.
    """
    shuffled = data.draw(st.permutations(items))

    a = summarize(items)
    b = summarize(shuffled)

    assert a == b
    assert a.total == len(items)


@given(items=outcomes, split=st.integers(min_value=0, max_value=30))
def test_merge_matches_single_fold(items: list[SyncOutcome], split: int) -> None:
    """Property: folding two halves and merging equals folding everything."""
    left, right = items[:split], items[split:]

    merged = summarize(left).merge(summarize(right))

    assert merged == summarize(items)
    assert SyncSummary().merge(merged) == merged
