from datetime import timedelta

from birdwatcher.reporter import NO_LOCKS_MESSAGE, aggregate_episodes, format_episode, report
from birdwatcher.result import Status, StoreError
from tests.conftest import T0, make_sample


def test_repeated_samples_collapse_to_max_age():
    # a late write lands after a larger age has already been stored
    samples = [make_sample(age_ms=50), make_sample(age_ms=120), make_sample(age_ms=90)]

    episodes = aggregate_episodes(samples)

    assert len(episodes) == 1
    assert episodes[0].duration == timedelta(milliseconds=120)
    assert episodes[0].samples == 3


def test_report_prints_one_line_per_episode(store):
    store.append([make_sample(age_ms=50), make_sample(age_ms=120), make_sample(age_ms=90)])
    lines = []

    result = report(store, emit=lines.append)

    assert result.status is Status.SUCCESS
    assert result.count == 1
    assert len(lines) == 1
    assert lines[0].startswith("🔒0\t101\tshop\torders\t")
    assert lines[0].endswith("\t0:00:00.120000")


def test_empty_store_reports_no_locks(store):
    lines = []

    result = report(store, emit=lines.append)

    assert result.status is Status.SUCCESS
    assert result.count == 0
    assert lines == [NO_LOCKS_MESSAGE]


def test_episodes_ordered_by_start_time_not_insertion():
    later = make_sample(pid=7, started_at=T0 + timedelta(seconds=30))
    earlier = make_sample(pid=8, started_at=T0)

    episodes = aggregate_episodes([later, later, earlier])

    assert [e.pid for e in episodes] == [8, 7]


def test_grouping_ignores_descriptive_fields():
    a = make_sample(age_ms=10, username="alice", application="psql")
    b = make_sample(age_ms=20, username="bob", application="migrate")

    episodes = aggregate_episodes([a, b])

    assert len(episodes) == 1
    assert episodes[0].duration == timedelta(milliseconds=20)


def test_each_identity_field_splits_episodes():
    base = make_sample()
    variants = [
        base,
        make_sample(pid=202),
        make_sample(db="billing"),
        make_sample(relation="customers"),
        make_sample(started_at=T0 + timedelta(seconds=1)),
        make_sample(query="LOCK TABLE orders"),
    ]

    assert len(aggregate_episodes(variants)) == 6


def test_null_start_sorts_last_and_null_age_is_ignored():
    undated = make_sample(pid=9, started_at=None, age=None)
    dated = make_sample(pid=3)
    partial = [make_sample(pid=4, age=None), make_sample(pid=4, age_ms=70)]

    episodes = aggregate_episodes([undated, dated] + partial)

    assert [e.pid for e in episodes] == [3, 4, 9]
    assert episodes[1].duration == timedelta(milliseconds=70)
    assert episodes[2].duration is None


def test_format_episode_is_tab_separated():
    episode = aggregate_episodes([make_sample(age_ms=1500)])[0]

    line = format_episode(4, episode)

    assert line.split("\t") == [
        "🔒4",
        "101",
        "shop",
        "orders",
        str(T0),
        "ALTER TABLE orders ADD COLUMN note text",
        "0:00:01.500000",
    ]


def test_failed_query_is_fatal(store):
    store.query_error = StoreError("permission denied for table locktracking")
    lines = []

    result = report(store, emit=lines.append)

    assert result.status is Status.FATAL
    assert "permission denied" in result.message
    assert lines == []
