from buildrepo.stats import RepoRunStats, StatsCollector


def test_total_built() -> None:
    stats = RepoRunStats("main", total=10, attempted=3, built=2)
    assert stats.total_built == 9


def test_summary_lines() -> None:
    stats = RepoRunStats("main", total=10, attempted=3, built=2, deleted=1, elapsed=1.5)
    assert stats.summary_lines() == [
        "main built:\t2",
        "main tried:\t3",
        "main deleted:\t1",
        "main time:\t1.500",
        "main total built:\t9",
        "main total aports:\t10",
    ]


def test_finish_records_elapsed() -> None:
    stats = RepoRunStats("main")
    stats.finish()
    assert stats.elapsed >= 0.0


def test_collector_keeps_start_order() -> None:
    collector = StatsCollector()
    collector.start("main").built = 1
    collector.start("community").built = 2

    assert len(list(collector)) == 2
    assert [s.repo for s in collector] == ["main", "community"]
    assert collector.get("community").built == 2
    assert collector.get("testing") is None
    lines = collector.summary_lines()
    assert lines[0] == "main built:\t1"
    assert lines[6] == "community built:\t2"
