import pytest

from fitness_roi.exceptions import PipelineError
from fitness_roi.orchestration.task_graph import TaskGraph


def test_tasks_run_after_their_upstreams():
    calls = []
    graph = TaskGraph("example")
    graph.add_task("mart", lambda staged, reference: calls.append("mart") or staged + reference,
                   upstream=["staged", "reference"])
    graph.add_task("staged", lambda raw: calls.append("staged") or raw * 2, upstream=["raw"])
    graph.add_task("raw", lambda: calls.append("raw") or 1)
    graph.add_task("reference", lambda: calls.append("reference") or 10)

    results = graph.run()

    assert results["mart"] == 12
    assert calls.index("raw") < calls.index("staged") < calls.index("mart")
    assert calls.index("reference") < calls.index("mart")


def test_anomalies_are_reported_per_task():
    reported = []
    graph = TaskGraph("example")
    graph.add_task("raw", lambda: ("rows", {"malformed_raw": 2}))
    graph.add_task("clean", lambda raw: (raw, {}), upstream=["raw"])

    results = graph.run(on_anomalies=lambda name, anomalies: reported.append((name, anomalies)))

    assert results == {"raw": "rows", "clean": "rows"}
    assert reported == [("raw", {"malformed_raw": 2})]


def test_cycles_are_rejected():
    graph = TaskGraph("example")
    graph.add_task("a", lambda b: b, upstream=["b"])
    graph.add_task("b", lambda a: a, upstream=["a"])

    with pytest.raises(PipelineError, match="cycle"):
        graph.execution_order()


def test_unknown_upstream_is_rejected():
    graph = TaskGraph("example")
    graph.add_task("a", lambda missing: missing, upstream=["missing"])

    with pytest.raises(PipelineError, match="undefined"):
        graph.run()


def test_duplicate_task_names_are_rejected():
    graph = TaskGraph("example")
    graph.add_task("a", lambda: 1)

    with pytest.raises(PipelineError):
        graph.add_task("a", lambda: 2)
