"""
task_graph.py - In-process DAG of pipeline tasks

Each task is a function of its upstream outputs. A task receives one
keyword argument per upstream task (named after it) and returns either a
DataFrame or a (DataFrame, anomalies) pair. Tasks run once, in
topological order.
"""

import logging
from graphlib import TopologicalSorter, CycleError

from fitness_roi.exceptions import PipelineError

logger = logging.getLogger(__name__)


class Task:
    def __init__(self, name, func, upstream=None):
        self.name = name
        self.func = func
        self.upstream = list(upstream or [])

    def __repr__(self):
        return f"Task({self.name!r}, upstream={self.upstream})"


class TaskGraph:
    """Named tasks with declared dependencies"""

    def __init__(self, name):
        self.name = name
        self.tasks = {}

    def add_task(self, name, func, upstream=None):
        if name in self.tasks:
            raise PipelineError(f"Task {name} is already defined in {self.name}")
        self.tasks[name] = Task(name, func, upstream)
        return self

    def execution_order(self):
        """Task names in an order where every task follows its upstreams"""
        for task in self.tasks.values():
            unknown = [name for name in task.upstream if name not in self.tasks]
            if unknown:
                raise PipelineError(f"Task {task.name} depends on undefined tasks: {unknown}")

        sorter = TopologicalSorter({name: task.upstream for name, task in self.tasks.items()})
        try:
            return list(sorter.static_order())
        except CycleError as e:
            raise PipelineError(f"Dependency cycle in {self.name}: {e.args[1]}") from e

    def run(self, on_anomalies=None):
        """Run every task; returns task name -> DataFrame.

        on_anomalies(task_name, anomalies) is called after each task that
        reports anomaly counts, before any downstream task starts.
        """
        results = {}
        for name in self.execution_order():
            task = self.tasks[name]
            logger.info(f"Running task {name}")

            output = task.func(**{upstream: results[upstream] for upstream in task.upstream})
            if isinstance(output, tuple):
                output, anomalies = output
            else:
                anomalies = {}

            if on_anomalies is not None and anomalies:
                on_anomalies(name, anomalies)
            results[name] = output

        return results
