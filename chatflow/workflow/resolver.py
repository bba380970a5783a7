"""Dependency resolution - topological ordering of workflow steps.

Steps are visited depth-first in ascending ``order``; a step's dependencies
are fully placed before the step itself, so the result always lists every
dependency ahead of its dependents.
"""

import logging
from typing import Dict, List, Sequence, Set

from .models import WorkflowStep

logger = logging.getLogger(__name__)


class CircularDependencyError(Exception):
    """Raised when the steps of a workflow depend on each other in a cycle"""

    def __init__(self, step: WorkflowStep):
        self.step = step
        super().__init__(f"Circular dependency detected involving step: {step.name}")


class DependencyResolver:
    """
    Orders workflow steps so that dependencies run first.

    Example:
        resolver = DependencyResolver()
        ordered = resolver.sort(workflow.steps)
        levels = resolver.levels(workflow.steps)   # [[a], [b, c], [d]]
    """

    def sort(self, steps: Sequence[WorkflowStep]) -> List[WorkflowStep]:
        """
        Return ``steps`` in dependency order.

        Dependencies that name unknown step ids are ignored here; the step
        executor later skips such steps because the dependency never completes.

        Raises:
            CircularDependencyError: If the dependency graph has a cycle.
        """
        by_id: Dict[str, WorkflowStep] = {step.id: step for step in steps}
        ordered: List[WorkflowStep] = []
        visited: Set[str] = set()
        visiting: Set[str] = set()

        for step in sorted(steps, key=lambda s: s.order):
            if step.id not in visited:
                self._visit(step, by_id, visited, visiting, ordered)

        return ordered

    def _visit(
        self,
        step: WorkflowStep,
        by_id: Dict[str, WorkflowStep],
        visited: Set[str],
        visiting: Set[str],
        ordered: List[WorkflowStep],
    ) -> None:
        if step.id in visiting:
            raise CircularDependencyError(step)
        if step.id in visited:
            return

        visiting.add(step.id)
        for dependency_id in step.depends_on:
            dependency = by_id.get(dependency_id)
            if dependency is not None:
                self._visit(dependency, by_id, visited, visiting, ordered)
        visiting.remove(step.id)

        visited.add(step.id)
        ordered.append(step)

    def levels(self, steps: Sequence[WorkflowStep]) -> List[List[WorkflowStep]]:
        """Group steps into levels whose members only depend on earlier levels.

        Within a level steps keep their topological (and so ``order``) order.

        Raises:
            CircularDependencyError: If the dependency graph has a cycle.
        """
        ordered = self.sort(steps)
        known = {step.id for step in ordered}
        depth: Dict[str, int] = {}

        for step in ordered:
            parents = [depth[d] for d in step.depends_on if d in known]
            depth[step.id] = max(parents) + 1 if parents else 0

        levels: List[List[WorkflowStep]] = []
        for step in ordered:
            level = depth[step.id]
            while len(levels) <= level:
                levels.append([])
            levels[level].append(step)

        return levels
