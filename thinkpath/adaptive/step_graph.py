"""
Step Graph.

Arena of PathSteps for one learning path. Steps live in a list in path order;
edges are kept as index lists so the unlock cascade and invariant checks never
chase object references.

Invariants (checked by violations()):
- completed steps have progress 100 and a completed_at timestamp
- no step is past locked while any of its prerequisites is incomplete
- unlocks is exactly the reverse of prerequisites
- the prerequisite graph is acyclic
"""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Iterable, Optional

from thinkpath.adaptive.models import PathStep, StepAction, StepStatus
from thinkpath.core.errors import InvalidTransitionError, NotFoundError


class StepGraph:
    """Indexed step arena with prerequisite/unlock edges."""

    def __init__(self, steps: Iterable[PathStep]):
        self.steps: list[PathStep] = list(steps)
        self._index: dict[str, int] = {}
        for i, step in enumerate(self.steps):
            if step.id in self._index:
                raise ValueError(f"Duplicate step id: {step.id}")
            self._index[step.id] = i

        self.prerequisite_idx: list[list[int]] = []
        self.unlock_idx: list[list[int]] = [[] for _ in self.steps]
        for i, step in enumerate(self.steps):
            prereqs = []
            for prereq_id in step.prerequisites:
                if prereq_id not in self._index:
                    raise ValueError(f"Step {step.id} depends on unknown step {prereq_id}")
                j = self._index[prereq_id]
                prereqs.append(j)
                self.unlock_idx[j].append(i)
            self.prerequisite_idx.append(prereqs)

        # Rebuild unlocks from prerequisites so both directions always agree.
        for i, step in enumerate(self.steps):
            step.unlocks = [self.steps[k].id for k in self.unlock_idx[i]]

    # --------------------------------------------------
    # Lookup
    # --------------------------------------------------

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._index

    def index_of(self, step_id: str) -> int:
        try:
            return self._index[step_id]
        except KeyError:
            raise NotFoundError(f"Step not found: {step_id}", step_id=step_id) from None

    def get(self, step_id: str) -> PathStep:
        return self.steps[self.index_of(step_id)]

    def prerequisites_of(self, step_id: str) -> list[PathStep]:
        return [self.steps[j] for j in self.prerequisite_idx[self.index_of(step_id)]]

    def prerequisites_met(self, index: int) -> bool:
        return all(self.steps[j].status == StepStatus.COMPLETED for j in self.prerequisite_idx[index])

    # --------------------------------------------------
    # State changes
    # --------------------------------------------------

    def open_roots(self) -> None:
        """Make every locked step whose prerequisites are met available."""
        for i, step in enumerate(self.steps):
            if step.status == StepStatus.LOCKED and self.prerequisites_met(i):
                step.status = StepStatus.AVAILABLE

    def cascade_unlocks(self, step_id: str) -> list[PathStep]:
        """
        Open the dependents of a just-completed step.

        A dependent moves locked -> available only when every one of its
        prerequisites is completed. Returns the steps that were opened.
        """
        opened = []
        for k in self.unlock_idx[self.index_of(step_id)]:
            target = self.steps[k]
            if target.status == StepStatus.LOCKED and self.prerequisites_met(k):
                target.status = StepStatus.AVAILABLE
                opened.append(target)
        return opened

    def apply_action(
        self,
        step_id: str,
        action: StepAction,
        progress_percent: Optional[float] = None,
        time_spent: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> tuple[PathStep, list[PathStep], bool]:
        """
        Run one step through the state machine.

        Returns (step, steps opened by the cascade, whether anything changed).
        Completing an already completed step changes nothing; every other
        action on a completed or locked step is rejected.
        """
        now = now or datetime.now(UTC)
        step = self.get(step_id)

        if step.status == StepStatus.LOCKED:
            raise InvalidTransitionError(
                f"Step {step_id} is locked until its prerequisites are completed",
                step_id=step_id,
                prerequisites=step.prerequisites,
            )
        if step.status == StepStatus.COMPLETED:
            if action == StepAction.COMPLETE:
                return step, [], False
            raise InvalidTransitionError(f"Step {step_id} is already completed", step_id=step_id)
        if progress_percent is not None and not 0 <= progress_percent <= 100:
            raise InvalidTransitionError(
                f"progress_percent must be between 0 and 100, got {progress_percent}",
                step_id=step_id,
            )

        if time_spent:
            step.time_spent += time_spent

        opened: list[PathStep] = []
        if action == StepAction.START:
            if step.status == StepStatus.AVAILABLE:
                step.status = StepStatus.IN_PROGRESS
                step.started_at = now
        elif action == StepAction.UPDATE:
            if step.status == StepStatus.AVAILABLE:
                step.status = StepStatus.IN_PROGRESS
                step.started_at = now
            if progress_percent is not None:
                step.progress_percent = float(progress_percent)
        elif action == StepAction.COMPLETE:
            step.status = StepStatus.COMPLETED
            step.progress_percent = 100.0
            step.started_at = step.started_at or now
            step.completed_at = now
            opened = self.cascade_unlocks(step_id)
        return step, opened, True

    # --------------------------------------------------
    # Derived totals
    # --------------------------------------------------

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def total_time_spent(self) -> int:
        return sum(s.time_spent for s in self.steps)

    @property
    def estimated_time_left(self) -> int:
        return sum(s.estimated_time for s in self.steps if s.status != StepStatus.COMPLETED)

    @property
    def estimated_total_time(self) -> int:
        return sum(s.estimated_time for s in self.steps)

    @property
    def is_complete(self) -> bool:
        return bool(self.steps) and self.completed_count == len(self.steps)

    def progress_percent(self) -> int:
        if not self.steps:
            return 0
        return round(self.completed_count / len(self.steps) * 100)

    def steps_for(self, thinking_type_id: str) -> list[PathStep]:
        return [s for s in self.steps if s.thinking_type_id == thinking_type_id]

    def dimensions(self) -> list[str]:
        seen: list[str] = []
        for step in self.steps:
            if step.thinking_type_id not in seen:
                seen.append(step.thinking_type_id)
        return seen

    # --------------------------------------------------
    # Views
    # --------------------------------------------------

    def next_steps(self, limit: int = 5) -> list[PathStep]:
        """Available, not yet completed steps in path order."""
        return [s for s in self.steps if s.status == StepStatus.AVAILABLE][:limit]

    def recently_completed(self, limit: int = 3) -> list[PathStep]:
        done = [s for s in self.steps if s.status == StepStatus.COMPLETED]
        oldest = datetime.min.replace(tzinfo=UTC)
        done.sort(key=lambda s: s.completed_at or oldest, reverse=True)
        return done[:limit]

    def current_step(self, current_index: int) -> Optional[PathStep]:
        if 0 <= current_index < len(self.steps):
            return self.steps[current_index]
        return None

    # --------------------------------------------------
    # Integrity
    # --------------------------------------------------

    def violations(self) -> list[str]:
        """Return human-readable invariant violations; empty when consistent."""
        problems = []
        for i, step in enumerate(self.steps):
            if step.status == StepStatus.COMPLETED:
                if step.progress_percent != 100:
                    problems.append(f"{step.id}: completed with progress {step.progress_percent}")
                if step.completed_at is None:
                    problems.append(f"{step.id}: completed without completed_at")
            if step.status != StepStatus.LOCKED and not self.prerequisites_met(i):
                problems.append(f"{step.id}: {step.status.value} before prerequisites completed")
            expected = sorted(self.steps[k].id for k in self.unlock_idx[i])
            if sorted(step.unlocks) != expected:
                problems.append(f"{step.id}: unlocks out of sync with prerequisites")
        if self._has_cycle():
            problems.append("prerequisite graph contains a cycle")
        return problems

    def _has_cycle(self) -> bool:
        # Kahn's algorithm
        indegree = [len(p) for p in self.prerequisite_idx]
        queue = [i for i, d in enumerate(indegree) if d == 0]
        visited = 0
        while queue:
            i = queue.pop()
            visited += 1
            for k in self.unlock_idx[i]:
                indegree[k] -= 1
                if indegree[k] == 0:
                    queue.append(k)
        return visited != len(self.steps)

    # --------------------------------------------------
    # Serialization
    # --------------------------------------------------

    def to_records(self) -> list[dict[str, Any]]:
        return [s.to_record() for s in self.steps]

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> StepGraph:
        return cls(PathStep.from_record(r) for r in records)
