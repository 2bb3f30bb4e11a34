"""Tests for completion service."""

from datetime import date

import pytest

from src.core.db_client import RecordNotFoundError
from src.core.errors import CompletionValidationError, DependencyUnmetError
from src.domain.completion import (
    ApprovalStatus,
    BinaryCompletion,
    CompletionStatus,
    DayStatus,
    QuantityCompletion,
)
from src.services import completion_service, status_service


DUE = date(2025, 6, 10)


@pytest.fixture
def member(org):
    return org.member("Priya")


@pytest.fixture
def chain(org, member):
    """Task B depends on Task A; both assigned to the same member."""
    task_a = org.task("Task A", anchor_date=date(2025, 6, 2), recurrence_type="daily")
    task_b = org.task("Task B", anchor_date=date(2025, 6, 2), recurrence_type="daily")
    org.depend(task_b, task_a)
    return {
        "a": org.assign(task_a, member),
        "b": org.assign(task_b, member),
        "task_a": task_a,
        "task_b": task_b,
    }


@pytest.mark.unit
class TestDependencyGating:
    """Tests for dependency-gated completion writes."""

    async def test_blocked_until_prerequisite_completed(self, chain, patched_db):
        with pytest.raises(DependencyUnmetError) as exc_info:
            await completion_service.set_completion(
                assignment_id=chain["b"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
            )

        assert exc_info.value.blocking_task_names == ["Task A"]
        assert "Task A" in str(exc_info.value)
        assert patched_db.all("task_completions") == []

        await completion_service.set_completion(
            assignment_id=chain["a"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
        )
        completion = await completion_service.set_completion(
            assignment_id=chain["b"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
        )

        assert completion.status == CompletionStatus.COMPLETED

    async def test_partial_prerequisite_satisfies_gate(self, chain):
        await completion_service.set_completion(
            assignment_id=chain["a"]["id"],
            scheduled_date=DUE,
            as_of=DUE,
            status=CompletionStatus.PARTIAL,
            notes="ran out of time",
        )

        completion = await completion_service.set_completion(
            assignment_id=chain["b"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
        )

        assert completion.status == CompletionStatus.COMPLETED

    async def test_prerequisite_for_another_date_does_not_count(self, chain, org):
        org.completion(chain["a"], date(2025, 6, 9))

        with pytest.raises(DependencyUnmetError):
            await completion_service.set_completion(
                assignment_id=chain["b"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
            )

    async def test_not_done_prerequisite_still_blocks(self, chain, org):
        org.completion(chain["a"], DUE, status="not_done", notes="blocked")

        with pytest.raises(DependencyUnmetError):
            await completion_service.set_completion(
                assignment_id=chain["b"]["id"],
                scheduled_date=DUE,
                as_of=DUE,
                status=CompletionStatus.PARTIAL,
                notes="x",
            )

    async def test_not_done_is_never_gated(self, chain):
        completion = await completion_service.set_completion(
            assignment_id=chain["b"]["id"],
            scheduled_date=DUE,
            as_of=DUE,
            status=CompletionStatus.NOT_DONE,
            notes="waiting on A",
        )

        assert completion.status == CompletionStatus.NOT_DONE

    async def test_prerequisite_held_by_someone_else_is_ignored(self, org, member):
        other = org.member("Other")
        task_a = org.task("Task A", anchor_date=date(2025, 6, 2), recurrence_type="daily")
        task_b = org.task("Task B", anchor_date=date(2025, 6, 2), recurrence_type="daily")
        org.depend(task_b, task_a)
        org.assign(task_a, other)
        assignment_b = org.assign(task_b, member)

        completion = await completion_service.set_completion(
            assignment_id=assignment_b["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
        )

        assert completion.status == CompletionStatus.COMPLETED

    async def test_gate_runs_inside_a_transaction(self, chain, patched_db):
        with pytest.raises(DependencyUnmetError):
            await completion_service.set_completion(
                assignment_id=chain["b"]["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.COMPLETED
            )

        assert patched_db.transaction_count == 1


@pytest.mark.unit
class TestSetCompletion:
    """Tests for set_completion."""

    async def test_is_idempotent(self, org, member, patched_db):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2), recurrence_type="daily"), member)

        first = await completion_service.set_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, as_of=DUE, entry=BinaryCompletion(done=True)
        )
        second = await completion_service.set_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, as_of=DUE, entry=BinaryCompletion(done=True)
        )

        assert len(patched_db.all("task_completions")) == 1
        assert second.id == first.id
        assert second.model_dump(exclude={"id"}) == first.model_dump(exclude={"id"})

    async def test_rewrite_replaces_record(self, org, member, patched_db):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2), recurrence_type="daily"), member)

        await completion_service.set_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, as_of=DUE, status=CompletionStatus.NOT_DONE, notes="ill"
        )
        updated = await completion_service.set_completion(
            assignment_id=assignment["id"],
            scheduled_date=DUE,
            as_of=date(2025, 6, 12),
            entry=BinaryCompletion(done=True),
        )

        assert len(patched_db.all("task_completions")) == 1
        assert updated.status == CompletionStatus.COMPLETED
        assert updated.notes is None

    async def test_completion_date_defaults_to_as_of_and_reads_as_delayed(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2), recurrence_type="daily"), member)

        completion = await completion_service.set_completion(
            assignment_id=assignment["id"],
            scheduled_date=DUE,
            as_of=date(2025, 6, 12),
            entry=BinaryCompletion(done=True),
        )
        status = await status_service.daily_status(assignment_id=assignment["id"], day=DUE, as_of=date(2025, 6, 12))

        assert completion.completion_date == date(2025, 6, 12)
        assert status.status == DayStatus.DELAYED

    @pytest.mark.parametrize(
        ("quantity", "expected"),
        [
            (10, CompletionStatus.COMPLETED),
            (12.5, CompletionStatus.COMPLETED),
            (4, CompletionStatus.PARTIAL),
            (0, CompletionStatus.NOT_DONE),
        ],
    )
    async def test_quantity_resolves_against_benchmark(self, org, member, quantity, expected):
        task = org.task("Calls", anchor_date=date(2025, 6, 2), recurrence_type="daily", benchmark=10)
        assignment = org.assign(task, member)

        completion = await completion_service.set_completion(
            assignment_id=assignment["id"],
            scheduled_date=DUE,
            as_of=DUE,
            entry=QuantityCompletion(quantity=quantity),
            notes="progress note",
        )

        assert completion.status == expected
        assert completion.quantity_completed == quantity

    async def test_approval_resets_on_write(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2), recurrence_type="daily"), member)
        await completion_service.set_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, as_of=DUE, entry=BinaryCompletion(done=True)
        )
        await completion_service.review_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, approve=False, comment="redo"
        )

        rewritten = await completion_service.set_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, as_of=DUE, entry=BinaryCompletion(done=True)
        )

        assert rewritten.approval_status == ApprovalStatus.PENDING
        assert rewritten.manager_comment is None


@pytest.mark.unit
class TestCompletionValidation:
    """Tests for completion write validation."""

    @pytest.fixture
    def benchmark_assignment(self, org, member):
        task = org.task("Calls", anchor_date=date(2025, 6, 2), recurrence_type="daily", benchmark=10)
        return org.assign(task, member)

    @pytest.fixture
    def plain_assignment(self, org, member):
        return org.assign(org.task("Standup", anchor_date=date(2025, 6, 2), recurrence_type="daily"), member)

    async def test_benchmark_task_needs_quantity(self, benchmark_assignment):
        with pytest.raises(CompletionValidationError) as exc_info:
            await completion_service.set_completion(
                assignment_id=benchmark_assignment["id"],
                scheduled_date=DUE,
                as_of=DUE,
                entry=BinaryCompletion(done=True),
            )

        assert exc_info.value.field == "quantity_completed"

    async def test_partial_needs_notes(self, benchmark_assignment, patched_db):
        with pytest.raises(CompletionValidationError) as exc_info:
            await completion_service.set_completion(
                assignment_id=benchmark_assignment["id"],
                scheduled_date=DUE,
                as_of=DUE,
                entry=QuantityCompletion(quantity=3),
            )

        assert exc_info.value.field == "notes"
        assert patched_db.all("task_completions") == []

    async def test_not_done_needs_notes(self, plain_assignment):
        with pytest.raises(CompletionValidationError, match="Notes are required"):
            await completion_service.set_completion(
                assignment_id=plain_assignment["id"],
                scheduled_date=DUE,
                as_of=DUE,
                entry=BinaryCompletion(done=False),
                notes="   ",
            )

    async def test_completion_cannot_precede_schedule(self, plain_assignment):
        with pytest.raises(CompletionValidationError) as exc_info:
            await completion_service.set_completion(
                assignment_id=plain_assignment["id"],
                scheduled_date=DUE,
                as_of=date(2025, 6, 9),
                entry=BinaryCompletion(done=True),
            )

        assert exc_info.value.field == "completion_date"

    async def test_negative_quantity(self, benchmark_assignment):
        with pytest.raises(CompletionValidationError, match="negative"):
            await completion_service.set_completion(
                assignment_id=benchmark_assignment["id"],
                scheduled_date=DUE,
                as_of=DUE,
                status=CompletionStatus.PARTIAL,
                quantity=-1,
                notes="oops",
            )

    async def test_entry_or_status_required(self, plain_assignment):
        with pytest.raises(CompletionValidationError) as exc_info:
            await completion_service.set_completion(assignment_id=plain_assignment["id"], scheduled_date=DUE, as_of=DUE)

        assert exc_info.value.field == "status"

    async def test_unknown_assignment(self, org):
        with pytest.raises(RecordNotFoundError):
            await completion_service.set_completion(
                assignment_id="404", scheduled_date=DUE, as_of=DUE, entry=BinaryCompletion(done=True)
            )


@pytest.mark.unit
class TestReviewCompletion:
    """Tests for review_completion."""

    async def test_approve(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2)), member)
        org.completion(assignment, DUE)

        reviewed = await completion_service.review_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, approve=True
        )

        assert reviewed.approval_status == ApprovalStatus.APPROVED

    async def test_reject_needs_comment(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2)), member)
        org.completion(assignment, DUE)

        with pytest.raises(CompletionValidationError) as exc_info:
            await completion_service.review_completion(
                assignment_id=assignment["id"], scheduled_date=DUE, approve=False
            )

        assert exc_info.value.field == "manager_comment"

    async def test_reject_with_comment(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2)), member)
        org.completion(assignment, DUE)

        reviewed = await completion_service.review_completion(
            assignment_id=assignment["id"], scheduled_date=DUE, approve=False, comment="numbers look off"
        )

        assert reviewed.approval_status == ApprovalStatus.REJECTED
        assert reviewed.manager_comment == "numbers look off"

    async def test_missing_record(self, org, member):
        assignment = org.assign(org.task("Standup", anchor_date=date(2025, 6, 2)), member)

        with pytest.raises(RecordNotFoundError):
            await completion_service.review_completion(assignment_id=assignment["id"], scheduled_date=DUE, approve=True)
