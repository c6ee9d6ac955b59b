"""
Result aggregation tests: the per-student roll-up of assigned TAs' marks,
its recomputation on every relevant change, and idempotence.
"""

import pytest
import pytest_asyncio
from sqlalchemy import update

from assessment_engine.common.exceptions import NotFoundError
from assessment_engine.database.models import AssignmentSetRecord
from assessment_engine.assessments.assignment import Assignment
from assessment_engine.assessments.collaborators import Team
from assessment_engine.assessments.submissions import Submission
from assessment_engine.assessments.results import MarkEntry, aggregate_marks, average_score
from assessment_engine.tests.conftest import (
    COURSE_ID, TEAM_SET_ID, assessment_payload, choice_question_payload, selection_answer, choice_answer
)


def final(marker_id, score, release_number=1, adjusted=None):
    return Submission(assessment_id="a1", respondent_id="s1", marker_id=marker_id, is_draft=False,
                      score=score, adjusted_score=adjusted, submission_release_number=release_number)


class TestAggregation:
    def test_average_ignores_missing_submissions(self):
        assignment = Assignment(target_id="s1", ta_ids=["ta1", "ta2", "ta3"], member_ids=["s1"])
        marks = aggregate_marks(assignment, {"ta1": final("ta1", 6), "ta2": final("ta2", 7)}, 1)

        assert [m.marker_id for m in marks] == ["ta1", "ta2", "ta3"]
        assert marks[2].submission_id is None
        assert average_score(marks) == 6.5

    def test_adjusted_score_wins(self):
        assignment = Assignment(target_id="s1", ta_ids=["ta1"])
        marks = aggregate_marks(assignment, {"ta1": final("ta1", 5, adjusted=9)}, 1)
        assert marks[0].score == 9

    def test_outdated_marks_are_flagged(self):
        assignment = Assignment(target_id="s1", ta_ids=["ta1"])
        marks = aggregate_marks(assignment, {"ta1": final("ta1", 5, release_number=1)}, 2)
        assert marks[0].is_outdated
        assert marks[0].to_dict()["isOutdated"] is True

    def test_unassigned_student(self):
        assert aggregate_marks(None, {}, 0) == []
        assert average_score([]) == 0
        assert average_score([MarkEntry(marker_id="ta1")]) == 0


@pytest_asyncio.fixture
async def team_assessment(assessment_service, assignment_service):
    assessment = await assessment_service.create_assessment(
        assessment_payload(granularity="team", teamSetId=TEAM_SET_ID))
    choice = await assessment_service.add_question(assessment.id, choice_question_payload())
    selection, _ = await assessment_service.list_questions(assessment.id)
    await assignment_service.regenerate_assignment_set(assessment.id, tas_per_target=2)
    return assessment, selection, choice


def team_answers(selection, choice, value):
    return [selection_answer(selection.id, "s1", "s2"), choice_answer(choice.id, value)]


def averages(results):
    return {r.student_id: r.average_score for r in results}


@pytest.mark.asyncio
async def test_team_results_follow_final_submissions(team_assessment, submission_service, aggregator):
    assessment, selection, choice = team_assessment

    results = await aggregator.get_results(assessment.id)
    assert averages(results) == {"s1": 0, "s2": 0, "s3": 0}
    assert [m.marker_id for m in results[0].marks] == ["ta2", "ta1"]

    await submission_service.save_submission(
        assessment.id, "team-1", "ta1", team_answers(selection, choice, "Yes"), is_draft=False)
    draft = await submission_service.save_submission(
        assessment.id, "team-1", "ta2", team_answers(selection, choice, "Yes"))

    results = await aggregator.get_results(assessment.id)
    assert averages(results) == {"s1": 10, "s2": 10, "s3": 0}

    await submission_service.delete_submission(draft.submission.id)
    second = await submission_service.save_submission(
        assessment.id, "team-1", "ta2", team_answers(selection, choice, "Maybe"), is_draft=False)

    results = await aggregator.get_results(assessment.id)
    assert averages(results) == {"s1": 5, "s2": 5, "s3": 0}

    await submission_service.adjust_score(second.submission.id, 4)
    results = await aggregator.get_results(assessment.id)
    assert averages(results)["s1"] == 7


@pytest.mark.asyncio
async def test_regenerating_assignments_recomputes(team_assessment, submission_service,
                                                   assignment_service, aggregator):
    assessment, selection, choice = team_assessment
    await submission_service.save_submission(
        assessment.id, "team-1", "ta1", team_answers(selection, choice, "Yes"), is_draft=False)

    assignment_set = await assignment_service.regenerate_assignment_set(assessment.id, tas_per_target=1)
    assert assignment_set.assignment_for_target("team-1").ta_ids == ["ta2"]

    results = {r.student_id: r for r in await aggregator.get_results(assessment.id)}
    assert [m.marker_id for m in results["s1"].marks] == ["ta2"]
    assert results["s1"].average_score == 0


@pytest.mark.asyncio
async def test_recompute_is_idempotent(team_assessment, submission_service, aggregator):
    assessment, selection, choice = team_assessment
    await submission_service.save_submission(
        assessment.id, "team-1", "ta1", team_answers(selection, choice, "Yes"), is_draft=False)

    first = await aggregator.recompute_result(assessment.id, "s1")
    second = await aggregator.recompute_result(assessment.id, "s1")

    assert first.id == second.id
    assert first.marks == second.marks
    assert second.updated_at == first.updated_at
    assert len(await aggregator.get_results(assessment.id)) == 3


@pytest.mark.asyncio
async def test_results_of_unknown_assessment(aggregator):
    with pytest.raises(NotFoundError):
        await aggregator.get_results("no-such-assessment")


def test_average_prefers_adjusted_scores():
    marks = aggregate_marks(
        Assignment(target_id="s1", ta_ids=["ta1", "ta2", "ta3"]),
        {"ta1": final("ta1", 5), "ta3": final("ta3", 3, adjusted=8)},
        1,
    )
    assert [m.score for m in marks] == [5, 0, 8]
    assert average_score(marks) == 6.5


@pytest.mark.asyncio
async def test_empty_team_yields_no_result(roster, assessment_service, assignment_service, aggregator):
    roster.add_team(COURSE_ID, Team(id="team-empty", member_ids=[]), TEAM_SET_ID)
    assessment = await assessment_service.create_assessment(
        assessment_payload(granularity="team", teamSetId=TEAM_SET_ID))

    assignment_set = await assignment_service.regenerate_assignment_set(assessment.id)
    assert "team-empty" in assignment_set.target_ids()

    students = [r.student_id for r in await aggregator.get_results(assessment.id)]
    assert sorted(students) == ["s1", "s2", "s3"]


@pytest.mark.asyncio
async def test_unreadable_assignment_set_degrades_to_empty_result(
        session_factory, assessment_service, assignment_service, submission_service, aggregator):
    assessment = await assessment_service.create_assessment(assessment_payload())
    choice = await assessment_service.add_question(assessment.id, choice_question_payload())
    selection, _ = await assessment_service.list_questions(assessment.id)
    await assignment_service.regenerate_assignment_set(assessment.id, tas_per_target=1)

    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(AssignmentSetRecord)
                .where(AssignmentSetRecord.assessment_id == assessment.id)
                .values(assignments=[{"tas": ["ta1"]}])
            )

    saved = await submission_service.save_submission(
        assessment.id, "s1", "ta1", [selection_answer(selection.id, "s1"), choice_answer(choice.id, "Yes")],
        is_draft=False)
    assert saved.submission.score == 10

    results = {r.student_id: r for r in await aggregator.get_results(assessment.id)}
    assert results["s1"].marks == []
    assert results["s1"].average_score == 0

    repaired = await assignment_service.regenerate_assignment_set(assessment.id, tas_per_target=1)
    assert repaired.assignment_for_target("s1").ta_ids == ["ta1"]
    result = await aggregator.recompute_result(assessment.id, "s1")
    assert [m.score for m in result.marks] == [10]
