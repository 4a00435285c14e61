"""Per-student, per-activity score matrix for a class."""
from __future__ import annotations

import csv
import io
from typing import Iterable, Optional

from taskhub.errors import NotFoundError
from taskhub.models.activity import Activity
from taskhub.models.school_class import SchoolClass
from taskhub.models.submission import Submission
from taskhub.models.user import User
from taskhub.services.ids import object_ids, parse_object_id

# blank cell: no score recorded, distinct from a score of zero
EMPTY_SCORE = ""
FIXED_COLUMNS = ("Name", "Email")


def column_titles(activities: Iterable[Activity]) -> list[str]:
    """Activity titles as column names.

    A title already taken, by another activity or by a fixed student column,
    gets a " (n)" suffix.
    """
    titles: list[str] = []
    used = set(FIXED_COLUMNS)
    for activity in activities:
        title = activity.title
        n = 1
        while title in used:
            n += 1
            title = f"{activity.title} ({n})"
        used.add(title)
        titles.append(title)
    return titles


def render_score(score: Optional[float]):
    if score is None:
        return EMPTY_SCORE
    if float(score).is_integer():
        return int(score)
    return score


def build_score_rows(
    students: list[User],
    activities: list[Activity],
    submissions: list[Submission],
) -> list[dict]:
    """One row per student in the given order, one column per activity."""
    scores: dict[tuple[str, str], Optional[float]] = {}
    for sub in submissions:
        scores[(sub.student_id, sub.activity_id)] = sub.score

    titles = column_titles(activities)
    rows = []
    for student in students:
        row = {"Name": student.full_name, "Email": student.email}
        for title, activity in zip(titles, activities):
            row[title] = render_score(scores.get((str(student.id), str(activity.id))))
        rows.append(row)
    return rows


async def class_students(school_class: SchoolClass) -> list[User]:
    """Enrolled students in roster order; ids with no user record are skipped."""
    oids = object_ids(school_class.student_ids)
    if not oids:
        return []
    users = await User.find({"_id": {"$in": oids}}).to_list()
    by_id = {str(u.id): u for u in users}
    return [by_id[sid] for sid in school_class.student_ids if sid in by_id]


async def export_scores(class_id: str) -> dict:
    school_class = await SchoolClass.get(parse_object_id(class_id, "class"))
    if not school_class:
        raise NotFoundError("Class not found")

    activities = await Activity.find(Activity.class_id == str(school_class.id)).sort("date").to_list()
    activity_ids = [str(a.id) for a in activities]
    submissions = (
        await Submission.find({"activity_id": {"$in": activity_ids}}).to_list()
        if activity_ids
        else []
    )
    students = await class_students(school_class)
    return {
        "export_data": build_score_rows(students, activities, submissions),
        "activity_titles": column_titles(activities),
    }


def scores_to_csv(result: dict) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=[*FIXED_COLUMNS, *result["activity_titles"]])
    writer.writeheader()
    writer.writerows(result["export_data"])
    return buffer.getvalue()
