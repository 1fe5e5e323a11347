from datetime import timedelta

import pytest

from tests.factories import create_session
from tests.factories import create_user
from tutorconnect.tutoring.models import TutoringSession
from tutorconnect.tutoring.services import find_session_ownership

pytestmark = pytest.mark.django_db


def test_ownership_for_existing_session():
    session = create_session(starts_in=timedelta(minutes=30), subject="Physics")

    ownership = find_session_ownership(str(session.pk))

    assert ownership.session_id == str(session.pk)
    assert ownership.tutor_id == str(session.tutor_id)
    assert ownership.student_id == str(session.student_id)
    assert ownership.subject == "Physics"
    assert ownership.scheduled_at == session.scheduled_at
    assert ownership.includes(session.tutor_id)
    assert ownership.includes(str(session.student_id))
    assert not ownership.is_cancelled


def test_ownership_excludes_other_users():
    session = create_session()
    outsider = create_user("outsider")

    assert not find_session_ownership(session.pk).includes(outsider.pk)


def test_ownership_marks_cancelled_sessions():
    session = create_session(status=TutoringSession.Status.CANCELLED)

    assert find_session_ownership(session.pk).is_cancelled


@pytest.mark.parametrize("session_id", ["999999", "abc", "", None])
def test_unknown_or_malformed_ids_resolve_to_none(session_id):
    assert find_session_ownership(session_id) is None
