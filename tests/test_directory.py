import pytest

from paytovote.directory import login_identifier_for, normalize_identifier
from paytovote.errors import IdentityLookupError, NotFoundError, ValidationError


def test_normalize_lowercases_and_strips_non_alphanumerics():
    assert normalize_identifier("  FPE/CS/21/0042 ") == "fpecs210042"
    assert normalize_identifier("fpe-cs-21-0042") == "fpecs210042"


def test_normalize_rejects_identifier_without_letters_or_digits():
    with pytest.raises(ValidationError):
        normalize_identifier("//--")


def test_login_identifier_is_address_shaped():
    assert login_identifier_for("FPE/CS/21/0042", "dept.edu") == "fpecs210042@dept.edu"


def test_resolve_by_institution_id_in_any_spelling(services, student):
    assert services.directory.resolve("FPE/CS/21/0042") == student.login_identifier
    assert services.directory.resolve("fpe cs 21 0042") == student.login_identifier


def test_resolve_by_display_name_is_case_insensitive(services, student):
    assert services.directory.resolve("JDoe") == student.login_identifier


def test_resolve_unknown_identifier(services, student):
    with pytest.raises(IdentityLookupError):
        services.directory.resolve("nobody")
    with pytest.raises(IdentityLookupError):
        services.directory.resolve("   ")


def test_get_and_find_many(services, student, other_student):
    assert services.directory.get(student.id).display_name == "jdoe"
    found = services.directory.find_many([student.id, other_student.id, "not-an-id"])
    assert set(found) == {student.id, other_student.id}
    with pytest.raises(NotFoundError):
        services.directory.get("not-an-id")


def test_display_name_can_change_but_stays_unique(services, student, other_student):
    updated = services.directory.update_display_name(student.id, "johnny")
    assert updated.display_name == "johnny"
    assert updated.institution_id == student.institution_id
    assert services.directory.resolve("johnny") == student.login_identifier
    with pytest.raises(ValidationError):
        services.directory.update_display_name(student.id, "MARY")


def test_own_display_name_can_change_case(services, student):
    updated = services.directory.update_display_name(student.id, "JDoe")
    assert updated.display_name == "JDoe"
    assert services.directory.resolve("jdoe") == student.login_identifier


def test_display_name_cannot_take_another_users_institution_key(services, student, other_student):
    with pytest.raises(ValidationError):
        services.directory.update_display_name(other_student.id, "FPE-CS-21-0042")
