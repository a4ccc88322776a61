from __future__ import annotations

import pytest

from user_service.domain.contracts import CreateUserInput
from user_service.domain.errors import ErrorKind, ServiceError
from user_service.repository import StoreError


def test_add_get_and_list_genders(gender_service):
    female = gender_service.add_gender("female")
    male = gender_service.add_gender("  male ")

    assert male.title == "male"
    assert gender_service.get_gender(female.gender_id) == female
    assert gender_service.list_genders() == [female, male]


def test_add_gender_rejects_empty_and_duplicate_titles(gender_service, store):
    with pytest.raises(ServiceError) as empty:
        gender_service.add_gender("")
    assert empty.value.kind is ErrorKind.missing_field
    assert store.calls == []

    gender_service.add_gender("other")
    with pytest.raises(ServiceError) as duplicate:
        gender_service.add_gender("other")
    assert duplicate.value.kind is ErrorKind.duplicate_value
    assert duplicate.value.field == "title"


@pytest.mark.parametrize("operation", ["get_gender", "remove_gender"])
def test_gender_id_lookups(gender_service, operation):
    call = getattr(gender_service, operation)
    with pytest.raises(ServiceError) as empty:
        call(0)
    assert empty.value.kind is ErrorKind.missing_field

    with pytest.raises(ServiceError) as absent:
        call(99)
    assert absent.value.kind is ErrorKind.not_found


@pytest.mark.parametrize("operation", ["get_gender", "remove_gender"])
@pytest.mark.parametrize("gender_id", [-3, 32768, 70000])
def test_gender_ids_outside_key_range_skip_the_store(gender_service, store, operation, gender_id):
    with pytest.raises(ServiceError) as excinfo:
        getattr(gender_service, operation)(gender_id)
    assert excinfo.value.kind is ErrorKind.not_found
    assert store.calls == []


def test_remove_gender_is_permanent(gender_service):
    gender = gender_service.add_gender("nonbinary")
    gender_service.remove_gender(gender.gender_id)

    with pytest.raises(ServiceError) as excinfo:
        gender_service.get_gender(gender.gender_id)
    assert excinfo.value.kind is ErrorKind.not_found
    assert gender_service.list_genders() == []


def test_remove_referenced_gender_is_rejected(gender_service, account_service):
    gender = gender_service.add_gender("female")
    account_service.create_user(
        CreateUserInput(
            email="g@x.com",
            password="pw",
            first_name="Gail",
            last_name="Ng",
            gender=gender.gender_id,
        )
    )

    with pytest.raises(ServiceError) as excinfo:
        gender_service.remove_gender(gender.gender_id)
    assert excinfo.value.kind is ErrorKind.referenced_value
    assert gender_service.get_gender(gender.gender_id) == gender


def test_list_genders_store_failure_is_internal(gender_service, store):
    store.fail_with = StoreError("list_genders")
    with pytest.raises(ServiceError) as excinfo:
        gender_service.list_genders()
    assert excinfo.value.kind is ErrorKind.internal
