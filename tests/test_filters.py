import pytest

from pawfectmatch.errors import ValidationError
from pawfectmatch.filters import (
    ResidualPredicates,
    filter_from_query,
    is_valid_location,
    matches_residual,
    refine_candidates,
    split_filter,
    validate_location,
)
from pawfectmatch.models import Candidate, FilterSpec, PetEnvironment, PetPhoto, Tristate


def _pet(pet_id, photos=0, children=Tristate.UNKNOWN, dogs=Tristate.UNKNOWN, cats=Tristate.UNKNOWN):
    return Candidate(
        id=pet_id,
        photos=tuple(PetPhoto(medium=f"{pet_id}-{i}.jpg") for i in range(photos)),
        environment=PetEnvironment(children=children, dogs=dogs, cats=cats),
    )


def test_location_validator():
    assert is_valid_location("90210") is True
    assert is_valid_location("Los Angeles, CA") is True
    assert is_valid_location("Los Angeles,CA") is True
    assert is_valid_location("Los Angeles") is False
    assert is_valid_location("9021") is False
    assert is_valid_location("902101") is False
    assert is_valid_location("Springfield, 12") is False
    assert is_valid_location(" , ") is False
    assert is_valid_location("") is False
    assert is_valid_location(None) is False
    assert is_valid_location("Los Angeles,\tCA") is False
    assert is_valid_location("Los Angeles,\nCA") is False


def test_validate_location_raises_for_bad_input():
    assert validate_location(" 10001 ") == "10001"
    with pytest.raises(ValidationError):
        validate_location("Los Angeles")


def test_split_filter_sends_supported_fields_upstream():
    spec = FilterSpec(
        type="dog",
        age="young",
        size="small",
        gender="female",
        location="Austin, TX",
        distance=25,
        has_photos=True,
        good_with_kids=Tristate.YES,
    )
    remote, residual = split_filter(spec)
    assert remote == {
        "type": "dog",
        "age": "young",
        "size": "small",
        "gender": "female",
        "location": "Austin, TX",
        "distance": "25",
    }
    assert residual == ResidualPredicates(has_photos=True, good_with_kids=Tristate.YES)


def test_split_filter_drops_distance_without_valid_location():
    remote, _ = split_filter(FilterSpec(location="Los Angeles", distance=50))
    assert "location" not in remote
    assert "distance" not in remote

    remote, _ = split_filter(FilterSpec(distance=50))
    assert remote == {}


def test_split_filter_omits_unset_fields():
    remote, residual = split_filter(FilterSpec())
    assert remote == {}
    assert residual.is_empty is True


@pytest.mark.parametrize("wanted", [Tristate.YES, Tristate.NO])
def test_unknown_environment_never_matches_a_set_predicate(wanted):
    pet = _pet(1, photos=1)
    assert matches_residual(pet, ResidualPredicates(good_with_dogs=wanted)) is False


def test_environment_match_is_strict_equality():
    friendly = _pet(1, dogs=Tristate.YES)
    unfriendly = _pet(2, dogs=Tristate.NO)
    unknown = _pet(3)
    items = [friendly, unfriendly, unknown]

    assert refine_candidates(items, ResidualPredicates(good_with_dogs=Tristate.YES)) == [friendly]
    assert refine_candidates(items, ResidualPredicates(good_with_dogs=Tristate.NO)) == [unfriendly]


def test_refine_candidates_is_order_preserving_subsequence():
    items = [
        _pet(1, photos=2, children=Tristate.YES, cats=Tristate.YES),
        _pet(2, photos=0, children=Tristate.YES, cats=Tristate.YES),
        _pet(3, photos=1, children=Tristate.NO, cats=Tristate.YES),
        _pet(4, photos=1, children=Tristate.YES, cats=Tristate.YES),
        _pet(5, photos=1, children=Tristate.YES, cats=Tristate.UNKNOWN),
    ]
    residual = ResidualPredicates(
        has_photos=True,
        good_with_kids=Tristate.YES,
        good_with_cats=Tristate.YES,
    )
    result = refine_candidates(items, residual)
    assert [pet.id for pet in result] == [1, 4]
    assert len(result) <= len(items)


def test_refine_candidates_has_photos_scenario():
    items = [_pet(i, photos=1 if i <= 12 else 0) for i in range(1, 21)]
    result = refine_candidates(items, ResidualPredicates(has_photos=True))
    assert len(result) == 12
    assert all(pet.has_photos for pet in result)


def test_filter_from_query_parses_public_parameter_names():
    spec = filter_from_query(
        {
            "type": ["  Dog "],
            "age": ["Young"],
            "location": ["Los   Angeles, CA"],
            "distance": ["25"],
            "hasPhotos": ["true"],
            "goodWithKids": ["true"],
            "goodWithDogs": ["false"],
        }
    )
    assert spec.type == "dog"
    assert spec.age == "young"
    assert spec.size is None
    assert spec.location == "Los Angeles, CA"
    assert spec.distance == 25
    assert spec.has_photos is True
    assert spec.good_with_kids is Tristate.YES
    assert spec.good_with_dogs is Tristate.NO
    assert spec.good_with_cats is Tristate.UNKNOWN


def test_filter_from_query_accepts_json_values():
    spec = filter_from_query(
        {"type": "cat", "distance": 10, "hasPhotos": True, "goodWithCats": False, "goodWithDogs": None}
    )
    assert spec.type == "cat"
    assert spec.distance == 10
    assert spec.has_photos is True
    assert spec.good_with_cats is Tristate.NO
    assert spec.good_with_dogs is Tristate.UNKNOWN


def test_filter_from_query_rejects_non_positive_distance():
    assert filter_from_query({"distance": ["0"]}).distance is None
    assert filter_from_query({"distance": ["-4"]}).distance is None
    assert filter_from_query({"distance": ["far"]}).distance is None


def test_filter_from_query_truncates_fractional_distance():
    assert filter_from_query({"distance": 10.0}).distance == 10
    assert filter_from_query({"distance": ["12.7"]}).distance == 12
    assert filter_from_query({"distance": 9000.5}).distance == 500
    assert filter_from_query({"distance": ["inf"]}).distance is None
