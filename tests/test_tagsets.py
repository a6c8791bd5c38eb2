import pytest

from hv.errors import InvalidId, InvalidToken, Unauthorized


@pytest.fixture
def other_user(library):
    library.register_user("Nyami", "dogs456")
    return "Nyami", library.login_user("Nyami", "dogs456")


def test_tag_set_lifecycle(library, ammie):
    user, token = ammie

    first = library.create_tag_set(user, token, ["yuri"], ["gore"])
    second = library.create_tag_set(user, token, [], [])
    sets = library.get_tag_sets(user, token)
    assert [(s.id, s.tags, s.anti_tags) for s in sets] == [
        (first, ["yuri"], ["gore"]),
        (second, [], []),
    ]

    library.change_tag_set(user, token, first, ["yuri", "romance"], [])
    library.delete_tag_set(user, token, second)

    sets = library.get_tag_sets(user, token)
    assert [(s.id, s.tags, s.anti_tags) for s in sets] == [(first, ["yuri", "romance"], [])]


def test_tag_sets_are_private(library, ammie, other_user):
    user, token = ammie
    other, other_token = other_user
    tag_set_id = library.create_tag_set(user, token, ["yuri"], [])

    assert library.get_tag_sets(other, other_token) == []
    with pytest.raises(Unauthorized):
        library.change_tag_set(other, other_token, tag_set_id, ["hacked"], [])
    with pytest.raises(Unauthorized):
        library.delete_tag_set(other, other_token, tag_set_id)

    [tag_set] = library.get_tag_sets(user, token)
    assert tag_set.tags == ["yuri"]


def test_tag_set_unknown_id(library, ammie):
    user, token = ammie
    with pytest.raises(InvalidId):
        library.change_tag_set(user, token, 42, ["yuri"], [])
    with pytest.raises(InvalidId):
        library.delete_tag_set(user, token, 42)


def test_tag_sets_need_valid_token(library, ammie):
    user, _ = ammie
    with pytest.raises(InvalidToken):
        library.create_tag_set(user, "bogus", ["yuri"], [])


def test_another_users_token_is_rejected(library, ammie, other_user):
    user, _ = ammie
    _, other_token = other_user
    with pytest.raises(InvalidToken):
        library.get_tag_sets(user, other_token)
