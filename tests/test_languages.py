import pytest

from livecaption.languages import available_languages, language_code, language_name


def test_known_codes():
    assert language_name("en") == "English"
    assert language_name("haw") == "Hawaiian"
    assert language_name("auto") == "Auto detect"


def test_known_names():
    assert language_code("German") == "de"
    assert language_code("Sundanese") == "su"


def test_round_trip_for_every_language():
    for code, name in available_languages().items():
        assert language_name(code) == name
        assert language_code(name) == code


def test_available_languages_sorted_by_code():
    codes = list(available_languages())
    assert codes == sorted(codes)
    assert "auto" in codes


def test_available_languages_is_a_copy():
    langs = available_languages()
    langs["xx"] = "Nothing"
    assert "xx" not in available_languages()


def test_unknown_code_raises():
    with pytest.raises(KeyError):
        language_name("zz")


def test_unknown_name_raises():
    with pytest.raises(KeyError):
        language_code("Klingon")