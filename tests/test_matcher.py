import pytest

from solgrep.core.matcher import (
    AllMatcher,
    AnyMatcher,
    LiteralMatcher,
    RegexMatcher,
    build_matcher,
    validate_matcher_spec,
)

CALL_SPEC = {
    "any": [
        ".call{",
        {"regex": r"\.send\s*\("},
    ]
}


# --- matching ---

def test_literal_matches_substring():
    m = LiteralMatcher("tx.origin")
    assert m.matches("require(tx.origin == owner);") is True
    assert m.matches("require(msg.sender == owner);") is False


def test_literal_is_not_a_regex():
    m = LiteralMatcher("tx.origin")
    assert m.matches("txXorigin") is False


def test_regex_searches_anywhere_in_line():
    m = RegexMatcher(r"block\.(timestamp|number)")
    assert m.matches("uint t = block.timestamp;") is True
    assert m.matches("uint n = block.number;") is True
    assert m.matches("uint x = blocktimestamp;") is False


def test_regex_ignore_case():
    m = RegexMatcher(r"selfdestruct", ignore_case=True)
    assert m.matches("SELFDESTRUCT(owner);") is True


def test_any_matcher():
    m = build_matcher(CALL_SPEC)
    assert m.matches('to.call{value: 1}("");') is True
    assert m.matches("to.send (1);") is True
    assert m.matches("to.transfer(1);") is False


def test_all_matcher():
    m = AllMatcher([LiteralMatcher(".call{"), LiteralMatcher("value")])
    assert m.matches('to.call{value: 1}("");') is True
    assert m.matches('to.call{gas: 1}("");') is False


def test_broken_regex_raises_when_evaluated():
    m = RegexMatcher("(unclosed")
    with pytest.raises(ValueError, match="invalid regex"):
        m.matches("anything")


# --- Matcher.validate ---

def test_validate_accepts_well_formed_matchers():
    assert LiteralMatcher("x").validate() == []
    assert RegexMatcher(r"\bx\b").validate() == []
    assert AnyMatcher([LiteralMatcher("a"), RegexMatcher("b")]).validate() == []


def test_validate_empty_literal():
    errors = LiteralMatcher("").validate()
    assert any("non-empty string" in e for e in errors)


def test_validate_malformed_regex():
    errors = RegexMatcher("[a-").validate(path="matcher")
    assert len(errors) == 1
    assert errors[0].startswith("matcher: invalid regex")


def test_validate_empty_alternation():
    errors = AnyMatcher([]).validate()
    assert any("at least one alternative" in e for e in errors)


def test_validate_nested_error_path():
    m = AnyMatcher([LiteralMatcher("ok"), AllMatcher([RegexMatcher("(")])])
    errors = m.validate()
    assert any("matcher.any[1].all[0]" in e for e in errors)


# --- validate_matcher_spec ---

def test_spec_valid():
    assert validate_matcher_spec(CALL_SPEC) == []
    assert validate_matcher_spec("tx.origin") == []
    assert validate_matcher_spec({"regex": "a+", "ignore_case": True}) == []


def test_spec_rejects_non_string_non_dict():
    errors = validate_matcher_spec(42)
    assert any("expected string or dict" in e for e in errors)


def test_spec_rejects_ambiguous_kind():
    errors = validate_matcher_spec({"literal": "a", "regex": "b"})
    assert any("expected exactly one of" in e for e in errors)


def test_spec_rejects_unknown_kind():
    errors = validate_matcher_spec({"glob": "*.sol"})
    assert any("expected exactly one of" in e for e in errors)


def test_spec_any_requires_list():
    errors = validate_matcher_spec({"any": "tx.origin"})
    assert any("pattern.any: expected list" in e for e in errors)


def test_spec_nested_bad_regex():
    errors = validate_matcher_spec({"any": ["ok", {"all": [{"regex": "(("}]}]})
    assert any("pattern.any[1].all[0]" in e and "invalid regex" in e for e in errors)


def test_spec_empty_literal():
    assert validate_matcher_spec("") != []
    assert validate_matcher_spec({"literal": ""}) != []


# --- build_matcher ---

def test_build_plain_string_is_literal():
    m = build_matcher("delegatecall")
    assert isinstance(m, LiteralMatcher)
    assert m.text == "delegatecall"


def test_build_regex_keeps_flags():
    m = build_matcher({"regex": "suicide", "ignore_case": True})
    assert isinstance(m, RegexMatcher)
    assert m.matches("SUICIDE(x);") is True
