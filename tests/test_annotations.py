from modelgen.annotations import (
    find_annotation,
    get_bigint_annotation,
    get_enum_annotation,
    get_json_annotation,
    get_set_annotation,
    parse_annotations,
)
from modelgen.meta_models import AnnotationKind


def test_empty_and_none_comments():
    assert parse_annotations("") == []
    assert parse_annotations(None) == []


def test_bare_and_argument_directives():
    found = parse_annotations("@bigint some text @json(dict[str, int])")
    assert [a.kind for a in found] == [AnnotationKind.BIGINT, AnnotationKind.JSON]
    assert found[0].argument is None
    assert found[1].argument == "dict[str, int]"
    assert found[1].full_annotation == "@json(dict[str, int])"


def test_kind_is_case_insensitive():
    found = parse_annotations("@BigInt and @SET")
    assert [a.kind for a in found] == [AnnotationKind.BIGINT, AnnotationKind.SET]


def test_directive_must_follow_whitespace_or_start():
    assert parse_annotations("mail me at bob@json(Foo)") == []
    assert len(parse_annotations("\t@json(Foo)")) == 1


def test_unknown_kind_and_suffixed_kind_are_ignored():
    assert parse_annotations("@integer @bigints @jsonx(Foo) @date") == []


def test_unterminated_parenthesis_is_ignored():
    assert parse_annotations("@set(Literal['a'") == []
    # scanning resumes after the broken directive
    found = parse_annotations("@enum(Foo @bigint")
    assert [a.kind for a in found] == [AnnotationKind.BIGINT]


def test_nested_parentheses_in_argument():
    found = parse_annotations("@json(Callable[(int), str]) trailing)")
    assert found[0].argument == "Callable[(int), str]"


def test_first_directive_of_a_kind_wins():
    found = parse_annotations("@json(First) @json(Second)")
    assert find_annotation(found, AnnotationKind.JSON).argument == "First"
    assert get_json_annotation(found).argument == "First"


def test_json_and_enum_without_argument_count_as_absent():
    found = parse_annotations("@json @enum() @json(Later)")
    assert get_json_annotation(found) is None
    assert get_enum_annotation(found) is None
    assert get_enum_annotation(parse_annotations("@enum(   )")) is None


def test_bigint_and_set_do_not_need_an_argument():
    found = parse_annotations("@bigint @set")
    assert get_bigint_annotation(found) is not None
    assert get_set_annotation(found).argument is None


def test_directive_may_be_followed_by_punctuation():
    assert [a.kind for a in parse_annotations("Big counter @bigint.")] == [AnnotationKind.BIGINT]
    assert [a.kind for a in parse_annotations("@set, see docs")] == [AnnotationKind.SET]
    assert parse_annotations("@json(Foo);")[0].argument == "Foo"
    assert parse_annotations("@bigint_id @set2") == []
