import pytest

from sumosync.core.sources import (
    ATTRIBUTES,
    SourceDefinition,
    ValidationError,
    validate,
    validate_all,
)


def test_attribute_list_is_fixed():
    assert [a for a, _, _ in ATTRIBUTES] == [
        "path",
        "category",
        "default_timezone",
        "force_timezone",
        "automatic_date_parsing",
        "multiline_processing_enabled",
        "use_autoline_matching",
        "manual_prefix_regexp",
        "default_date_format",
    ]


def test_attribute_accessors_read_their_own_field():
    d = SourceDefinition(name="app-logs", path="/p", category="c", default_timezone="UTC",
                         force_timezone=True, automatic_date_parsing=False,
                         multiline_processing_enabled=False, use_autoline_matching=False,
                         manual_prefix_regexp=None, default_date_format="yyyy")
    assert [get(d) for attr, _, get in ATTRIBUTES] == [getattr(d, attr) for attr, _, _ in ATTRIBUTES]
    assert [get(d) for _, _, get in ATTRIBUTES][:3] == ["/p", "c", "UTC"]


def test_to_api_omits_unset_optionals():
    d = SourceDefinition(name="app-logs", path="/var/log/app/*.log", category="app",
                         default_timezone="UTC", force_timezone=False)
    assert d.to_api() == {
        "name": "app-logs",
        "sourceType": "LocalFile",
        "pathExpression": "/var/log/app/*.log",
        "category": "app",
        "timeZone": "UTC",
        "forceTimeZone": False,
        "automaticDateParsing": True,
        "multilineProcessingEnabled": True,
        "useAutolineMatching": True,
    }


def test_from_api_maps_fields_and_id():
    d = SourceDefinition.from_api({
        "id": 7, "name": "a", "sourceType": "LocalFile", "pathExpression": "/a",
        "timeZone": "UTC", "forceTimeZone": True, "manualPrefixRegexp": "^x",
    })
    assert d.source_id == 7
    assert d.path == "/a" and d.default_timezone == "UTC" and d.force_timezone is True
    assert d.manual_prefix_regexp == "^x"
    assert d.category is None


def test_from_mapping_accepts_aliases_and_strings():
    d = SourceDefinition.from_mapping({
        "name": " app ",
        "pathExpression": "/var/log/*.log",
        "timezone": "UTC",
        "force_timezone": "yes",
        "multiline_processing_enabled": "false",
        "category": "",
        "action": "create",
    })
    assert d.name == "app"
    assert d.path == "/var/log/*.log"
    assert d.default_timezone == "UTC"
    assert d.force_timezone is True
    assert d.multiline_processing_enabled is False
    assert d.category is None


def test_from_mapping_rejects_unknown_and_bad_bools():
    with pytest.raises(ValidationError, match="Unknown source attribute"):
        SourceDefinition.from_mapping({"name": "a", "colour": "red"})
    with pytest.raises(ValidationError, match="boolean"):
        SourceDefinition.from_mapping({"name": "a", "force_timezone": "maybe"})
    with pytest.raises(ValidationError, match="missing 'name'"):
        SourceDefinition.from_mapping({"path": "/a"})


def test_validate_rules():
    validate(SourceDefinition(name="a", path="/a"))
    validate(SourceDefinition(name="a"), "delete")

    with pytest.raises(ValidationError, match="'path' is required"):
        validate(SourceDefinition(name="a"))
    with pytest.raises(ValidationError, match="non-empty"):
        validate(SourceDefinition(name="  ", path="/a"))
    with pytest.raises(ValidationError, match="requires 'default_timezone'"):
        validate(SourceDefinition(name="a", path="/a", force_timezone=True))
    with pytest.raises(ValidationError, match="must be a boolean"):
        validate(SourceDefinition(name="a", path="/a", automatic_date_parsing="yes"))
    with pytest.raises(ValidationError, match="Unknown intent"):
        validate(SourceDefinition(name="a", path="/a"), "upsert")


def test_validate_all_rejects_duplicates():
    a = SourceDefinition(name="a", path="/a")
    with pytest.raises(ValidationError, match="Duplicate"):
        validate_all([(a, "create"), (a, "delete")])
