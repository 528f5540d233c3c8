"""Tests for saving and loading registry state."""

import pytest
import yaml

from template_registry import ErrorKind, RegistryError, TemplateRegistry

from .conftest import HASH_A, HASH_B, OTHER, OWNER


@pytest.fixture
def populated(registry, vault):
    registry.publish_version(vault, "1.0.0", HASH_A, "first", caller=OWNER, height=2)
    registry.publish_version(vault, "1.1.0", HASH_B, caller=OWNER, height=3)
    registry.deprecate_version(vault, "1.0.0", caller=OWNER, height=4)
    registry.register_template(
        "Token", "Fungible token", ["ft"], ["2.0", "2.1"], ["stacks"],
        "https://docs.example.com", caller=OTHER, height=5,
    )
    return registry


def test_save_and_load(tmp_path, populated):
    path = populated.save(tmp_path / "state" / "registry.yaml")
    assert path.exists()

    loaded = TemplateRegistry.load(path)
    assert loaded.to_dict() == populated.to_dict()
    assert loaded.get_template_count() == 2
    assert loaded.height == 5
    assert loaded.get_version_list(1) == ["1.0.0", "1.1.0"]
    assert loaded.get_version(1, "1.0.0").is_deprecated
    assert loaded.get_version(1, "1.1.0").content_hash == HASH_B
    assert loaded.get_template(2).documentation_url == "https://docs.example.com"


def test_loaded_registry_keeps_invariants(tmp_path, populated):
    loaded = TemplateRegistry.load(populated.save(tmp_path / "registry.yaml"))

    assert loaded.register_template(
        "Next", "d", [], ["2.1"], ["stacks"], caller=OWNER, height=6
    ) == 3
    with pytest.raises(RegistryError) as exc_info:
        loaded.publish_version(1, "1.0.0", HASH_B, caller=OWNER, height=7)
    assert exc_info.value.kind is ErrorKind.VERSION_ALREADY_EXISTS
    with pytest.raises(RegistryError) as exc_info:
        loaded.reactivate_template(1, caller=OWNER, height=1)
    assert exc_info.value.kind is ErrorKind.INVALID_CALL_CONTEXT


def test_load_missing_or_empty_file(tmp_path):
    assert TemplateRegistry.load(tmp_path / "missing.yaml").get_template_count() == 0

    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert TemplateRegistry.load(empty).get_template_count() == 0


def test_load_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("templates: [unclosed\n")
    with pytest.raises(ValueError, match="Error parsing YAML"):
        TemplateRegistry.load(path)


def test_load_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError, match="expected a mapping"):
        TemplateRegistry.load(path)


def test_load_rejects_inconsistent_state(tmp_path, populated):
    data = populated.to_dict()
    data["version_index"][1].append("9.9.9")
    path = tmp_path / "inconsistent.yaml"
    path.write_text(yaml.safe_dump(data))
    with pytest.raises(ValueError, match="Version list"):
        TemplateRegistry.load(path)


def test_load_rejects_count_mismatch(populated):
    data = populated.to_dict()
    data["template_count"] = 3
    with pytest.raises(ValueError, match="do not match count"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_missing_fields(populated):
    data = populated.to_dict()
    del data["templates"][0]["owner"]
    with pytest.raises(ValueError, match="Malformed registry data"):
        TemplateRegistry.from_dict(data)


def test_save_leaves_no_temp_files(tmp_path, populated):
    populated.save(tmp_path / "registry.yaml")
    populated.save(tmp_path / "registry.yaml")
    assert [p.name for p in tmp_path.iterdir()] == ["registry.yaml"]


@pytest.mark.parametrize(
    "section, value",
    [
        ("compatibility", [{"clarity_versions": ["2.1"], "platforms": ["stacks"]}]),
        ("version_index", [["1.0.0", "1.1.0"]]),
        ("templates", {"1": {}}),
        ("versions", "1.0.0"),
    ],
)
def test_load_rejects_wrong_section_types(populated, section, value):
    data = populated.to_dict()
    data[section] = value
    with pytest.raises(ValueError, match="Malformed registry data"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_non_list_version_index_entry(populated):
    data = populated.to_dict()
    data["version_index"][1] = "1.0.0"
    with pytest.raises(ValueError, match="Malformed registry data"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_empty_compatibility(populated):
    data = populated.to_dict()
    data["compatibility"][1] = {"clarity_versions": [], "platforms": []}
    with pytest.raises(ValueError, match="INVALID_COMPATIBILITY"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_short_content_hash(populated):
    data = populated.to_dict()
    data["versions"][0]["content_hash"] = "ab"
    with pytest.raises(ValueError, match="INVALID_CONTENT_HASH"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_invalid_version_label(populated):
    data = populated.to_dict()
    data["versions"][0]["version"] = "100"
    data["version_index"][1][0] = "100"
    with pytest.raises(ValueError, match="not a valid version label"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_empty_title(populated):
    data = populated.to_dict()
    data["templates"][0]["title"] = ""
    with pytest.raises(ValueError, match="EMPTY_FIELD"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_too_many_tags(populated):
    data = populated.to_dict()
    data["templates"][0]["tags"] = ["a", "b", "c", "d", "e", "f"]
    with pytest.raises(ValueError, match="TAG_LIMIT_EXCEEDED"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_update_before_creation(populated):
    data = populated.to_dict()
    data["templates"][1]["last_updated"] = 0
    with pytest.raises(ValueError, match="timestamps out of order"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_height_behind_records(populated):
    data = populated.to_dict()
    data["height"] = 3
    with pytest.raises(ValueError, match="timestamps out of order"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_version_published_after_last_update(populated):
    data = populated.to_dict()
    data["versions"][1]["published_at"] = 5
    with pytest.raises(ValueError, match="published after"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_more_than_twenty_versions(populated):
    data = populated.to_dict()
    extra = [f"3.{i}" for i in range(19)]
    data["version_index"][1].extend(extra)
    data["versions"].extend(
        {
            "template_id": 1,
            "version": label,
            "content_hash": HASH_A.hex(),
            "published_at": 2,
        }
        for label in extra
    )
    with pytest.raises(ValueError, match="more than 20 versions"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_string_where_list_expected(populated):
    data = populated.to_dict()
    data["templates"][0]["tags"] = "defi"
    with pytest.raises(ValueError, match="list of strings"):
        TemplateRegistry.from_dict(data)


def test_load_rejects_non_boolean_flags(populated):
    data = populated.to_dict()
    data["templates"][0]["is_active"] = "false"
    with pytest.raises(ValueError, match="must be true or false"):
        TemplateRegistry.from_dict(data)

    data = populated.to_dict()
    data["versions"][0]["is_deprecated"] = 1
    with pytest.raises(ValueError, match="must be true or false"):
        TemplateRegistry.from_dict(data)
