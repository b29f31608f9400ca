"""Tests for merging sections into project.config."""

import configparser

import pytest

from cookbook_mirror.project_config import (
    ProjectConfigLoadError,
    ProjectConfigWriteError,
    get_values,
    load_project_config,
    merge_sections,
)

from conftest import SAMPLE_PROJECT_CONFIG


@pytest.fixture
def project_config(tmp_path):
    path = tmp_path / "project.config"
    path.write_text(SAMPLE_PROJECT_CONFIG, encoding="utf-8")
    return path


def test_absent_sections_are_never_created(project_config):
    result = merge_sections(project_config, {
        'access "refs/tags/*"': {"push": "group Admins"},
        "plugin \"foo\"": {"enabled": True},
    })
    parser = load_project_config(project_config)
    assert parser.sections() == ["project", 'access "refs/heads/*"', "receive"]
    assert result.merged_sections == []
    assert result.skipped_sections == ['access "refs/tags/*"', 'plugin "foo"']
    assert result.changed is False


def test_override_wins_and_other_keys_survive(project_config):
    result = merge_sections(project_config, {
        'access "refs/heads/*"': {"submit-type": "MERGE_IF_NECESSARY", "owner": "group Admins"},
    })
    parser = load_project_config(project_config)
    section = dict(parser.items('access "refs/heads/*"'))
    assert section == {
        "read": "group Registered Users",
        "submit-type": "MERGE_IF_NECESSARY",
        "owner": "group Admins",
    }
    assert dict(parser.items("receive")) == {"requireChangeId": "true"}
    assert result.merged_sections == ['access "refs/heads/*"']
    assert result.changed is True


def test_merge_is_idempotent(project_config):
    overrides = {
        'access "refs/heads/*"': {"submit-type": "MERGE_IF_NECESSARY"},
        "receive": {"requireChangeId": False},
    }
    merge_sections(project_config, overrides)
    once = project_config.read_text(encoding="utf-8")

    second = merge_sections(project_config, overrides)
    assert project_config.read_text(encoding="utf-8") == once
    assert second.changed is False


def test_later_overrides_win(project_config):
    # YAML mappings cannot repeat a key, but a dict built in code can be
    # re-applied; the last merge of the same key wins.
    merge_sections(project_config, {"receive": {"requireChangeId": "false"}})
    merge_sections(project_config, {"receive": {"requireChangeId": "true"}})
    parser = load_project_config(project_config)
    assert parser.get("receive", "requireChangeId") == "true"


def test_keys_keep_their_case_and_booleans_render_lowercase(project_config):
    merge_sections(project_config, {"receive": {"rejectImplicitMerges": True}})
    text = project_config.read_text(encoding="utf-8")
    assert "\trejectImplicitMerges = true\n" in text
    assert "\trequireChangeId = true\n" in text


def test_written_layout_is_git_config_style(project_config):
    merge_sections(project_config, {})
    assert project_config.read_text(encoding="utf-8") == SAMPLE_PROJECT_CONFIG


def test_missing_file_raises_load_error(tmp_path):
    with pytest.raises(ProjectConfigLoadError) as excinfo:
        merge_sections(tmp_path / "project.config", {})
    assert "project.config" in str(excinfo.value)


def test_malformed_file_raises_load_error(tmp_path):
    path = tmp_path / "project.config"
    path.write_text("\tkey = value outside any section\n", encoding="utf-8")
    with pytest.raises(ProjectConfigLoadError) as excinfo:
        merge_sections(path, {})
    assert isinstance(excinfo.value.cause, configparser.Error)


def test_write_failure_raises_write_error(project_config, monkeypatch):
    real_open = open

    def failing_open(file, mode="r", *args, **kwargs):
        if "w" in mode:
            raise PermissionError("read-only file system")
        return real_open(file, mode, *args, **kwargs)

    monkeypatch.setattr("cookbook_mirror.project_config.open", failing_open, raising=False)
    with pytest.raises(ProjectConfigWriteError) as excinfo:
        merge_sections(project_config, {"receive": {"requireChangeId": False}})
    assert isinstance(excinfo.value.cause, PermissionError)


REPEATED_GRANTS = """\
[access "refs/*"]
\tread = group Administrators
\tread = group Registered Users
\towner = group Administrators
[receive]
\trequireChangeId = true
"""


def test_repeated_keys_in_other_sections_survive(tmp_path):
    path = tmp_path / "project.config"
    path.write_text(REPEATED_GRANTS, encoding="utf-8")

    result = merge_sections(path, {"receive": {"requireChangeId": False}})

    parser = load_project_config(path)
    assert get_values(parser, 'access "refs/*"', "read") == [
        "group Administrators",
        "group Registered Users",
    ]
    assert path.read_text(encoding="utf-8") == REPEATED_GRANTS.replace(
        "requireChangeId = true", "requireChangeId = false")
    assert result.changed is True


def test_repeated_keys_are_rewritten_unchanged(tmp_path):
    path = tmp_path / "project.config"
    path.write_text(REPEATED_GRANTS, encoding="utf-8")
    result = merge_sections(path, {"receive": {"requireChangeId": True}})
    assert path.read_text(encoding="utf-8") == REPEATED_GRANTS
    assert result.changed is False


def test_override_replaces_every_value_of_a_repeated_key(tmp_path):
    path = tmp_path / "project.config"
    path.write_text(REPEATED_GRANTS, encoding="utf-8")

    result = merge_sections(path, {'access "refs/*"': {"read": "group Anonymous Users"}})

    parser = load_project_config(path)
    assert get_values(parser, 'access "refs/*"', "read") == ["group Anonymous Users"]
    assert get_values(parser, 'access "refs/*"', "owner") == ["group Administrators"]
    assert result.changed is True
