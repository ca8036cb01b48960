"""
test_config.py - Tests for environment and policy file configuration.
"""
import json

import pytest

import config
from operators import CreditCardMaskingOperator, RegexMaskingOperator
from policy import ActivationMode


@pytest.fixture
def clean_env(monkeypatch):
    """Environment defaults as if no MASKING_* variables were set."""
    monkeypatch.setattr(config, 'MASK_VALUE', '***MASKED***')
    monkeypatch.setattr(config, 'MASKING_MODE', 'always')
    monkeypatch.setattr(config, 'FORCE_MASK_PROPERTIES', [])
    monkeypatch.setattr(config, 'NEVER_MASK_PROPERTIES', [])
    monkeypatch.setattr(config, 'OPERATOR_NAMES', ['email', 'iban', 'credit_card'])


def _write(tmp_path, settings):
    path = tmp_path / "masking.json"
    path.write_text(json.dumps(settings))
    return path


def test_load_policy_defaults(clean_env):
    policy = config.load_policy()
    assert policy.mask_value == "***MASKED***"
    assert policy.mode is ActivationMode.ALWAYS
    assert [operator.name for operator in policy.operators] == ["email", "iban", "credit_card"]


def test_environment_values(monkeypatch, clean_env):
    monkeypatch.setattr(config, 'MASK_VALUE', '[hidden]')
    monkeypatch.setattr(config, 'MASKING_MODE', 'area')
    monkeypatch.setattr(config, 'FORCE_MASK_PROPERTIES', ['Password'])
    monkeypatch.setattr(config, 'OPERATOR_NAMES', ['credit_card'])
    policy = config.load_policy()
    assert policy.mask_value == "[hidden]"
    assert policy.mode is ActivationMode.AREA_SCOPED
    assert policy.is_force_masked("password")
    assert [type(operator) for operator in policy.operators] == [CreditCardMaskingOperator]


def test_policy_file_overrides_environment(tmp_path, clean_env):
    path = _write(tmp_path, {
        "mask_value": "**",
        "never_mask": ["RequestId"],
        "operators": ["email"],
        "custom_patterns": [r"token=\w+"],
    })
    policy = config.load_policy(path)
    assert policy.mask_value == "**"
    assert policy.is_never_masked("requestid")
    assert [operator.name for operator in policy.operators] == ["email", "regex"]
    assert isinstance(policy.operators[1], RegexMaskingOperator)


def test_keyword_overrides_win(tmp_path, clean_env):
    path = _write(tmp_path, {"mask_value": "**"})
    policy = config.load_policy(path, mask_value="##", force_mask=None)
    assert policy.mask_value == "##"
    assert policy.force_mask_names == frozenset()


def test_empty_operator_list_disables_patterns(clean_env):
    assert config.load_policy(operators=[]).operators == ()


def test_null_mask_value_rejected(tmp_path, clean_env):
    path = _write(tmp_path, {"mask_value": None})
    with pytest.raises(ValueError):
        config.load_policy(path)


def test_unknown_override_rejected(clean_env):
    with pytest.raises(ValueError, match="Unknown policy settings"):
        config.load_policy(mask="**")


@pytest.mark.parametrize("content,message", [
    ("{not json", "Invalid JSON"),
    ("[1, 2]", "JSON object"),
    ('{"colour": "red"}', "Unknown keys"),
    ('{"operators": "email"}', "list of strings"),
])
def test_load_policy_file_errors(tmp_path, content, message):
    path = tmp_path / "masking.json"
    path.write_text(content)
    with pytest.raises(ValueError, match=message):
        config.load_policy_file(path)


def test_load_policy_file_missing(tmp_path):
    with pytest.raises(ValueError, match="not found"):
        config.load_policy_file(tmp_path / "missing.json")


def test_split_names():
    assert config._split_names(" Email, ,Password ") == ["Email", "Password"]
