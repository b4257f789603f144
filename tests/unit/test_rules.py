"""
Rules loading and validation tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from inkwell.components.release import load_config_from_rules as release_config
from inkwell.components.subscriptions import load_config_from_rules as subscription_config
from inkwell.rules.loader import extract_yaml, load_rules
from inkwell.rules.models import Rules

PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def raw_rules() -> dict[str, Any]:
    return yaml.safe_load((PROJECT_ROOT / "rules.yaml").read_text())


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(content)
    return path


class TestRulesLoading:
    def test_load_project_rules(self, rules: Rules) -> None:
        assert rules.release.emails_per_day == 50
        assert rules.release.gap_minutes.min == 1
        assert rules.release.gap_minutes.max == 4
        assert rules.tokens.verification_expiry_hours == 72

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_rules(_write(tmp_path, "site: [unclosed"))

    def test_missing_section(self, tmp_path: Path, raw_rules: dict[str, Any]) -> None:
        del raw_rules["release"]
        with pytest.raises(ValueError, match="Rules validation failed"):
            load_rules(_write(tmp_path, yaml.dump(raw_rules)))

    def test_gap_range_must_be_ordered(self, tmp_path: Path, raw_rules: dict[str, Any]) -> None:
        raw_rules["release"]["gap_minutes"] = {"min": 5, "max": 2}
        with pytest.raises(ValueError, match="exceeds max"):
            load_rules(_write(tmp_path, yaml.dump(raw_rules)))

    def test_emails_per_day_must_be_positive(
        self, tmp_path: Path, raw_rules: dict[str, Any]
    ) -> None:
        raw_rules["release"]["emails_per_day"] = 0
        with pytest.raises(ValueError):
            load_rules(_write(tmp_path, yaml.dump(raw_rules)))

    def test_zero_gap_rejected(self, tmp_path: Path, raw_rules: dict[str, Any]) -> None:
        raw_rules["release"]["gap_minutes"] = {"min": 0, "max": 0}
        with pytest.raises(ValueError, match="Rules validation failed"):
            load_rules(_write(tmp_path, yaml.dump(raw_rules)))

    def test_day_of_sends_must_fit_in_a_day(self, raw_rules: dict[str, Any]) -> None:
        raw_rules["release"]["emails_per_day"] = 500
        raw_rules["release"]["gap_minutes"] = {"min": 1, "max": 4}
        with pytest.raises(ValueError, match="does not fit in one day"):
            Rules.model_validate(raw_rules)

    def test_largest_daily_window_accepted(self, raw_rules: dict[str, Any]) -> None:
        # 360 sends at 4 minutes: the last goes out at 23:56
        raw_rules["release"]["emails_per_day"] = 360
        raw_rules["release"]["gap_minutes"] = {"min": 1, "max": 4}
        assert Rules.model_validate(raw_rules).release.emails_per_day == 360

    def test_markdown_fenced_rules(self, tmp_path: Path, raw_rules: dict[str, Any]) -> None:
        content = "# Rules\n\nSome prose.\n\n```yaml\n" + yaml.dump(raw_rules) + "```\n\nMore.\n"

        rules = load_rules(_write(tmp_path, content))

        assert rules.site.name == "Inkwell"


class TestExtractYaml:
    def test_plain_yaml_is_returned_as_is(self) -> None:
        assert extract_yaml("a: 1\n") == "a: 1\n"

    def test_only_first_block(self) -> None:
        content = "```yaml\na: 1\n```\n```yaml\nb: 2\n```\n"
        assert extract_yaml(content) == "a: 1"

    def test_unterminated_fence(self) -> None:
        assert extract_yaml("```yaml\na: 1\nb: 2") == "a: 1\nb: 2"


class TestComponentConfig:
    def test_release_config(self, rules: Rules) -> None:
        config = release_config(rules)

        assert config.emails_per_day == 50
        assert (config.min_gap_minutes, config.max_gap_minutes) == (1, 4)
        assert config.token_expiry_days == 365
        assert config.subject_prefix == "newsletter - "
        assert config.unsubscribe_path == "/unsubscribe"

    def test_subscription_config(self, rules: Rules) -> None:
        config = subscription_config(rules)

        assert config.verification_token_hours == 72
        assert config.retention_days == 14
        assert config.verify_path == "/verify"
