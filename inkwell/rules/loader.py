import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from inkwell.rules.models import Rules

logger = logging.getLogger(__name__)


def extract_yaml(content: str) -> str:
    """
    Return the body of the first ```yaml fenced block, or the whole text
    when the file has no fence (plain YAML).
    """
    body: list[str] = []
    in_block = False

    for line in content.splitlines():
        stripped = line.strip()
        if not in_block and stripped.startswith("```yaml"):
            in_block = True
            continue
        if in_block and stripped.startswith("```"):
            return "\n".join(body)
        if in_block:
            body.append(line)

    # An unterminated fence still yields its body
    return "\n".join(body) if in_block else content


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    try:
        data = yaml.safe_load(extract_yaml(path.read_text()))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        rules = Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e

    logger.info("Loaded rules from %s", path)
    return rules
