import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from inkwell.rules.models import Rules

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "INKWELL_DATA_DIR"
SIGNING_KEY_ENV = "INKWELL_TOKEN_SIGNING_KEY"
RULES_PATH_ENV = "INKWELL_RULES_PATH"


def validate_ops_rules(rules: Rules, env: Mapping[str, str] | None = None) -> None:
    """
    Validate operational requirements before startup.
    Exits the process when a requirement is not met.
    """
    env = os.environ if env is None else env
    ops = rules.ops

    # 1. Check Required Env
    missing = [name for name in ops.required_env if not env.get(name)]
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        sys.exit(1)

    # 2. Check Data Dir
    if ops.data_dir_required:
        data_dir = env.get(DATA_DIR_ENV)
        if not data_dir:
            logger.critical("%s must be set", DATA_DIR_ENV)
            sys.exit(1)
        if not Path(data_dir).is_dir() or not os.access(data_dir, os.W_OK):
            logger.critical("Data dir %s is missing or not writable", data_dir)
            sys.exit(1)

    logger.info("Configuration validated")
