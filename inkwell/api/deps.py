import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from inkwell.adapters.clock import SystemClock
from inkwell.adapters.dev_email import DevEmailAdapter
from inkwell.adapters.email_delivery import EmailDeliveryRunner
from inkwell.adapters.sqlite_db import SQLiteNewsletterRepo, SQLiteUnitOfWork
from inkwell.app_shell.config import DATA_DIR_ENV, RULES_PATH_ENV, SIGNING_KEY_ENV
from inkwell.components.emails import JinjaEmailRenderer
from inkwell.components.release import ReleaseScheduler
from inkwell.components.release import load_config_from_rules as load_release_config
from inkwell.components.tokens import TokenIssuer
from inkwell.core.ports.db import UnitOfWorkFactory
from inkwell.rules.loader import load_rules
from inkwell.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get(DATA_DIR_ENV, "./data"))
        self.rules_path = Path(os.environ.get(RULES_PATH_ENV, str(self.base_dir / "rules.yaml")))
        self.token_signing_key = os.environ.get(SIGNING_KEY_ENV, "")

    def db_path(self, rules: Rules) -> str:
        return str(self.data_dir / rules.ops.db_filename)


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Persistence ---
def get_uow_factory(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> UnitOfWorkFactory:
    db_path = settings.db_path(rules)
    return lambda: SQLiteUnitOfWork(db_path)


def get_newsletter_repo(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteNewsletterRepo:
    return SQLiteNewsletterRepo(settings.db_path(rules))


# --- Collaborators ---
def get_clock() -> SystemClock:
    return SystemClock()


@lru_cache
def get_renderer() -> JinjaEmailRenderer:
    return JinjaEmailRenderer()


def get_token_issuer(
    settings: Settings = Depends(get_settings),
    clock: SystemClock = Depends(get_clock),
) -> TokenIssuer:
    return TokenIssuer(settings.token_signing_key, clock)


def get_release_scheduler(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    issuer: TokenIssuer = Depends(get_token_issuer),
    renderer: JinjaEmailRenderer = Depends(get_renderer),
    clock: SystemClock = Depends(get_clock),
    rules: Rules = Depends(get_rules),
) -> ReleaseScheduler:
    return ReleaseScheduler(
        uow_factory=uow_factory,
        tokens=issuer,
        renderer=renderer,
        time_port=clock,
        config=load_release_config(rules),
    )


# --- Delivery ---
@lru_cache
def get_email() -> DevEmailAdapter:
    return DevEmailAdapter()


def build_delivery_runner(settings: Settings, rules: Rules) -> EmailDeliveryRunner:
    """Runner for the lifespan poller; built outside request scope."""
    db_path = settings.db_path(rules)
    return EmailDeliveryRunner(
        uow_factory=lambda: SQLiteUnitOfWork(db_path),
        email=get_email(),
        clock=get_clock(),
        max_attempts=rules.ops.delivery.max_attempts,
        retry_delay_seconds=rules.ops.delivery.retry_delay_seconds,
    )
