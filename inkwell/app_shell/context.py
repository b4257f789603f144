from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from inkwell.adapters.clock import SystemClock
from inkwell.adapters.dev_email import DevEmailAdapter
from inkwell.adapters.email_delivery import EmailDeliveryRunner
from inkwell.adapters.sqlite_db import SQLiteUnitOfWork
from inkwell.components.emails import JinjaEmailRenderer
from inkwell.components.release import ReleaseScheduler
from inkwell.components.release import load_config_from_rules as load_release_config
from inkwell.components.subscriptions import SubscriptionConfig
from inkwell.components.subscriptions import load_config_from_rules as load_subscription_config
from inkwell.components.tokens import TokenIssuer
from inkwell.core.ports.db import UnitOfWorkFactory
from inkwell.core.ports.email import EmailPort
from inkwell.ports.clock import ClockPort
from inkwell.rules.models import Rules


@dataclass
class ServiceContext:
    db_path: str
    uow_factory: UnitOfWorkFactory
    clock: ClockPort
    token_issuer: TokenIssuer
    renderer: JinjaEmailRenderer
    release_scheduler: ReleaseScheduler
    delivery_runner: EmailDeliveryRunner
    subscription_config: SubscriptionConfig
    rules: Rules

    @classmethod
    def create(
        cls,
        data_dir: Path,
        rules: Rules,
        signing_key: str,
        email: EmailPort | None = None,
        clock: ClockPort | None = None,
    ) -> ServiceContext:
        db_path = str(data_dir / rules.ops.db_filename)

        def uow_factory() -> SQLiteUnitOfWork:
            return SQLiteUnitOfWork(db_path)

        # Adapters
        clock = clock or SystemClock()
        renderer = JinjaEmailRenderer()
        issuer = TokenIssuer(signing_key, clock)
        delivery = rules.ops.delivery

        return cls(
            db_path=db_path,
            uow_factory=uow_factory,
            clock=clock,
            token_issuer=issuer,
            renderer=renderer,
            release_scheduler=ReleaseScheduler(
                uow_factory=uow_factory,
                tokens=issuer,
                renderer=renderer,
                time_port=clock,
                config=load_release_config(rules),
            ),
            delivery_runner=EmailDeliveryRunner(
                uow_factory=uow_factory,
                email=email or DevEmailAdapter(),
                clock=clock,
                max_attempts=delivery.max_attempts,
                retry_delay_seconds=delivery.retry_delay_seconds,
            ),
            subscription_config=load_subscription_config(rules),
            rules=rules,
        )
