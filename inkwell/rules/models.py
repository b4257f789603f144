from pydantic import BaseModel, Field, model_validator

MINUTES_PER_DAY = 24 * 60


class SiteRules(BaseModel):
    name: str
    base_url: str
    sender: str
    article_path: str = "/posts/"
    verify_path: str = "/verify"
    unsubscribe_path: str = "/unsubscribe"

class TokenRules(BaseModel):
    unsubscribe_expiry_days: int = Field(gt=0)
    verification_expiry_hours: int = Field(gt=0)

class GapRules(BaseModel):
    min: int = Field(ge=1)
    max: int = Field(ge=1)

    @model_validator(mode="after")
    def check_range(self) -> "GapRules":
        if self.min > self.max:
            raise ValueError(f"gap_minutes.min ({self.min}) exceeds max ({self.max})")
        return self

class ReleaseRules(BaseModel):
    emails_per_day: int = Field(gt=0)
    gap_minutes: GapRules
    timeout_seconds: float = Field(gt=0)
    subject_prefix: str

    @model_validator(mode="after")
    def check_daily_window(self) -> "ReleaseRules":
        # the last send of a day must land before the next day starts
        span = (self.emails_per_day - 1) * self.gap_minutes.max
        if span >= MINUTES_PER_DAY:
            raise ValueError(
                f"emails_per_day ({self.emails_per_day}) x gap_minutes.max "
                f"({self.gap_minutes.max}) does not fit in one day"
            )
        return self

class SubscriptionRules(BaseModel):
    verification_subject: str
    unverified_retention_days: int = Field(gt=0)

class DeliveryRules(BaseModel):
    batch_size: int = Field(gt=0)
    max_attempts: int = Field(gt=0)
    retry_delay_seconds: int = Field(ge=0)
    poll_interval_seconds: float = Field(default=0, ge=0)  # 0 disables the API poller

class OpsRules(BaseModel):
    data_dir_required: bool
    required_env: list[str]
    db_filename: str = "inkwell.db"
    delivery: DeliveryRules

class Rules(BaseModel):
    site: SiteRules
    tokens: TokenRules
    release: ReleaseRules
    subscriptions: SubscriptionRules
    ops: OpsRules
