from pydantic import BaseModel, ConfigDict, Field


class AuthUserRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, max_length=64)
    email: str | None = None
    raw_user_meta_data: dict[str, object] | None = None

    @property
    def full_name(self) -> str | None:
        meta = self.raw_user_meta_data or {}
        name = meta.get("full_name") or meta.get("name")
        return str(name) if name else None

    @property
    def avatar_url(self) -> str | None:
        meta = self.raw_user_meta_data or {}
        avatar = meta.get("avatar_url")
        return str(avatar) if avatar else None


class AuthWebhookPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    table: str
    db_schema: str | None = Field(None, alias="schema")
    record: dict[str, object] | None = None
    old_record: dict[str, object] | None = None


class WebhookResponse(BaseModel):
    message: str
    profile_id: int | None = None
    role: str | None = None
    created: bool = False
