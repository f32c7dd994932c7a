"""Access Schemas — Proxmox VE users."""

from pydantic import BaseModel, Field, field_validator


class User(BaseModel):
    """Entry of GET /access/users."""
    userid: str
    enable: bool = True
    expire: int | None = None
    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    comment: str | None = None
    groups: list[str] = []
    realm_type: str | None = Field(default=None, alias="realm-type")

    @field_validator("groups", mode="before")
    @classmethod
    def split_groups(cls, v):
        if isinstance(v, str):
            return [g for g in v.split(",") if g]
        return v

    @property
    def realm(self) -> str:
        return self.userid.rsplit("@", 1)[-1]

    @property
    def expires(self) -> bool:
        """expire == 0 means the account never expires."""
        return bool(self.expire)
