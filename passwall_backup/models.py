"""Data models for credential transfer."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CredentialRecord(BaseModel):
    """A login as persisted in the store; ``password`` is base64 ciphertext."""

    id: Optional[Any] = None
    url: str = ""
    username: str = ""
    password: str = ""

    def to_row(self) -> dict:
        """Column values for insertion (id is store-assigned)."""
        return self.model_dump(exclude={"id"})


class CredentialDTO(BaseModel):
    """Plaintext transfer shape of a login.

    Only lives in memory, inside an encrypted snapshot or in a CSV
    the user explicitly asked for.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = ""
    username: str = ""
    password: str = ""


class BackupDescriptor(BaseModel):
    """A snapshot file in the backup folder."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    created_at: datetime = Field(alias="createdAt")

    def to_json(self) -> dict:
        return {"name": self.name, "createdAt": self.created_at.isoformat()}


class RestoreRequest(BaseModel):
    """Body of a restore request; the extension is optional."""

    name: str = Field(min_length=1)


class Response(BaseModel):
    """Uniform success/failure envelope."""

    code: int
    status: str
    message: str
