from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/datastore",
)


class FirestoreSettings(BaseSettings):
    """
    Service-account and collection settings for the Firestore REST backend.

    Env support:
      FIRESTORE_PROJECT_ID, FIRESTORE_CLIENT_EMAIL, FIRESTORE_PRIVATE_KEY,
      FIRESTORE_ROOT_PATH, ...

    FIRESTORE_PRIVATE_KEY is usually pasted from the service-account JSON with
    literal ``\\n`` sequences; they are turned back into newlines on load.
    """

    project_id: str
    client_email: str
    private_key: SecretStr
    root_path: str = Field(default="myStore")
    database: str = Field(default="(default)")

    api_base: str = Field(default="https://firestore.googleapis.com/v1")
    token_uri: str = Field(default="https://oauth2.googleapis.com/token")
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def _normalize_newlines(cls, v):
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if isinstance(v, str):
            return v.replace("\\n", "\n")
        return v

    @property
    def documents_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/projects/{self.project_id}/databases/{self.database}/documents"

    @property
    def collection_url(self) -> str:
        return f"{self.documents_url}/{self.root_path}"


@lru_cache
def get_firestore_settings(**kwargs) -> FirestoreSettings:
    # Only include kwargs that are not None, so env/defaults fill the rest
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return FirestoreSettings(**filtered)
