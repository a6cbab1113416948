from pydantic import BaseModel

from learnova.services.credential_pool import CredentialPoolStatus


class ThreadHealthModel(BaseModel):
    name: str
    is_alive: bool


class HealthResponseModel(BaseModel):
    version: str
    version_full: str
    threads: list[ThreadHealthModel]
    memory_usage_mb: str
    background_tasks: int
    media_accounts: CredentialPoolStatus | None
