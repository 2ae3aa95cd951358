from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class MigrateUserRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


class BulkMigrateRequest(BaseModel):
    emails: list[str] = Field(default_factory=list)


class SignupRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)
