from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


# Ids are serial keys in 32-bit integer columns.
MAX_ID = 2**31 - 1


# --- Auth ---
#
# Request fields are optional at the schema level so that missing values
# reach the services and come back as the same ValidationError messages
# the service layer raises for direct callers.

class RegisterRequest(BaseModel):
    name: str | None = None
    username: str | None = None
    email: str | None = None
    password: str | None = None


class RegisterResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# --- User ---

class UserPublic(BaseModel):
    id: int
    name: str
    username: str
    email: str
    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserPublic):
    followers: list[UserPublic] = []
    following: list[UserPublic] = []


# --- Comment / Like ---

class CommentCreate(BaseModel):
    content: str | None = None


class CommentResponse(BaseModel):
    content: str
    username: str
    created_at: datetime
    updated_at: datetime


class LikeResponse(BaseModel):
    username: str
    created_at: datetime
    updated_at: datetime


# --- Post ---

class PostCreate(BaseModel):
    content: str | None = None
    tags: list[str] | None = None
    img_url: str | None = Field(None, max_length=2048)


class PostResponse(BaseModel):
    id: int
    content: str
    tags: list[str] = []
    img_url: str | None = None
    author_id: int
    author: UserPublic | None = None
    comments: list[CommentResponse] = []
    likes: list[LikeResponse] = []
    created_at: datetime
    updated_at: datetime


# --- Follow ---

class FollowCreate(BaseModel):
    following_id: int | None = Field(None, ge=1, le=MAX_ID)


class FollowResponse(BaseModel):
    id: int
    follower_id: int
    following_id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
