from datetime import datetime

from pydantic import BaseModel, Field


class Book(BaseModel):
    id: int
    name: str
    author: str
    created_at: datetime
    updated_at: datetime


class CreateBook(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=200)


class UpdateBook(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=200)


class Health(BaseModel):
    status: str = "ok"
    uptime: str
