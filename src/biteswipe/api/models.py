"""Pydantic models for the session HTTP API."""

from typing import Literal

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Payload for creating a session."""

    name: str = Field(default="Host", max_length=40)


class JoinSessionRequest(BaseModel):
    """Payload for joining by short code."""

    code: str = Field(min_length=1, max_length=16)
    name: str = Field(default="Participant", max_length=40)


class UpdateStateRequest(BaseModel):
    """Payload for a raw state write."""

    state: Literal["waiting", "voting", "completed"]


class SubmitVoteRequest(BaseModel):
    """Payload for a swipe."""

    restaurant_id: str = Field(min_length=1)
    vote: Literal["yes", "no"]
