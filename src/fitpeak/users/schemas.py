"""Pydantic schemas for profile endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; only fields that are sent are changed."""

    username: str | None = Field(None, min_length=1, max_length=64)
    nickname: str | None = Field(None, max_length=64)
    bio: str | None = Field(None, max_length=1000)
    avatar_url: str | None = Field(None, max_length=1024)
    header_url: str | None = Field(None, max_length=1024)
    prefecture: str | None = Field(None, max_length=16)
    home_gym: str | None = Field(None, max_length=128)
    gender: str | None = Field(None, max_length=16)
    birthday: date | None = None
    goal: str | None = Field(None, max_length=1000)
    training_years: int | None = Field(None, ge=0, le=100)
    bench_press_max: float | None = Field(None, ge=0)
    squat_max: float | None = Field(None, ge=0)
    deadlift_max: float | None = Field(None, ge=0)
    exercises: list[str] | None = None
    achievements: list[dict[str, Any]] | None = None
    certifications: list[str] | None = None
    is_age_public: bool | None = None
    is_prefecture_public: bool | None = None
    is_home_gym_public: bool | None = None


class ProfileResponse(BaseModel):
    """The caller's own profile, every field visible."""

    id: str
    username: str | None = None
    nickname: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    header_url: str | None = None
    prefecture: str | None = None
    home_gym: str | None = None
    gender: str | None = None
    birthday: date | None = None
    goal: str | None = None
    training_years: int | None = None
    bench_press_max: float | None = None
    squat_max: float | None = None
    deadlift_max: float | None = None
    big3_total: float | None = None
    exercises: list[str] = []
    achievements: list[dict[str, Any]] = []
    certifications: list[str] = []
    is_age_public: bool = True
    is_prefecture_public: bool = True
    is_home_gym_public: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    profile_completed: bool = False


class PublicProfileResponse(BaseModel):
    """Another user's profile, with private fields removed."""

    id: str
    username: str | None = None
    nickname: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    header_url: str | None = None
    prefecture: str | None = None
    home_gym: str | None = None
    gender: str | None = None
    age: int | None = None
    goal: str | None = None
    training_years: int | None = None
    bench_press_max: float | None = None
    squat_max: float | None = None
    deadlift_max: float | None = None
    big3_total: float | None = None
    exercises: list[str] = []
    achievements: list[dict[str, Any]] = []
    certifications: list[str] = []
    follower_count: int = 0
    following_count: int = 0
    is_following: bool = False


class ProfileSummary(BaseModel):
    id: str
    username: str | None = None
    nickname: str | None = None
    avatar_url: str | None = None
    prefecture: str | None = None


class ProfileListResponse(BaseModel):
    users: list[ProfileSummary]
    total: int
