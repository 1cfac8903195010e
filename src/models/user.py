# src/models/user.py

"""Authenticated user identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """The signed-in account that owns every record it creates."""

    id: str
    email: str
