"""Shared helpers for Supabase repositories."""

from typing import Protocol, TypeVar

import httpx
from postgrest.exceptions import APIError

from calorie_bot.errors import InfrastructureError

_T_co = TypeVar("_T_co", covariant=True)


class Executable(Protocol[_T_co]):
    """A PostgREST request builder that can be executed."""

    def execute(self) -> _T_co:
        """Run the request."""


def run_query(query: Executable[_T_co], action: str) -> _T_co:
    """Execute a Supabase request, translating transport and API errors."""
    try:
        return query.execute()
    except (APIError, httpx.HTTPError) as exc:
        raise InfrastructureError(f"Supabase {action} failed: {exc}") from exc
