"""
Membership and ownership lookups shared by the household-scoped services.
"""

from supabase import Client
from typing import Any, Dict, Optional


def first(result) -> Optional[Dict[str, Any]]:
    """First row of a PostgREST response, or None."""
    if result is None or not result.data:
        return None
    return result.data[0]


def get_membership(supabase: Client, user_id: str) -> Optional[Dict[str, Any]]:
    """The caller's current membership row (newest if a move is in flight)."""
    result = supabase.table("user_households")\
        .select("household_id, user_id, created_at")\
        .eq("user_id", user_id)\
        .order("created_at", desc=True)\
        .limit(1)\
        .execute()
    return first(result)


def get_user_household_id(supabase: Client, user_id: str) -> Optional[str]:
    membership = get_membership(supabase, user_id)
    return membership["household_id"] if membership else None


def is_member(supabase: Client, household_id: str, user_id: str) -> bool:
    result = supabase.table("user_households")\
        .select("user_id")\
        .eq("household_id", household_id)\
        .eq("user_id", user_id)\
        .limit(1)\
        .execute()
    return bool(result.data)


def get_household_row(supabase: Client, household_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("households")\
        .select("*")\
        .eq("id", household_id)\
        .limit(1)\
        .execute()
    return first(result)


def get_owned_household(supabase: Client, user_id: str) -> Optional[Dict[str, Any]]:
    result = supabase.table("households")\
        .select("*")\
        .eq("owner_id", user_id)\
        .limit(1)\
        .execute()
    return first(result)


def count_members(supabase: Client, household_id: str) -> int:
    result = supabase.table("user_households")\
        .select("user_id", count="exact")\
        .eq("household_id", household_id)\
        .execute()
    if result.count is not None:
        return result.count
    return len(result.data or [])
