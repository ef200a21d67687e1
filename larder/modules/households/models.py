# Supabase tables: households, user_households
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

households:
- id: uuid (primary key, default gen_random_uuid())
- owner_id: uuid (foreign key to auth.users.id, not null, on delete cascade)
- name: text (not null, 3-50 characters after trimming)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now(), maintained by trigger)

user_households:
- household_id: uuid (foreign key to households.id, not null, on delete cascade)
- user_id: uuid (foreign key to auth.users.id, not null, on delete cascade)
- created_at: timestamptz (default: now()) - exposed as joinedAt
- primary key (household_id, user_id)
- index on user_id

A user belongs to at most one household at a time. Moving a user inserts
the new membership first and removes the old one afterwards, so both rows
can exist briefly while a household is being provisioned.

Deleting a household cascades to user_households, household_invitations,
pantries (and pantry_items), shopping_lists (and shopping_list_items) and
recipes.
"""
