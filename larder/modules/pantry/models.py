# Supabase tables: pantries, pantry_items
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

pantries:
- id: uuid (primary key, default gen_random_uuid())
- household_id: uuid (foreign key to households.id, not null, unique, on delete cascade)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

pantry_items:
- id: uuid (primary key, default gen_random_uuid())
- pantry_id: uuid (foreign key to pantries.id, not null, on delete cascade)
- name: text (not null, 1-100 characters)
- quantity: numeric (not null, default 1, check quantity >= 0)
- unit: text (nullable, at most 20 characters)
- unique index pantry_items_name_ci on (pantry_id, lower(name))

A pantry is created together with its household and never on its own.
The lower(name) index backs the duplicate-name check in service.py; a
concurrent insert that slips past the check fails with SQLSTATE 23505.
"""
