# Supabase tables: shopping_lists, shopping_list_items
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

shopping_lists:
- id: uuid (primary key, default gen_random_uuid())
- household_id: uuid (foreign key to households.id, not null, unique, on delete cascade)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

shopping_list_items:
- id: uuid (primary key, default gen_random_uuid())
- shopping_list_id: uuid (foreign key to shopping_lists.id, not null, on delete cascade)
- name: text (not null)
- quantity: numeric (not null, default 1, check quantity >= 0)
- unit: text (nullable)
- is_purchased: boolean (not null, default false)
- unique index shopping_list_items_name_ci on (shopping_list_id, lower(name))

The list is normally provisioned with its household; get_or_create_shopping_list
creates it lazily for households that predate that step. Both tables are in
the supabase_realtime publication so clients receive change events for the
writes made here.
"""
