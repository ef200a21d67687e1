# Supabase table: recipes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

recipes:
- id: uuid (primary key, default gen_random_uuid())
- household_id: uuid (foreign key to households.id, not null, on delete cascade)
- content: jsonb (not null), shaped as
    {
      "title": str,
      "ingredients": [{"name": str, "quantity": number, "unit": str | absent}],
      "instructions": str,
      "meal_type": "breakfast" | "lunch" | "dinner" | absent,
      "prep_time": int minutes | absent,
      "cook_time": int minutes | absent
    }
- creation_method: recipe_creation_method enum (not null, default 'manual')
    values: manual, ai_generated, ai_generated_modified
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now(), maintained by trigger)
- index on household_id

Saving an edit to an ai_generated recipe turns it into ai_generated_modified.
"""
