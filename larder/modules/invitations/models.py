# Supabase table: household_invitations
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

household_invitations:
- id: uuid (primary key, default gen_random_uuid())
- household_id: uuid (foreign key to households.id, not null, on delete cascade)
- invited_email: text (not null, stored lowercased)
- token: text (not null, unique) - secrets.token_urlsafe(32)
- status: text (not null, default: 'pending') - values: pending, accepted
- created_at: timestamptz (default: now())
- expires_at: timestamptz (not null) - created_at + INVITATION_TTL_DAYS (7)
- unique index on (household_id, invited_email) where status = 'pending'

State machine: pending --accept--> accepted (terminal)
               pending --cancel--> row deleted
Expired pending rows are never purged; expiry is checked when a token is used.
"""
