# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required - Supabase Auth handles:
# - User registration (auth.users table)
# - Login, sessions and JWT issuance
# - Password hashing and password recovery emails

"""
Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.sign_out() - Logout users
- auth.reset_password_for_email() - Send a recovery link
- auth.admin.update_user_by_id() - Set a new password (service role)

Every household table references auth.users(id) with ON DELETE CASCADE.
"""
