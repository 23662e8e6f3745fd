"""Authentication and authorization gate.

Learn: Every protected request carries a Firebase ID token in the
Authorization header. get_current_user resolves it ONCE per request
(FastAPI caches dependency results within a request) into a
CurrentIdentity with a typed role. Moderator-only routers declare
require_role(Role.MODERATOR) at include time, so handlers never
compare role strings themselves.
"""
