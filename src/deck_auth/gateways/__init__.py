"""Thin typed wrappers over the Firebase SDK clients.

Gateways return native values or let provider errors propagate;
error interpretation belongs to the services.
"""

from deck_auth.gateways.credentials import CredentialVerifier
from deck_auth.gateways.identity import IdentityGateway
from deck_auth.gateways.profiles import ProfileGateway
from deck_auth.gateways.storage import StorageGateway

__all__ = ["CredentialVerifier", "IdentityGateway", "ProfileGateway", "StorageGateway"]
