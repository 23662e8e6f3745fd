"""Deck Auth — authentication and account management API.

Identity, profile and upload management for Deck, layered on Firebase
Authentication, Cloud Firestore and Cloud Storage.
"""

__version__ = "0.1.0"
