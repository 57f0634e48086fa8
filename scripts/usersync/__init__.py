"""Firebase user sync and permission inspection tooling.

Reconciles Firebase Auth identities with the application's user table,
lists identities, promotes users to admin, and renders Firestore sidebar
permission documents for debugging.
"""
