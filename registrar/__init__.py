"""Registrar console service layer for the land-deed registry.

KYC review, department onboarding and on-chain signer provisioning.
"""

__version__ = "0.1.0"
