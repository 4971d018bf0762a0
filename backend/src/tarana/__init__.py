"""Tarana referral tiers and daily credits service."""

__version__ = "1.0.0"
