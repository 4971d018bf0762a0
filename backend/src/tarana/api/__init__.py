"""HTTP API for the referral and credit system."""
