"""
sale_actions: reconciles recorded sales and renewals with off-chain metadata
and notifies the mailing service exactly once per qualifying record.
"""

__version__ = "0.3.0"
