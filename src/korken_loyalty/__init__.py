"""Loyalty points, level and coupon engine for the Korken wine storefront."""

__version__ = "0.1.0"
