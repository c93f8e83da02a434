"""Storefront commerce API."""
