"""Blueprints package."""
