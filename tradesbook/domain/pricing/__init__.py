"""Pricing domain - service tiers, lead fees and the admin rate table"""
