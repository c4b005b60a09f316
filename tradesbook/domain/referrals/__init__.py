"""Referrals domain - sales staff codes, discounts and store commissions"""
