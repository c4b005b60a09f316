"""Wallet domain - installer credits, lead fees and the lead marketplace"""
