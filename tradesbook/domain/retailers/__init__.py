"""Retailers domain - invoice and referral code detection, invoice login"""
