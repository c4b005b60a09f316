"""Bookings domain - booking lifecycle and QR tracking"""
