"""Fraud domain - lead quality scoring, manipulation detection and lead refunds"""
