"""Vendors bounded context — marketplace revenue splitting.

Accrues one commission record per vendor for every paid order and tracks
it through approval and payout.
"""
