"""Fulfillment bounded context — carrier shipping rates.

External carriers own parcels and tracking; checkout only asks them what
shipping costs.
"""
