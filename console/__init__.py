"""
Scripted developer and admin console for the storefront API.
"""
