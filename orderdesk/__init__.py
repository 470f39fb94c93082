"""
                OrderDesk

Multi-tenant restaurant ordering backend: public storefront API per
restaurant slug, Stripe hosted checkout, webhook-driven order status and
live status fan-out to the admin dashboard and customer tracking page.

License: MIT
"""

__version__ = "1.0.0"
