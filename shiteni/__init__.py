"""
Shiteni Multi-Vendor SaaS Platform

Backend for hotels, stores, pharmacies and bus operators: vendor
isolation, role-based module access, dashboards and subscription billing
through the Lipila payment gateway.
"""

__version__ = "1.0.0"
