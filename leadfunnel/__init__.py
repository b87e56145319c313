"""
Lead Funnel - multi-tenant lead capture and client portal backend
"""

__version__ = "1.0.0"
