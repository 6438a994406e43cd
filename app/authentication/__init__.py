"""
Authentication application.

Email-identified users. Staff users (``is_staff``) are the platform
administrators who resolve manual enrollment requests and grant access.

Usage:
    from authentication.models import User
"""
