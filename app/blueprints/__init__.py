"""
Municipal Project Management System
Blueprint package.

One blueprint per area, each registering the shared service-exception
handlers (``app.utils.errors.register_error_handlers``).  Registration
order lives in ``app.create_app``.
"""
