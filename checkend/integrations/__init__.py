"""
Framework integrations.

- ``flask``: request context and unhandled-exception reporting for Flask apps
- ``jobs``:  ``report_job_errors`` decorator for background job callables
"""
