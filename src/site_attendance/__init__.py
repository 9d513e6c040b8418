"""Site attendance package.

Organized by feature modules (capture, geocoding, attendance, submission)
around a pure derivation core, with a thin Flask read API and a MySQL store
adapter at the edges.
"""
