"""
Service Harness
===============

Prepares, launches and tears down locally built services for BDD integration
tests: copies each service's environment script into its checkout, keeps the
wire-format bindings compiled, builds and starts the service in the
background with its logs captured, and stops it and removes the generated
files afterwards.
"""

__version__ = "1.0.0"
