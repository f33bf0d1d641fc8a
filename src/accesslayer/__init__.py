"""
AccessLayer: attribute-based access control policy engine.

Evaluates access requests (subject, action, resource, context) against
prioritized ALLOW/DENY policies whose conditions are boolean trees over
subject, resource and environment attributes.
"""

__version__ = "0.1.0"
