"""
General-purpose helpers not related to the operator's domain,
which are used to prepare and control the runtime environment.

Helpers do not depend on anything else in the package,
so that they could be extracted as reusable libraries if needed.
"""
