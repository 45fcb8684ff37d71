"""Test utilities for kaelum applications.

::

    from kaelum.testing import TestClient
"""

from kaelum.testing.client import TestClient

__all__ = ["TestClient"]
