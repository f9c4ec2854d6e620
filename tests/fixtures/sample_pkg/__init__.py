"""Package namespace with a nested tools module."""

from tests.fixtures.sample_pkg import tools


def status(verbose: bool = False):
    """Report status.

    @param verbose show more detail
    """
    return {"ok": True, "verbose": verbose}
