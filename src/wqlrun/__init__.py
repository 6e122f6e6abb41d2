"""wqlrun: run WQL query templates against inventory agents through a signed TLS query server.

The protocol core lives in ``wqlrun.protocol``; ``wqlrun.runner`` drives a
whole batch and ``wqlrun.cli`` is the command line entry point.
"""

__version__ = "0.1.0"
