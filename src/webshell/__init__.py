"""webshell -- Browser-driven shell for an authenticated operator.

This package runs arbitrary operating-system commands on the host on
behalf of an authorized caller. Every request is a stateless process
invocation; the working directory and the ``user@host`` banner are
recovered after each command so the browser sees a persistent shell.
"""

__version__ = "0.1.0"
