"""Call-path building and compilation.

:class:`CallPath` accumulates navigation steps and compiles them into a
:class:`~pleasure_client.models.RequestDescriptor`; :func:`compile_path`
turns path segments into the URL path of that descriptor.
"""

from pleasure_client.proxy.call_path import CallPath
from pleasure_client.proxy.path import Identifier, Literal, Segment, compile_path, kebab_case

__all__ = ["CallPath", "Identifier", "Literal", "Segment", "compile_path", "kebab_case"]
