"""REST path decoding.

Maps the URL path of a Kubernetes API call back to the named object it
addresses.  Only four shapes address a named object::

    /api/{version}/{resource}/{name}
    /api/{version}/namespaces/{namespace}/{resource}/{name}
    /apis/{group}/{version}/{resource}/{name}
    /apis/{group}/{version}/namespaces/{namespace}/{resource}/{name}

Everything else (collection lists, subresources, discovery documents,
watches on collections, non-API paths) decodes to ``None``.
"""

from __future__ import annotations

from chartinspector.models.resources import ResourceReference

_CORE_ROOT = "api"
_GROUP_ROOT = "apis"
_NAMESPACES = "namespaces"


def decode_path(path: object) -> ResourceReference | None:
    """Return the object addressed by *path*, or None if it addresses none.

    Never raises.  Any required segment that is empty yields None.
    """
    if not isinstance(path, str):
        return None

    seg = path.split("/")
    if seg[0] != "" or len(seg) < 5:
        return None

    root = seg[1]
    count = len(seg)

    if root == _CORE_ROOT and count == 5:
        ref = ResourceReference(group="", version=seg[2], resource=seg[3], name=seg[4])
        required = (ref.version, ref.resource, ref.name)
    elif root == _CORE_ROOT and count == 7 and seg[3] == _NAMESPACES:
        ref = ResourceReference(group="", version=seg[2], resource=seg[5], name=seg[6], namespace=seg[4])
        required = (ref.version, ref.resource, ref.name, ref.namespace)
    elif root == _GROUP_ROOT and count == 6:
        ref = ResourceReference(group=seg[2], version=seg[3], resource=seg[4], name=seg[5])
        required = (ref.group, ref.version, ref.resource, ref.name)
    elif root in (_CORE_ROOT, _GROUP_ROOT) and count == 8 and seg[4] == _NAMESPACES:
        ref = ResourceReference(group=seg[2], version=seg[3], resource=seg[6], name=seg[7], namespace=seg[5])
        required = (ref.group, ref.version, ref.resource, ref.name, ref.namespace)
    else:
        return None

    if not all(required):
        return None
    return ref
