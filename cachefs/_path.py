import re

SEP = "/"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")


def validate_scheme(scheme: str) -> str:
    if not isinstance(scheme, str) or not _SCHEME_RE.match(scheme):
        raise ValueError(
            f"Invalid scheme {scheme!r}. Expected a letter followed by "
            "letters, digits, '+', '.' or '-'."
        )
    return scheme


def root_path(scheme: str) -> str:
    return scheme + "://"


def normalize_path(path: str, scheme: str) -> str:
    """Canonicalize *path* into the index key ``scheme://a/b/c``.

    ``..`` removes the preceding segment; a ``..`` with nothing before it is
    dropped, so a path can never climb above the root.
    """
    root = root_path(scheme)
    converted = path.replace("\\", SEP)
    converted = converted.replace(root, "")

    parts: list[str] = []
    for part in converted.split(SEP):
        if not part or part == ".":
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return root + SEP.join(parts)


def parent_path(npath: str, scheme: str) -> str:
    root = root_path(scheme)
    rest = npath[len(root):]
    if SEP not in rest:
        return root
    return root + rest.rsplit(SEP, 1)[0]


def basename(npath: str, scheme: str) -> str:
    rest = npath[len(root_path(scheme)):]
    return rest.rsplit(SEP, 1)[-1]
