"""Values computed from sibling fields when a dataset record is built."""


def normalize_source_folder(source_folder: str) -> str:
    """Strip exactly one trailing ``/``; a bare root ``/`` is left as is.

    >>> normalize_source_folder("/data/run1/")
    '/data/run1'
    >>> normalize_source_folder("/")
    '/'
    """
    if source_folder == "/":
        return source_folder
    return source_folder.removesuffix("/")


def derive_dataset_name(source_folder: str | None) -> str:
    """Display name from the last two components of the source folder.

    >>> derive_dataset_name("/data/beamline/run1")
    'beamline/run1'
    >>> derive_dataset_name("run1")
    'run1'
    """
    if not source_folder:
        return ""
    parts = source_folder.split("/")
    if len(parts) == 1:
        return parts[0]
    return f"{parts[-2]}/{parts[-1]}"
