ROOT_FOLDER_ID = "0"


def normalize_folder_id(folder_id: str | int | None) -> str | None:
    """Return ``None`` for the root folder, the id as a string otherwise."""
    if folder_id is None:
        return None
    folder_id = str(folder_id).strip()
    if folder_id in ("", ROOT_FOLDER_ID):
        return None
    return folder_id
