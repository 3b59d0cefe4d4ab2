"""Application-level authorization of submitted entries."""


def is_authorized(claim, application_name) -> bool:
    """True if the entry's application matches the credential claim.

    Comparison is case-insensitive; blank or non-string values never match.
    """
    if not isinstance(claim, str) or not isinstance(application_name, str):
        return False
    if not claim.strip() or not application_name.strip():
        return False
    return claim.strip().casefold() == application_name.strip().casefold()
