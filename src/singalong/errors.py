class MalformedBlockError(ValueError):
    """Raised when an audio block cannot be analysed at all.

    Silence and unpitched audio are not errors; this is reserved for blocks
    that indicate a bug in whatever produced them.
    """
