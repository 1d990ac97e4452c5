class EmailSendError(Exception):
    """Raised when content cannot be added to an outgoing message.

    The underlying failure is available as `__cause__`.
    """
