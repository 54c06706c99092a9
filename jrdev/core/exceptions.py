class JobRunnerError(Exception):
    """The external coding-agent job could not be run to completion."""
