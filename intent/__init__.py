"""
intent — Utterance text to command intent.

Maps final speech transcripts onto the closed :class:`~core.constants.Intent`
vocabulary by ordered keyword matching.
"""
