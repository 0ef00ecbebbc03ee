"""
input — Speech input sources.

Provides a common :class:`~input.recognizer.Recognizer` lifecycle for the
offline microphone recognizer (Vosk) and the scripted / interactive
simulator used for demos and tests.
"""
