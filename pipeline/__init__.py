"""
pipeline — Session orchestration controller.

The controller wires the input channels (speech, rocket click, reset) to the
mission state machine and the state machine to speech output and observers.
"""
