"""WAVE Joiner: validate and concatenate RIFF/WAVE files.

WHY: Text-to-speech engines and recorders produce many short WAVE clips
that users want as one file. Joining them correctly means checking every
header for matching audio parameters and rewriting the RIFF sizes, while
never holding whole audio bodies in memory.

HOW: core/ decodes headers and streams payloads, cli.py wraps the joiner
for the terminal, server/ runs joins as background HTTP jobs.

RULES:
- All inputs are validated before the output is written
- Payload bytes are copied verbatim; samples are never decoded
- Cancellation is cooperative and reported as a False result
"""

__version__ = "0.1.0"
