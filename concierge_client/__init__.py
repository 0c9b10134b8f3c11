"""
Voice front-end for the Grand Plaza concierge.

Holds the call loop: recognized speech -> concierge API -> spoken reply.
Speech recognition and synthesis are injected (see call.Recognizer and
call.Synthesizer); the console front-end in console.py types instead of talks.

The transcript lives only as long as the call object; nothing is persisted
client-side.
"""
