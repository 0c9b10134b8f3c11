"""
Concierge API for the Grand Plaza voice concierge.

Stateless request handling: utterance -> keyword responder -> conversation log.

- No server-side session state; session_id only tags log rows
- Classification is a first-match-wins list of keyword patterns
- Every turn is observable via structured logs (see logging_setup)
"""
